"""
Blog Platform Backend — Blog Service (Business Logic Orchestrator)
==================================================================

What:  Listing, lookup, creation, update and deletion of blogs.
Why:   Keeps every blog rule (visibility, slugs, image lifecycle) in one place,
       independent of HTTP concerns.
How:   Stateless; receives the Motor database (and the media service when
       images are involved) on every call.
Who:   Called by the blog route handlers.

Visibility Rules:
    - "Visible" means status == "published" and publish_date <= now (or no
      publish_date at all, for posts created before scheduling existed)
    - "Scheduled" means status == "published" and publish_date > now
    - Drafts only appear in the admin listing (GET /api/blogs?status=draft)

Create Flow (POST /api/blogs):
    ┌──────────┐    ┌────────────┐    ┌────────────┐    ┌──────────┐
    │ Validate │───▶│ Slug check │───▶│ Upload to  │───▶│  Insert  │
    │  fields  │    │            │    │ Cloudinary │    │  (Mongo) │
    └──────────┘    └────────────┘    └────────────┘    └──────────┘
    Insert fails after upload → the uploaded asset is deleted (best effort)
    and the error propagates to the global handlers.

Population:
    Blogs store ids only (category_id, author_id, author). Listing responses
    resolve them in one $in query per referenced collection rather than one
    lookup per blog.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from app.exceptions import NotFoundError, ValidationError
from app.schemas.blog import BlogForm, ImageUpload
from app.services.base import CollectionService
from app.services.documents import (
    contains_pattern,
    parse_bool,
    parse_datetime,
    parse_object_id,
    serialize,
    slugify,
    split_csv,
    total_pages,
    utcnow,
)
from app.services.media_service import MediaService

logger = logging.getLogger(__name__)

BLOG_STATUSES = ("draft", "published")

# Without an explicit limit the admin listing is still capped to avoid timeouts
DEFAULT_LIST_CAP = 100

SLUG_TAKEN_MESSAGE = "A blog with this slug already exists. Please use a different slug."

# Required on create; on update they may be omitted but not emptied
REQUIRED_FIELDS = (
    ("title", "Title"),
    ("content", "Content"),
    ("excerpt", "Excerpt"),
    ("image_alt", "Image alt text"),
)


# ══════════════════════════════════════════════════════════════════════════
# Filters
# ══════════════════════════════════════════════════════════════════════════


def visible_clause(now) -> Dict[str, Any]:
    return {
        "$or": [
            {"publish_date": {"$lte": now}},
            {"publish_date": {"$exists": False}},
            {"publish_date": None},
        ]
    }


def search_clause(search: str) -> Dict[str, Any]:
    pattern = contains_pattern(search)
    return {"$or": [{"title": pattern}, {"content": pattern}]}


def combine(base: Dict[str, Any], *clauses: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """AND extra clauses onto a base filter (each clause may carry its own $or)."""
    extra = [clause for clause in clauses if clause]
    if not extra:
        return dict(base)
    return {**base, "$and": extra}


def status_filter(status: Optional[str], default: Optional[str] = None) -> Dict[str, Any]:
    status = status or default
    if status is None:
        return {}
    if status not in BLOG_STATUSES:
        raise ValidationError(
            message=f"Invalid status '{status}'. Allowed: {', '.join(BLOG_STATUSES)}",
            field="status",
        )
    return {"status": status}


class BlogService(CollectionService):
    """
    Business logic for blogs.

    Every list method returns {"blogs", "total_count"} and adds
    "current_page"/"total_pages" only when the caller asked for a page size.
    """

    collection_name = "blogs"

    # ── Queries ───────────────────────────────────────────────────────────

    async def _page(
        self,
        db: Any,
        query: Dict[str, Any],
        sort: List[tuple],
        page: int = 1,
        limit: Optional[int] = None,
        projection: Optional[Dict[str, int]] = None,
        cap: Optional[int] = None,
    ) -> Dict[str, Any]:
        cursor = self.collection(db).find(query, projection).sort(sort)
        if limit:
            page = max(page or 1, 1)
            cursor = cursor.skip((page - 1) * limit).limit(limit)
        elif cap:
            cursor = cursor.limit(cap)
        documents = await cursor.max_time_ms(self.max_time_ms).to_list(length=None)
        total_count = await self.collection(db).count_documents(query, maxTimeMS=self.max_time_ms)

        response: Dict[str, Any] = {
            "blogs": await self.populate(db, documents),
            "total_count": total_count,
        }
        if limit:
            response["current_page"] = page
            response["total_pages"] = total_pages(total_count, limit)
        return response

    async def list_blogs(
        self,
        db: Any,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """All blogs (any status), newest first, without the content body."""
        query = combine(status_filter(status), search_clause(search) if search else None)
        return await self._page(
            db,
            query,
            sort=[("created_at", -1)],
            page=page,
            limit=limit,
            projection={"content": 0},
            cap=DEFAULT_LIST_CAP,
        )

    async def list_published(
        self,
        db: Any,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        query = combine(
            {"status": "published"},
            visible_clause(utcnow()),
            search_clause(search) if search else None,
        )
        return await self._page(db, query, sort=[("publish_date", -1)], page=page, limit=limit)

    async def list_featured(
        self,
        db: Any,
        status: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        base = {"is_featured": True, **status_filter(status, default="published")}
        visibility = visible_clause(utcnow()) if base["status"] == "published" else None
        return await self._page(
            db, combine(base, visibility), sort=[("publish_date", -1)], page=page, limit=limit
        )

    async def list_scheduled(
        self,
        db: Any,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        query = {"status": "published", "publish_date": {"$gt": utcnow()}}
        return await self._page(db, query, sort=[("publish_date", 1)], page=page, limit=limit)

    async def latest_by_category(self, db: Any, limit: int = 5) -> List[Dict[str, Any]]:
        """For every category, its `limit` most recent visible blogs."""
        categories = (
            await db["categories"].find({}).sort("name", 1).max_time_ms(self.max_time_ms).to_list(length=None)
        )
        now = utcnow()

        async def latest(category: Dict[str, Any]) -> Dict[str, Any]:
            query = combine(
                {"category_id": category["_id"], "status": "published"},
                visible_clause(now),
            )
            documents = (
                await self.collection(db)
                .find(query)
                .sort([("publish_date", -1)])
                .limit(limit)
                .max_time_ms(self.max_time_ms)
                .to_list(length=None)
            )
            return {"category": serialize(category), "blogs": await self.populate(db, documents)}

        return list(await asyncio.gather(*(latest(category) for category in categories)))

    async def list_by_category(
        self,
        db: Any,
        slug: str,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        category = await db["categories"].find_one({"slug": slug}, max_time_ms=self.max_time_ms)
        if category is None:
            raise NotFoundError(resource="category", resource_id=slug)

        base = {"category_id": category["_id"], **status_filter(status, default="published")}
        query = combine(
            base,
            visible_clause(utcnow()) if base["status"] == "published" else None,
            search_clause(search) if search else None,
        )
        response = await self._page(db, query, sort=[("publish_date", -1)], page=page, limit=limit)
        response["category"] = {
            "id": str(category["_id"]),
            "name": category.get("name"),
            "slug": category.get("slug"),
        }
        return response

    async def get_blog(self, db: Any, blog_id: str) -> Dict[str, Any]:
        document = await self.collection(db).find_one(
            {"_id": parse_object_id(blog_id, resource="blog")},
            max_time_ms=self.max_time_ms,
        )
        if document is None:
            raise NotFoundError(resource="blog", resource_id=blog_id)
        return (await self.populate(db, [document]))[0]

    async def get_by_slug(self, db: Any, slug: str) -> Dict[str, Any]:
        document = await self.collection(db).find_one({"slug": slug}, max_time_ms=self.max_time_ms)
        if document is None:
            raise NotFoundError(resource="blog", resource_id=slug)
        return (await self.populate(db, [document]))[0]

    # ── Population ────────────────────────────────────────────────────────

    async def _lookup(self, db: Any, collection: str, ids: Iterable[Any], fields: Dict[str, int]) -> Dict[Any, Dict]:
        unique = {value for value in ids if value is not None}
        if not unique:
            return {}
        cursor = db[collection].find({"_id": {"$in": list(unique)}}, fields).max_time_ms(self.max_time_ms)
        return {document["_id"]: serialize(document) for document in await cursor.to_list(length=None)}

    async def populate(self, db: Any, documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Attach `category` ({id, name, slug}), `author_profile` ({id, name}) and
        `author` ({id, name} of the creating user) to each blog.
        """
        if not documents:
            return []
        categories, authors, users = await asyncio.gather(
            self._lookup(db, "categories", (d.get("category_id") for d in documents), {"name": 1, "slug": 1}),
            self._lookup(db, "authors", (d.get("author_id") for d in documents), {"name": 1}),
            self._lookup(db, "users", (d.get("author") for d in documents), {"name": 1}),
        )
        populated = []
        for document in documents:
            blog = serialize(document)
            blog["category"] = categories.get(document.get("category_id"))
            blog["author_profile"] = authors.get(document.get("author_id"))
            blog["author"] = users.get(document.get("author"))
            populated.append(blog)
        return populated

    # ── Slugs ─────────────────────────────────────────────────────────────

    async def _slug_taken(self, db: Any, slug: str, exclude_id: Optional[Any] = None) -> bool:
        query: Dict[str, Any] = {"slug": slug}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        return await self.collection(db).find_one(query, {"_id": 1}, max_time_ms=self.max_time_ms) is not None

    async def _generated_slug(self, db: Any, title: str) -> str:
        """Slug from the title, suffixed -2, -3, ... until unused."""
        base = slugify(title) or "blog"
        candidate, suffix = base, 2
        while await self._slug_taken(db, candidate):
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    # ── Writes ────────────────────────────────────────────────────────────

    async def create_blog(
        self,
        db: Any,
        media: MediaService,
        user_id: str,
        form: BlogForm,
        image: Optional[ImageUpload],
    ) -> Dict[str, Any]:
        """
        Validate, upload the cover image, then insert.

        Raises:
            ValidationError:  Missing field, bad id/status/date, duplicate slug,
                              or an image that fails validation.
            MediaUploadError: Cloudinary failed the upload.
        """
        if image is None:
            raise ValidationError(message="Blog image is required", field="image")
        for field, label in REQUIRED_FIELDS:
            if not getattr(form, field):
                raise ValidationError(message=f"{label} is required", field=field)
        if not form.category_id:
            raise ValidationError(message="Category is required", field="category_id")
        if not form.author_id:
            raise ValidationError(message="Author is required", field="author_id")

        category_id = parse_object_id(form.category_id, field="category_id")
        author_id = parse_object_id(form.author_id, field="author_id")
        status = status_filter(form.status, default="published")["status"]
        publish_date = parse_datetime(form.publish_date) or utcnow()

        if form.slug:
            slug = slugify(form.slug)
            if not slug or await self._slug_taken(db, slug):
                raise ValidationError(message=SLUG_TAKEN_MESSAGE, field="slug")
        else:
            slug = await self._generated_slug(db, form.title)

        uploaded = await media.upload_blog_image(image.filename, image.content, image.content_length)

        now = utcnow()
        document = {
            "title": form.title,
            "slug": slug,
            "content": form.content,
            "excerpt": form.excerpt,
            "image_url": uploaded.secure_url,
            "image_alt": form.image_alt,
            "meta_description": form.meta_description or "",
            "meta_keywords": split_csv(form.meta_keywords),
            "tags": split_csv(form.tags),
            "status": status,
            "author": parse_object_id(user_id, field="author"),
            "author_id": author_id,
            "category_id": category_id,
            "is_featured": bool(parse_bool(form.is_featured)),
            "publish_date": publish_date,
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.collection(db).insert_one(document)
        except Exception:
            # Don't leave an orphaned image on the media host
            await media.delete(uploaded.public_id)
            raise
        document["_id"] = result.inserted_id
        logger.info("Blog created: %s (%s)", slug, result.inserted_id)
        return (await self.populate(db, [document]))[0]

    async def update_blog(
        self,
        db: Any,
        media: MediaService,
        blog_id: str,
        form: BlogForm,
        image: Optional[ImageUpload],
    ) -> Dict[str, Any]:
        """
        Partial update: omitted fields keep their value, emptied required
        fields are rejected. A new image replaces the old Cloudinary asset.
        """
        oid = parse_object_id(blog_id, resource="blog")
        blogs = self.collection(db)
        existing = await blogs.find_one({"_id": oid}, max_time_ms=self.max_time_ms)
        if existing is None:
            raise NotFoundError(resource="blog", resource_id=blog_id)

        for field, label in REQUIRED_FIELDS:
            if getattr(form, field) == "":
                raise ValidationError(message=f"{label} cannot be empty", field=field)
        if form.category_id == "":
            raise ValidationError(message="Category is required", field="category_id")
        if form.author_id == "":
            raise ValidationError(message="Author is required", field="author_id")

        changes: Dict[str, Any] = {}
        for field in ("title", "content", "excerpt", "image_alt", "meta_description"):
            value = getattr(form, field)
            if value is not None:
                changes[field] = value
        if form.category_id is not None:
            changes["category_id"] = parse_object_id(form.category_id, field="category_id")
        if form.author_id is not None:
            changes["author_id"] = parse_object_id(form.author_id, field="author_id")
        if form.meta_keywords:
            changes["meta_keywords"] = split_csv(form.meta_keywords)
        if form.tags is not None:
            changes["tags"] = split_csv(form.tags)
        featured = parse_bool(form.is_featured)
        if featured is not None:
            changes["is_featured"] = featured
        if form.status:
            changes["status"] = status_filter(form.status)["status"]
        if form.publish_date:
            changes["publish_date"] = parse_datetime(form.publish_date)

        # Empty slug keeps the existing one
        if form.slug:
            slug = slugify(form.slug)
            if slug and slug != existing.get("slug"):
                if await self._slug_taken(db, slug, exclude_id=oid):
                    raise ValidationError(message=SLUG_TAKEN_MESSAGE, field="slug")
                changes["slug"] = slug

        old_image_url = existing.get("image_url")
        if image is not None:
            uploaded = await media.upload_blog_image(image.filename, image.content, image.content_length)
            changes["image_url"] = uploaded.secure_url
        elif form.image_url and form.image_url != old_image_url:
            changes["image_url"] = form.image_url

        changes["updated_at"] = utcnow()
        await blogs.update_one({"_id": oid}, {"$set": changes})

        if "image_url" in changes and old_image_url:
            await media.delete_by_url(old_image_url)

        logger.info("Blog updated: %s (%s)", blog_id, ", ".join(sorted(changes)))
        updated = await blogs.find_one({"_id": oid}, max_time_ms=self.max_time_ms)
        if updated is None:
            raise NotFoundError(resource="blog", resource_id=blog_id)
        return (await self.populate(db, [updated]))[0]

    async def delete_blog(self, db: Any, media: MediaService, blog_id: str) -> None:
        oid = parse_object_id(blog_id, resource="blog")
        existing = await self.collection(db).find_one({"_id": oid}, max_time_ms=self.max_time_ms)
        if existing is None:
            raise NotFoundError(resource="blog", resource_id=blog_id)

        # Image cleanup never blocks the delete
        await media.delete_by_url(existing.get("image_url"))
        await self.collection(db).delete_one({"_id": oid})
        logger.info("Blog deleted: %s", blog_id)


blog_service = BlogService()
