"""
Blog Platform Backend — Category Service
========================================

What:  CRUD for blog categories.
How:   Slugs are derived from the name and must be unique. A category that
       blogs still reference cannot be deleted.
"""

import logging
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument

from app.exceptions import NotFoundError, ValidationError
from app.services.base import CollectionService
from app.services.documents import parse_object_id, serialize, slugify, utcnow

logger = logging.getLogger(__name__)


class CategoryService(CollectionService):
    collection_name = "categories"

    async def list_categories(self, db: Any) -> List[Dict[str, Any]]:
        cursor = self.collection(db).find({}).sort("name", 1).max_time_ms(self.max_time_ms)
        return [serialize(document) for document in await cursor.to_list(length=None)]

    async def get_by_slug(self, db: Any, slug: str) -> Dict[str, Any]:
        document = await self.collection(db).find_one({"slug": slug}, max_time_ms=self.max_time_ms)
        if document is None:
            raise NotFoundError(resource="category", resource_id=slug)
        return serialize(document)

    async def _ensure_slug_free(self, db: Any, slug: str, exclude_id: Optional[Any] = None) -> None:
        query: Dict[str, Any] = {"slug": slug}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        if await self.collection(db).find_one(query, {"_id": 1}, max_time_ms=self.max_time_ms):
            raise ValidationError(message="Category with this name already exists", field="name")

    async def create_category(
        self,
        db: Any,
        name: str,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        name = name.strip()
        slug = slugify(name)
        if not slug:
            raise ValidationError(message="Category name is required", field="name")
        await self._ensure_slug_free(db, slug)

        now = utcnow()
        document = {
            "name": name,
            "slug": slug,
            "description": description or "",
            "created_at": now,
            "updated_at": now,
        }
        result = await self.collection(db).insert_one(document)
        document["_id"] = result.inserted_id
        logger.info("Category created: %s (%s)", slug, result.inserted_id)
        return serialize(document)

    async def update_category(
        self,
        db: Any,
        category_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        oid = parse_object_id(category_id, resource="category")
        changes: Dict[str, Any] = {"updated_at": utcnow()}

        if name is not None:
            name = name.strip()
            slug = slugify(name)
            if not slug:
                raise ValidationError(message="Category name cannot be empty", field="name")
            await self._ensure_slug_free(db, slug, exclude_id=oid)
            changes.update(name=name, slug=slug)
        if description is not None:
            changes["description"] = description

        document = await self.collection(db).find_one_and_update(
            {"_id": oid},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if document is None:
            raise NotFoundError(resource="category", resource_id=category_id)
        return serialize(document)

    async def delete_category(self, db: Any, category_id: str) -> None:
        oid = parse_object_id(category_id, resource="category")
        in_use = await db["blogs"].count_documents({"category_id": oid}, maxTimeMS=self.max_time_ms)
        if in_use:
            raise ValidationError(
                message="Cannot delete category with associated blogs",
                context={"blog_count": in_use},
            )
        result = await self.collection(db).delete_one({"_id": oid})
        if result.deleted_count == 0:
            raise NotFoundError(resource="category", resource_id=category_id)
        logger.info("Category deleted: %s", category_id)


category_service = CategoryService()
