"""Author profiles shown on blogs (distinct from the user who created a blog)."""

import logging
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument

from app.exceptions import NotFoundError, ValidationError
from app.services.base import CollectionService
from app.services.documents import parse_object_id, serialize, utcnow

logger = logging.getLogger(__name__)


class AuthorService(CollectionService):
    collection_name = "authors"

    async def list_authors(self, db: Any) -> List[Dict[str, Any]]:
        cursor = self.collection(db).find({}).sort("name", 1).max_time_ms(self.max_time_ms)
        return [serialize(document) for document in await cursor.to_list(length=None)]

    async def get_author(self, db: Any, author_id: str) -> Dict[str, Any]:
        document = await self.collection(db).find_one(
            {"_id": parse_object_id(author_id, resource="author")},
            max_time_ms=self.max_time_ms,
        )
        if document is None:
            raise NotFoundError(resource="author", resource_id=author_id)
        return serialize(document)

    async def create_author(
        self,
        db: Any,
        name: str,
        bio: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not name or not name.strip():
            raise ValidationError(message="Author name is required", field="name")
        now = utcnow()
        document = {
            "name": name.strip(),
            "bio": bio or "",
            "avatar_url": avatar_url or "",
            "created_at": now,
            "updated_at": now,
        }
        result = await self.collection(db).insert_one(document)
        document["_id"] = result.inserted_id
        logger.info("Author created: %s", result.inserted_id)
        return serialize(document)

    async def update_author(self, db: Any, author_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        oid = parse_object_id(author_id, resource="author")
        updates = {key: value for key, value in changes.items() if value is not None}
        if "name" in updates:
            if not updates["name"].strip():
                raise ValidationError(message="Author name cannot be empty", field="name")
            updates["name"] = updates["name"].strip()
        updates["updated_at"] = utcnow()

        document = await self.collection(db).find_one_and_update(
            {"_id": oid},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
        if document is None:
            raise NotFoundError(resource="author", resource_id=author_id)
        return serialize(document)

    async def delete_author(self, db: Any, author_id: str) -> None:
        result = await self.collection(db).delete_one(
            {"_id": parse_object_id(author_id, resource="author")}
        )
        if result.deleted_count == 0:
            raise NotFoundError(resource="author", resource_id=author_id)
        logger.info("Author deleted: %s", author_id)


author_service = AuthorService()
