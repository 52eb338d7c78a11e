"""
Blog Platform Backend — User Service
====================================

What:  Signup, login and user lookups.
Who:   Auth routes, user routes and the get_current_user dependency.

Rules:
    - Emails are stored lower-cased and are unique
    - The first user ever created is promoted to admin
    - Passwords are bcrypt-hashed in a threadpool and never returned
    - Login failures never say which half (email or password) was wrong
"""

import logging
from typing import Any, Dict, List, Tuple

from starlette.concurrency import run_in_threadpool

from app.exceptions import AuthenticationError, NotFoundError, ValidationError
from app.security import TokenService, hash_password, verify_password
from app.services.base import CollectionService
from app.services.documents import parse_object_id, serialize, utcnow

logger = logging.getLogger(__name__)


def _mask_email(email: str) -> str:
    local, _, domain = email.partition("@")
    return f"{local[:3]}***@{domain}"


def public_user(document: Dict[str, Any]) -> Dict[str, Any]:
    user = serialize(document)
    return {key: user.get(key) for key in ("id", "name", "email", "role")}


class UserService(CollectionService):
    collection_name = "users"

    async def signup(
        self,
        db: Any,
        tokens: TokenService,
        name: str,
        email: str,
        password: str,
    ) -> Tuple[Dict[str, Any], str]:
        users = self.collection(db)
        email = email.strip().lower()

        existing = await users.find_one({"email": email}, max_time_ms=self.max_time_ms)
        if existing:
            raise ValidationError(message="User with this email already exists", field="email")

        hashed = await run_in_threadpool(hash_password, password)
        now = utcnow()
        document = {
            "name": name.strip(),
            "email": email,
            "password": hashed,
            "role": "user",
            "created_at": now,
            "updated_at": now,
        }
        result = await users.insert_one(document)
        document["_id"] = result.inserted_id

        # First user in the system administers it
        if await users.count_documents({}, maxTimeMS=self.max_time_ms) == 1:
            await users.update_one({"_id": result.inserted_id}, {"$set": {"role": "admin"}})
            document["role"] = "admin"
            logger.info("First user %s promoted to admin", result.inserted_id)

        logger.info("User registered: %s", result.inserted_id)
        return public_user(document), tokens.sign(str(result.inserted_id))

    async def login(
        self,
        db: Any,
        tokens: TokenService,
        email: str,
        password: str,
    ) -> Tuple[Dict[str, Any], str]:
        email = email.strip().lower()
        logger.info("Login attempt for user: %s", _mask_email(email))

        document = await self.collection(db).find_one({"email": email}, max_time_ms=self.max_time_ms)
        if document is None:
            raise AuthenticationError(message="Invalid credentials")

        matches = await run_in_threadpool(verify_password, password, document.get("password", ""))
        if not matches:
            raise AuthenticationError(message="Invalid credentials")

        logger.info("User logged in successfully: %s", document["_id"])
        return public_user(document), tokens.sign(str(document["_id"]))

    async def get_user(self, db: Any, user_id: str) -> Dict[str, Any]:
        document = await self.collection(db).find_one(
            {"_id": parse_object_id(user_id, resource="user")},
            max_time_ms=self.max_time_ms,
        )
        if document is None:
            raise NotFoundError(resource="user", resource_id=user_id)
        return serialize(document)

    async def list_users(self, db: Any) -> List[Dict[str, Any]]:
        cursor = (
            self.collection(db)
            .find({}, {"password": 0})
            .sort("created_at", -1)
            .max_time_ms(self.max_time_ms)
        )
        return [serialize(document) for document in await cursor.to_list(length=None)]


user_service = UserService()
