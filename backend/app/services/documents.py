"""
Blog Platform Backend — Document Helpers
========================================

What:  Small, pure helpers shared by every service that reads or writes
       MongoDB documents.
Why:   Motor hands back raw dicts with ObjectId keys and snake/camel mixes are
       easy to get wrong; keeping conversions in one place keeps services
       focused on business rules.
How:   Plain functions, no I/O. Each one is unit-tested in isolation.
"""

import math
import re
import unicodedata
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from bson.errors import InvalidId

from app.exceptions import NotFoundError, ValidationError

# Fields that must never leave the service layer
PRIVATE_FIELDS = ("password",)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_object_id(
    value: Any,
    resource: Optional[str] = None,
    field: Optional[str] = None,
) -> ObjectId:
    """
    Convert a hex string into an ObjectId.

    A malformed id in a path parameter cannot match any document, so it is
    reported as not found when `resource` is given. A malformed id in a
    request body is a validation error on `field`.
    """
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError) as exc:
        if resource:
            raise NotFoundError(resource=resource, resource_id=str(value)) from exc
        raise ValidationError(
            message=f"Invalid {field or 'id'}: {value}",
            field=field,
        ) from exc


def serialize(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Make a stored document JSON-friendly.

    `_id` becomes `id`, ObjectIds become hex strings (also inside lists), and
    private fields are dropped. Datetimes are left for the response models.
    """
    if document is None:
        return None
    result: Dict[str, Any] = {}
    for key, value in document.items():
        if key in PRIVATE_FIELDS:
            continue
        if key == "_id":
            key = "id"
        result[key] = _plain(value)
    return result


def _plain(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return serialize(value)
    return value


def slugify(text: str) -> str:
    """'Hello, World! Ça va?' → 'hello-world-ca-va'"""
    normalized = unicodedata.normalize("NFKD", str(text)).encode("ascii", "ignore").decode("ascii")
    normalized = re.sub(r"[^\w\s-]", "", normalized.lower())
    normalized = re.sub(r"[\s_-]+", "-", normalized)
    return normalized.strip("-")


def split_csv(value: Optional[Any]) -> List[str]:
    """Split a comma-separated form value (or a list) into trimmed, non-empty items."""
    if value is None or value == "":
        return []
    items: Iterable[Any] = value if isinstance(value, (list, tuple)) else str(value).split(",")
    return [str(item).strip() for item in items if item is not None and str(item).strip()]


def parse_bool(value: Optional[Any]) -> Optional[bool]:
    """Form booleans arrive as strings; anything unrecognised is None."""
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    text = str(value).strip().lower()
    if text in ("true", "1", "yes", "on"):
        return True
    if text in ("false", "0", "no", "off"):
        return False
    return None


def parse_datetime(value: Optional[Any], field: str = "publish_date") -> Optional[datetime]:
    """Parse an ISO 8601 date or datetime; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValidationError(message=f"Invalid date for {field}: {value}", field=field) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def contains_pattern(search: str) -> Dict[str, Any]:
    """Case-insensitive substring match; user input is escaped, never a regex."""
    return {"$regex": re.escape(search), "$options": "i"}


def total_pages(total_count: int, limit: int) -> int:
    return math.ceil(total_count / limit) if limit else 0
