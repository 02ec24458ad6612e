"""
Document serialisation helpers.

MongoDB documents carry `ObjectId`s and `datetime`s that JSON cannot represent.
`serialize_document()` converts them for API output: `_id` becomes `id`, every
`ObjectId` becomes its hex string and datetimes become ISO strings.
"""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List

from bson import ObjectId

SENSITIVE_FIELDS = frozenset({"passwordHash", "password"})


def serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return serialize_document(value)
    if isinstance(value, (list, tuple)):
        return [serialize_value(item) for item in value]
    return value


def serialize_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    JSON-ready copy of a stored document.

    Sensitive fields are dropped, and `_id` is renamed to `id`.

    Example:
        >>> serialize_document({"_id": ObjectId("65a1f0c2e4b0a1b2c3d4e5f6"), "name": "Chess"})
        {'id': '65a1f0c2e4b0a1b2c3d4e5f6', 'name': 'Chess'}
    """
    result: Dict[str, Any] = {}
    for key, value in document.items():
        if key in SENSITIVE_FIELDS:
            continue
        result["id" if key == "_id" else key] = serialize_value(value)
    return result


def serialize_many(documents: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [serialize_document(document) for document in documents]


def total_pages(total: int, limit: int) -> int:
    return (total + limit - 1) // limit if limit > 0 else 0
