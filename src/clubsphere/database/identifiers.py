"""
Identifier normalisation at the persistence boundary.

Historical documents reference clubs and events inconsistently: sometimes as an
`ObjectId`, sometimes as its 24-character hex string. Every lookup by club or event
id goes through these helpers so both representations are matched.
"""

from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse `value` into an `ObjectId`, or return `None` when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def id_variants(value: Any) -> List[Any]:
    """
    All stored representations of an identifier.

    Returns the string form first, followed by the `ObjectId` form when the value
    parses as one. Unparseable values yield only their string form.
    """
    if value is None:
        return []
    oid = to_object_id(value)
    as_str = str(value)
    return [as_str, oid] if oid is not None else [as_str]


def reference_predicate(field: str, value: Any) -> Dict[str, Any]:
    """Match documents whose `field` references `value` in any representation."""
    return {field: {"$in": id_variants(value)}}


def many_reference_predicate(field: str, values: List[Any]) -> Dict[str, Any]:
    """Like `reference_predicate`, for a set of identifiers."""
    variants: List[Any] = []
    for value in values:
        variants.extend(id_variants(value))
    return {field: {"$in": variants}}
