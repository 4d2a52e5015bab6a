from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, Any, Dict, Iterable
from datetime import datetime, timezone
from bson import ObjectId
from bson.errors import InvalidId

from ..exceptions.custom_exceptions import InvalidInputError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> ObjectId:
    """Coerce a str/ObjectId into an ObjectId, raising ValueError when malformed"""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError) as e:
        raise ValueError(f"Invalid object id: {value!r}") from e


def parse_id(value: Any, field: str = "id") -> ObjectId:
    """Like to_object_id, but a malformed id is the caller's fault (400)"""
    try:
        return to_object_id(value)
    except ValueError:
        raise InvalidInputError(f"Invalid {field}: '{value}'", fields=[field])


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes read back from storage as UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def stringify_ids(value: Any) -> Any:
    """Recursively convert ObjectId values (also inside lists/dicts) to str"""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [stringify_ids(v) for v in value]
    if isinstance(value, dict):
        return {k: stringify_ids(v) for k, v in value.items()}
    return value


def document_to_dict(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Mongo document -> model kwargs (`_id` renamed to `id`, ObjectIds as str)"""
    data = stringify_ids(dict(doc))
    if "_id" in data:
        data["id"] = data.pop("_id")
    return data


def dict_to_document(data: Dict[str, Any], reference_fields: Iterable[str] = ()) -> Dict[str, Any]:
    """Model dump -> Mongo document (`id` renamed to `_id`, references as ObjectId)"""
    doc = dict(data)
    doc_id = doc.pop("id", None)
    if doc_id is not None:
        doc["_id"] = to_object_id(doc_id)
    for field in reference_fields:
        current = doc.get(field)
        if current is None:
            continue
        if isinstance(current, list):
            doc[field] = [to_object_id(v) for v in current]
        else:
            doc[field] = to_object_id(current)
    return doc


class BaseDocument(BaseModel):
    id: Optional[str] = Field(None, description="Document ID")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = {
        "populate_by_name": True,
        "use_enum_values": False,
    }

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class CamelModel(BaseModel):
    """API schema exposed in camelCase, also accepting snake_case input"""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
        "extra": "ignore",
    }
