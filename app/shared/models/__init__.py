from .base import (
    BaseDocument,
    CamelModel,
    document_to_dict,
    dict_to_document,
    stringify_ids,
    to_object_id,
    parse_id,
    ensure_utc,
    utcnow,
)

__all__ = [
    "BaseDocument",
    "CamelModel",
    "document_to_dict",
    "dict_to_document",
    "stringify_ids",
    "to_object_id",
    "parse_id",
    "ensure_utc",
    "utcnow",
]
