"""GLEIF registry response models and client."""

from .client import DEFAULT_BASE_URL, RegistryClient
from .models import (
    RELATIONSHIP_NAMES,
    LeiAttributes,
    LeiRecord,
    LeiRecordResponse,
    RelationshipLinkSet,
    Relationships,
    RelationshipSlot,
    decode_related_payload,
    related_entries,
)

__all__ = [
    "DEFAULT_BASE_URL",
    "RegistryClient",
    "RELATIONSHIP_NAMES",
    "LeiAttributes",
    "LeiRecord",
    "LeiRecordResponse",
    "RelationshipLinkSet",
    "Relationships",
    "RelationshipSlot",
    "decode_related_payload",
    "related_entries",
]
