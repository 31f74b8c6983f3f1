"""
Pydantic models for GLEIF API responses.

Only the fields the harvester reads are typed; unknown fields are ignored so
upstream additions do not turn into decode failures.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Fixed, ordered enumeration of the relationship links that are aggregated.
RELATIONSHIP_NAMES: tuple[str, ...] = (
    "managing-lou",
    "lei-issuer",
    "direct-parent",
    "ultimate-parent",
    "field-modifications",
)


class _RegistryModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# Primary record attributes
# =============================================================================


class LegalName(_RegistryModel):
    name: str | None = None
    language: str | None = None


class Address(_RegistryModel):
    language: str | None = None
    address_lines: list[str] = Field(default_factory=list)
    address_number: str | None = None
    address_number_within_building: str | None = None
    mail_routing: str | None = None
    city: str | None = None
    region: str | None = None
    country: str | None = None
    postal_code: str | None = None


class RegisteredAt(_RegistryModel):
    id: str | None = None
    other: str | None = None


class LegalForm(_RegistryModel):
    id: str | None = None
    other: str | None = None


class Entity(_RegistryModel):
    legal_name: LegalName = Field(default_factory=LegalName)
    legal_address: Address | None = None
    headquarters_address: Address | None = None
    registered_at: RegisteredAt | None = None
    registered_as: str | None = None
    jurisdiction: str | None = None
    category: str | None = None
    legal_form: LegalForm | None = None
    status: str | None = None
    creation_date: str | None = None


class Registration(_RegistryModel):
    initial_registration_date: str | None = None
    last_update_date: str | None = None
    status: str | None = None
    next_renewal_date: str | None = None
    managing_lou: str | None = None
    corroboration_level: str | None = None
    validated_as: str | None = None


class LeiAttributes(_RegistryModel):
    lei: str | None = None
    entity: Entity = Field(default_factory=Entity)
    registration: Registration = Field(default_factory=Registration)
    bic: list[str] | None = None
    mic: list[str] | None = None
    conformity_flag: str | None = None
    ocid: str | None = None
    qcc: str | None = None
    spglobal: Any = None


# =============================================================================
# Relationship links
# =============================================================================


class Links(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    related: str | None = None
    self_: str | None = Field(default=None, alias="self")
    reporting_exception: str | None = Field(default=None, alias="reporting-exception")


class RelationshipLink(BaseModel):
    model_config = ConfigDict(extra="ignore")

    links: Links | None = None

    @property
    def related_url(self) -> str | None:
        return self.links.related if self.links else None


class Relationships(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    managing_lou: RelationshipLink | None = Field(default=None, alias="managing-lou")
    lei_issuer: RelationshipLink | None = Field(default=None, alias="lei-issuer")
    direct_parent: RelationshipLink | None = Field(default=None, alias="direct-parent")
    ultimate_parent: RelationshipLink | None = Field(default=None, alias="ultimate-parent")
    field_modifications: RelationshipLink | None = Field(default=None, alias="field-modifications")

    def link_for(self, name: str) -> RelationshipLink | None:
        """Get the link for a hyphenated relationship name."""
        return getattr(self, name.replace("-", "_"))


# =============================================================================
# Envelope
# =============================================================================


class LeiRecord(_RegistryModel):
    """The ``data`` object of a ``/lei-records/{id}`` response."""

    type: str | None = None
    id: str
    attributes: LeiAttributes = Field(default_factory=LeiAttributes)
    relationships: Relationships | None = None
    links: Links | None = None

    @property
    def lei(self) -> str:
        return self.attributes.lei or self.id


class LeiRecordResponse(_RegistryModel):
    """Full ``/lei-records/{id}`` response envelope."""

    meta: dict[str, Any] | None = None
    data: LeiRecord
    links: dict[str, Any] | None = None


# =============================================================================
# Relationship link set
# =============================================================================


@dataclass(frozen=True)
class RelationshipSlot:
    """One named relationship link; ``url`` is None when absent."""

    name: str
    url: str | None = None

    @property
    def present(self) -> bool:
        return bool(self.url)


@dataclass(frozen=True)
class RelationshipLinkSet:
    """The fixed, ordered set of relationship slots of one record."""

    slots: tuple[RelationshipSlot, ...]

    @classmethod
    def from_relationships(cls, relationships: Relationships | None) -> "RelationshipLinkSet":
        slots = []
        for name in RELATIONSHIP_NAMES:
            link = relationships.link_for(name) if relationships else None
            slots.append(RelationshipSlot(name, link.related_url if link else None))
        return cls(tuple(slots))

    def __iter__(self) -> Iterator[RelationshipSlot]:
        return iter(self.slots)

    def present(self) -> list[RelationshipSlot]:
        """Slots that carry a related URL, in fixed order."""
        return [slot for slot in self.slots if slot.present]

    @property
    def has_links(self) -> bool:
        return any(slot.present for slot in self.slots)


# =============================================================================
# Related resource payloads
# =============================================================================


def decode_related_payload(payload: Any) -> dict[str, Any]:
    """Validate a related-resource document and return it unchanged.

    The document must be an object with a ``data`` member holding an object,
    a list of objects, or null.

    Raises:
        ValueError: If the document has another shape
    """
    if not isinstance(payload, dict):
        raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
    if "data" not in payload:
        raise ValueError("missing 'data' member")

    data = payload["data"]
    if data is None or isinstance(data, dict):
        return payload
    if isinstance(data, list) and all(isinstance(item, dict) for item in data):
        return payload

    raise ValueError("'data' must be an object, a list of objects or null")


def related_entries(payload: dict[str, Any]) -> list[dict[str, Any]]:
    """Flatten a related-resource document into its resource objects."""
    data = payload.get("data")
    if data is None:
        return []
    if isinstance(data, list):
        return data
    return [data]
