"""
Canonical Data Format (CDF) objects and documents.

A CDF object is one syndicated unit: a stable UUID, a type (content vs.
config), the origin site that owns it, timestamps, a language-keyed
attribute map, a flat map of dependency UUID → content hash and the list
of host capabilities required to interpret it. A CDF document is an
insertion-ordered, UUID-keyed collection of objects.

Manifesto:
    - **Pure data:** No I/O; the wire format is a plain dict/JSON
    - **Flat dependencies:** Transitive dependencies are flattened into
      the owning document, never nested inside an object
    - **Content hash:** ``hash`` is a digest of the attribute payload and
      changes iff meaningful content changes
    - **Union merge:** Merging documents is keyed by UUID; the later
      document's object wins

Wire format::

    {
      "entities": [
        {
          "uuid": "...", "type": "content_entity", "origin": "...",
          "created": "2024-01-01T00:00:00+00:00", "modified": "...",
          "attributes": {"title": {"type": "string", "value": {"en": "Hi"}}},
          "dependencies": {"<uuid>": "<hash>"},
          "modules": ["taxonomy"]
        }
      ]
    }

Tags:
    cdf, data-model, serialization, cdf-sync

Doc-Types:
    - API Reference
    - Wire Format
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from cdfsync.core.errors import CdfError
from cdfsync.core.hashing import compute_payload_hash

LANGUAGE_UNDETERMINED = "und"

CONTENT_ENTITY = "content_entity"
CONFIG_ENTITY = "config_entity"

HASH_ATTRIBUTE = "hash"
ENTITY_TYPE_ATTRIBUTE = "entity_type"


@dataclass
class CDFAttribute:
    """A typed attribute whose value is keyed by language code."""

    id: str
    type: str
    value: dict[str, Any] = field(default_factory=dict)

    def get_value(self, language: str = LANGUAGE_UNDETERMINED, default: Any = None) -> Any:
        return self.value.get(language, default)

    def set_value(self, value: Any, language: str = LANGUAGE_UNDETERMINED) -> None:
        self.value[language] = value

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "value": dict(self.value)}

    @classmethod
    def from_dict(cls, attribute_id: str, data: dict[str, Any]) -> CDFAttribute:
        value = data.get("value", {})
        if not isinstance(value, dict):
            value = {LANGUAGE_UNDETERMINED: value}
        return cls(id=attribute_id, type=data.get("type", "string"), value=dict(value))


@dataclass
class CDFObject:
    """One syndicated unit."""

    uuid: str
    type: str
    origin: str
    created: str
    modified: str
    attributes: dict[str, CDFAttribute] = field(default_factory=dict)
    dependencies: dict[str, str] = field(default_factory=dict)
    module_dependencies: list[str] = field(default_factory=list)
    # Set once the ingestion engine has checked this object's modules.
    processed_dependencies: bool = field(default=False, compare=False, repr=False)

    # -- attributes ------------------------------------------------------

    def add_attribute(
        self,
        attribute_id: str,
        attribute_type: str,
        value: Any = None,
        language: str = LANGUAGE_UNDETERMINED,
    ) -> CDFAttribute:
        attribute = self.attributes.get(attribute_id)
        if attribute is None:
            attribute = CDFAttribute(id=attribute_id, type=attribute_type)
            self.attributes[attribute_id] = attribute
        if value is not None:
            attribute.set_value(value, language)
        return attribute

    def get_attribute(self, attribute_id: str) -> CDFAttribute | None:
        return self.attributes.get(attribute_id)

    def get_attribute_value(self, attribute_id: str, language: str = LANGUAGE_UNDETERMINED) -> Any:
        attribute = self.attributes.get(attribute_id)
        if attribute is None:
            return None
        return attribute.get_value(language)

    def remove_attribute(self, attribute_id: str) -> None:
        self.attributes.pop(attribute_id, None)

    @property
    def hash(self) -> str | None:
        return self.get_attribute_value(HASH_ATTRIBUTE)

    @property
    def entity_type(self) -> str | None:
        return self.get_attribute_value(ENTITY_TYPE_ATTRIBUTE)

    def compute_hash(self) -> str:
        """Digest of the attribute payload, excluding the hash attribute itself."""
        payload = {
            name: attribute.to_dict()
            for name, attribute in self.attributes.items()
            if name != HASH_ATTRIBUTE
        }
        return compute_payload_hash(payload)

    def refresh_hash(self) -> str:
        """Recompute and store the ``hash`` attribute; returns the new value."""
        value = self.compute_hash()
        self.add_attribute(HASH_ATTRIBUTE, "keyword", value)
        return value

    # -- dependencies ----------------------------------------------------

    def has_processed_dependencies(self) -> bool:
        return self.processed_dependencies

    def mark_processed_dependencies(self) -> None:
        self.processed_dependencies = True

    # -- wire format -----------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "uuid": self.uuid,
            "type": self.type,
            "origin": self.origin,
            "created": self.created,
            "modified": self.modified,
            "attributes": {name: attr.to_dict() for name, attr in self.attributes.items()},
            "dependencies": dict(self.dependencies),
            "modules": list(self.module_dependencies),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CDFObject:
        try:
            uuid = data["uuid"]
            cdf_type = data["type"]
        except KeyError as exc:
            raise CdfError(f"CDF object is missing required key {exc.args[0]!r}.") from exc
        attributes = {
            name: CDFAttribute.from_dict(name, value)
            for name, value in (data.get("attributes") or {}).items()
        }
        return cls(
            uuid=uuid,
            type=cdf_type,
            origin=data.get("origin", ""),
            created=data.get("created", ""),
            modified=data.get("modified", ""),
            attributes=attributes,
            dependencies=dict(data.get("dependencies") or {}),
            module_dependencies=list(data.get("modules") or []),
        )


class CDFDocument:
    """Insertion-ordered, UUID-keyed collection of CDF objects."""

    def __init__(self, *objects: CDFObject, scroll_id: str | None = None) -> None:
        self._entities: dict[str, CDFObject] = {}
        self.scroll_id = scroll_id
        for cdf in objects:
            self.add_entity(cdf)

    def has_entities(self) -> bool:
        return bool(self._entities)

    def get_entities(self) -> dict[str, CDFObject]:
        """UUID → object mapping (a copy; mutate through the document API)."""
        return dict(self._entities)

    def uuids(self) -> list[str]:
        return list(self._entities)

    def has_entity(self, uuid: str) -> bool:
        return uuid in self._entities

    def get_entity(self, uuid: str) -> CDFObject | None:
        return self._entities.get(uuid)

    def add_entity(self, cdf: CDFObject) -> None:
        self._entities[cdf.uuid] = cdf

    def remove_entity(self, uuid: str) -> None:
        self._entities.pop(uuid, None)

    def merge(self, other: CDFDocument) -> CDFDocument:
        """Union keyed by UUID; objects from ``other`` win on conflict."""
        for uuid, cdf in other._entities.items():
            self._entities[uuid] = cdf
        if other.scroll_id is not None:
            self.scroll_id = other.scroll_id
        return self

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[CDFObject]:
        return iter(list(self._entities.values()))

    def __contains__(self, uuid: object) -> bool:
        return uuid in self._entities

    def __repr__(self) -> str:
        return f"CDFDocument(entities={len(self._entities)})"

    # -- wire format -----------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"entities": [cdf.to_dict() for cdf in self._entities.values()]}
        if self.scroll_id is not None:
            data["scroll_id"] = self.scroll_id
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CDFDocument:
        entities = data.get("entities")
        if entities is None:
            entities = []
        return cls(*(CDFObject.from_dict(item) for item in entities), scroll_id=data.get("scroll_id"))

    @classmethod
    def from_json(cls, payload: str) -> CDFDocument:
        return cls.from_dict(json.loads(payload))
