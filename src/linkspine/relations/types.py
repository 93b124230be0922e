"""Relationship link types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from linkspine.core.errors import InvalidLinkError


class OnDelete(str, Enum):
    """Referential-integrity policy applied when a referenced record is deleted."""

    NULL = "null"  # clear the referencing field, keep the referencing record
    CASCADE = "cascade"  # delete the referencing record, recursively

    @classmethod
    def parse(cls, value: OnDelete | str | None) -> OnDelete | None:
        """Accept an OnDelete, its snake_case name, or None."""
        if value is None or isinstance(value, OnDelete):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = [member.value for member in cls]
            raise InvalidLinkError(
                f"Invalid on_delete value ({value!r}). Valid values are: {valid}"
            ) from None


@dataclass(frozen=True)
class RelationLink:
    """
    One directed relationship edge.

    A field named ``field_name`` on some owning record holds an identity
    value that references a record in ``collection``. Which side is the
    owner depends on the map the link lives in:

    - in ``reverse_links[C]``, ``collection`` is the *referencing*
      collection and ``field_name`` is its field pointing at C;
    - in ``forward_links[C]``, ``field_name`` is a field on C and
      ``collection`` is the *referenced* collection.
    """

    field_name: str
    collection: str
    on_delete: OnDelete | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "field_name": self.field_name,
            "collection": self.collection,
            "on_delete": self.on_delete.value if self.on_delete else None,
        }


__all__ = [
    "OnDelete",
    "RelationLink",
]
