"""
Ticket record model.

Each of the eight ticket fields is held as a tagged FieldResult:
  FOUND      → normalized value
  NOT_FOUND  → rendered as ""
  INVALID    → matched but failed validation, rendered as "RESCAN NEEDED"

The sentinel strings only appear when a record is rendered with as_dict();
inside the pipeline the status is explicit.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional

# Exact keys, misspelling included: persisted data and the ticket store use them.
DATE = "DATE"
TIME = "TIME"
TERMINAL_ID = "TERMINAL ID"
LOCATION = "LOCATION"
NO_TICKETS = "NO. TICKETS"
TOTAL_AMOUNT = "TOTAL AMOUNT"
TRACE_NO = "TRACE NO"
REFERENCE_NO = "REFFERENCE NO"

FIELD_NAMES = (
    DATE,
    TIME,
    TERMINAL_ID,
    LOCATION,
    NO_TICKETS,
    TOTAL_AMOUNT,
    TRACE_NO,
    REFERENCE_NO,
)

RESCAN_NEEDED = "RESCAN NEEDED"
PLACEHOLDER = "--"


class FieldStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    INVALID = "invalid"


@dataclass(frozen=True)
class FieldResult:
    status: FieldStatus
    value: str = ""

    @classmethod
    def found(cls, value: str) -> "FieldResult":
        return cls(FieldStatus.FOUND, value)

    @classmethod
    def not_found(cls) -> "FieldResult":
        return cls(FieldStatus.NOT_FOUND)

    @classmethod
    def invalid(cls, value: str = "") -> "FieldResult":
        """value keeps the rejected candidate for debugging; it is never rendered."""
        return cls(FieldStatus.INVALID, value)

    @classmethod
    def from_display(cls, text: Optional[str]) -> "FieldResult":
        """Inverse of render(): "" / "--" → NOT_FOUND, "RESCAN NEEDED" → INVALID."""
        text = (text or "").strip()
        if not text or text == PLACEHOLDER:
            return cls.not_found()
        if text == RESCAN_NEEDED:
            return cls.invalid()
        return cls.found(text)

    @property
    def is_found(self) -> bool:
        return self.status is FieldStatus.FOUND

    def render(self) -> str:
        if self.status is FieldStatus.FOUND:
            return self.value
        if self.status is FieldStatus.INVALID:
            return RESCAN_NEEDED
        return ""


class TicketRecord(Mapping):
    """
    Immutable mapping of the eight field names to FieldResult.

    Fields not supplied at construction are NOT_FOUND.
    """

    __slots__ = ("_fields",)

    def __init__(self, fields: Optional[Mapping[str, FieldResult]] = None):
        fields = dict(fields or {})
        unknown = set(fields) - set(FIELD_NAMES)
        if unknown:
            raise KeyError(f"Unknown ticket fields: {sorted(unknown)}")
        object.__setattr__(self, "_fields", MappingProxyType({
            name: fields.get(name, FieldResult.not_found()) for name in FIELD_NAMES
        }))

    def __setattr__(self, key, value):
        raise AttributeError("TicketRecord is immutable")

    def __getitem__(self, name: str) -> FieldResult:
        return self._fields[name]

    def __iter__(self) -> Iterator[str]:
        return iter(FIELD_NAMES)

    def __len__(self) -> int:
        return len(FIELD_NAMES)

    def __eq__(self, other) -> bool:
        if isinstance(other, TicketRecord):
            return dict(self._fields) == dict(other._fields)
        return NotImplemented

    def __hash__(self):
        return hash(tuple(self._fields[name] for name in FIELD_NAMES))

    def __repr__(self) -> str:
        return f"TicketRecord({self.as_dict()!r})"

    def value(self, name: str) -> str:
        """Rendered value of one field."""
        return self._fields[name].render()

    def as_dict(self) -> Dict[str, str]:
        """Render every field to its display string, in field order."""
        return {name: self._fields[name].render() for name in FIELD_NAMES}

    @classmethod
    def from_dict(cls, data: Mapping[str, str]) -> "TicketRecord":
        """Rebuild a record from display strings (e.g. after manual edits)."""
        return cls({
            name: FieldResult.from_display(data.get(name))
            for name in FIELD_NAMES
        })
