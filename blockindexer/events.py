"""Events emitted by the chain, as handed to handlers."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, TypeVar, Union

from .errors import ChainError

E = TypeVar("E", bound="StaticEvent")

Fields = Union[Mapping[str, Any], Sequence[Any]]


class StaticEvent:
    """Base for typed events; subclasses name their pallet and event variant."""

    PALLET: ClassVar[str]
    EVENT: ClassVar[str]


@dataclass(frozen=True)
class ChainEvent:
    """One event of a block, with its position in the block's event list."""

    pallet_name: str
    variant_name: str
    index: int = 0
    fields: Fields = field(default_factory=dict)

    def as_event(self, event_type: type[E]) -> E | None:
        """Decode into ``event_type`` if this event is of that kind, else return None."""
        if not (isinstance(event_type, type) and issubclass(event_type, StaticEvent)):
            raise TypeError(f"{event_type!r} is not a StaticEvent subclass")
        pallet = getattr(event_type, "PALLET", None)
        variant = getattr(event_type, "EVENT", None)
        if pallet is None or variant is None:
            raise TypeError(f"{event_type.__name__} must define PALLET and EVENT")
        if (pallet, variant) != (self.pallet_name, self.variant_name):
            return None
        try:
            if isinstance(self.fields, Mapping):
                return event_type(**self.fields)
            return event_type(*self.fields)
        except (TypeError, ValueError) as exc:
            raise ChainError(
                f"cannot decode {self.pallet_name}.{self.variant_name} "
                f"as {event_type.__name__}: {exc}"
            ) from exc

    def field_values(self) -> Fields:
        """Return a copy of the event's field values, named or positional."""
        if isinstance(self.fields, Mapping):
            return dict(self.fields)
        return tuple(self.fields)