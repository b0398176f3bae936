"""Normalized combat-log events and filters that narrow a mixed stream.

One flat, frozen model covers every event kind. Which optional fields are
meaningful depends on ``kind``:

    damage / heal      source_id, target_id, ability_id, amount
    cast / begincast   source_id (caster), target_id, ability_id
    interrupt          source_id (interrupter), target_id (interrupted actor),
                       ability_id (the interrupt spell)
    death              target_id (who died), killer_id, killing_ability_id

Event types outside these kinds (buffs, resources, ...) are kept with their raw
``type`` and ``kind`` is None.
"""

import logging
from collections.abc import Iterable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

logger = logging.getLogger(__name__)


class EventKind(StrEnum):
    DAMAGE = "damage"
    HEAL = "heal"
    CAST = "cast"
    BEGINCAST = "begincast"
    DEATH = "death"
    INTERRUPT = "interrupt"


CAST_KINDS = frozenset({EventKind.CAST, EventKind.BEGINCAST})


class Event(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: float
    type: str
    source_id: int | None = Field(None, alias="sourceID")
    target_id: int | None = Field(None, alias="targetID")
    ability_id: int | None = Field(None, alias="abilityGameID")
    amount: int | None = None
    fight: int | None = None
    killer_id: int | None = Field(None, alias="killerID")
    killing_ability_id: int | None = Field(None, alias="killingAbilityGameID")
    target_name: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _embedded_target(cls, data: Any) -> Any:
        # Some queries embed the target actor instead of (or as well as) targetID
        if isinstance(data, dict) and isinstance(data.get("target"), dict):
            target = data["target"]
            data = {**data, "target_name": target.get("name")}
            if data.get("targetID") is None and target.get("id") is not None:
                data["targetID"] = target["id"]
        return data

    @property
    def kind(self) -> EventKind | None:
        try:
            return EventKind(self.type)
        except ValueError:
            return None

    @property
    def effect(self) -> int:
        """Amount for damage/heal events; zero when the service omitted it."""
        return self.amount or 0


def parse_events(raw_events: Iterable[dict]) -> list[Event]:
    """Validate raw event dicts, dropping records without a timestamp or type."""
    events: list[Event] = []
    dropped = 0
    for raw in raw_events:
        try:
            events.append(Event.model_validate(raw))
        except ValidationError:
            dropped += 1
    if dropped:
        logger.debug("Dropped %d malformed events out of %d", dropped, dropped + len(events))
    return events


def of_kind(events: Iterable[Event], *kinds: EventKind) -> list[Event]:
    wanted = set(kinds)
    return [e for e in events if e.kind in wanted]


def interrupts(events: Iterable[Event]) -> list[Event]:
    return of_kind(events, EventKind.INTERRUPT)


def casts(events: Iterable[Event]) -> list[Event]:
    return of_kind(events, *CAST_KINDS)


def deaths(events: Iterable[Event]) -> list[Event]:
    return of_kind(events, EventKind.DEATH)


def damage(events: Iterable[Event]) -> list[Event]:
    return of_kind(events, EventKind.DAMAGE)


def heals(events: Iterable[Event]) -> list[Event]:
    return of_kind(events, EventKind.HEAL)
