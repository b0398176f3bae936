"""Death timelines and per-death windowed aggregation.

For each death at ``T`` the events targeting the dying player inside
``[T - before_ms, T + after_ms]`` are fetched and folded into damage taken,
healing received and defensive casts.
"""

import logging
from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from wclogs.analysis.events import Event, EventKind, deaths, parse_events
from wclogs.analysis.names import NameCache, UNKNOWN_ABILITY, UNKNOWN_SOURCE
from wclogs.wcl.events import fetch_all_events
from wclogs.wcl.models import Fight

logger = logging.getLogger(__name__)

WINDOW_BEFORE_MS = 5000.0
WINDOW_AFTER_MS = 1000.0
WINDOW_EVENT_LIMIT = 100


@dataclass(frozen=True)
class DamageHit:
    seconds_before_death: float  # negative for hits after the death event
    amount: int
    source_name: str
    ability_name: str


@dataclass(frozen=True)
class DeathWindow:
    player_id: int
    death_timestamp: float
    window_start: float
    window_end: float
    total_damage: int = 0
    damage_event_count: int = 0
    total_healing: int = 0
    defensive_cast_count: int = 0
    damage_taken: tuple[DamageHit, ...] = ()
    event_count: int = 0

    @property
    def is_empty(self) -> bool:
        """No events at all; usually an instant death or environmental mechanic."""
        return self.event_count == 0


@dataclass(frozen=True)
class DeathRecord:
    player_name: str
    timestamp: float  # fight-relative ms
    killing_ability: str
    killed_by: str


@dataclass(frozen=True)
class DeathSummary:
    total_deaths: int
    timeline: dict[int, list[str]]  # whole seconds into fight -> player names
    killing_abilities: list[tuple[str, int]]  # most lethal first


@dataclass(frozen=True)
class PlayerDeath:
    player_id: int
    death_number: int
    timestamp: float  # report clock
    survival_ms: float
    survival_pct: float
    killing_ability: str
    killed_by: str


async def aggregate_death_window(
    events: Iterable[Event],
    player_id: int,
    death_timestamp: float,
    names: NameCache,
    *,
    window_start: float,
    window_end: float,
) -> DeathWindow:
    """Fold the events of one death window into totals.

    Damage without an amount counts as a zero hit. Casts count as defensive
    only when the dying player cast them.
    """
    events = list(events)
    total_damage = 0
    total_healing = 0
    defensive = 0
    hits: list[DamageHit] = []

    damage_events = [e for e in events if e.kind is EventKind.DAMAGE]
    await names.preload_abilities(
        e.ability_id for e in damage_events if e.ability_id is not None
    )

    for event in events:
        kind = event.kind
        if kind is EventKind.DAMAGE:
            total_damage += event.effect
            ability_name = (
                await names.resolve_ability(event.ability_id)
                if event.ability_id is not None else UNKNOWN_ABILITY
            )
            source_name = (
                names.resolve_actor(event.source_id)
                if event.source_id is not None else UNKNOWN_SOURCE
            )
            hits.append(DamageHit(
                seconds_before_death=(death_timestamp - event.timestamp) / 1000,
                amount=event.effect,
                source_name=source_name,
                ability_name=ability_name,
            ))
        elif kind is EventKind.HEAL:
            total_healing += event.effect
        elif kind in (EventKind.CAST, EventKind.BEGINCAST) and event.source_id == player_id:
            defensive += 1

    return DeathWindow(
        player_id=player_id,
        death_timestamp=death_timestamp,
        window_start=window_start,
        window_end=window_end,
        total_damage=total_damage,
        damage_event_count=len(hits),
        total_healing=total_healing,
        defensive_cast_count=defensive,
        damage_taken=tuple(hits),
        event_count=len(events),
    )


async def analyze_death_window(
    wcl,
    names: NameCache,
    report_code: str,
    fight_id: int,
    player_id: int,
    death_timestamp: float,
    *,
    before_ms: float = WINDOW_BEFORE_MS,
    after_ms: float = WINDOW_AFTER_MS,
    limit: int = WINDOW_EVENT_LIMIT,
) -> DeathWindow:
    """One request for every event targeting ``player_id`` around its death."""
    window_start = death_timestamp - before_ms
    window_end = death_timestamp + after_ms

    # Single page on purpose: the window is small and capped by ``limit``
    raw = await fetch_all_events(
        wcl, report_code, fight_id,
        start_time=window_start,
        end_time=window_end,
        target_id=player_id,
        limit=limit,
        max_pages=1,
    )
    window = await aggregate_death_window(
        parse_events(raw), player_id, death_timestamp, names,
        window_start=window_start, window_end=window_end,
    )
    logger.debug(
        "Death window for actor %d at %.0f: %d events, %d damage, %d healing",
        player_id, death_timestamp, window.event_count,
        window.total_damage, window.total_healing,
    )
    return window


async def healing_received(
    wcl, report_code: str, fight_id: int, player_id: int,
    start_time: float, end_time: float,
) -> int:
    """Total healing landed on ``player_id`` within ``[start_time, end_time]``."""
    raw = await fetch_all_events(
        wcl, report_code, fight_id,
        start_time=start_time,
        end_time=end_time,
        data_type="Healing",
        target_id=player_id,
    )
    return sum(e.effect for e in parse_events(raw) if e.kind is EventKind.HEAL)


async def defensive_casts(
    wcl, report_code: str, fight_id: int, player_id: int,
    start_time: float, end_time: float,
) -> int:
    """Casts and cast starts by ``player_id`` within ``[start_time, end_time]``."""
    raw = await fetch_all_events(
        wcl, report_code, fight_id,
        start_time=start_time,
        end_time=end_time,
        data_type="Casts",
        source_id=player_id,
    )
    return sum(
        1 for e in parse_events(raw)
        if e.kind in (EventKind.CAST, EventKind.BEGINCAST)
    )


def _victim_name(event: Event, names: NameCache) -> str:
    if event.target_id is None:
        return "Unknown"
    return names.resolve_actor(event.target_id)


async def death_records(
    death_events: Sequence[Event], fight: Fight, names: NameCache,
) -> list[DeathRecord]:
    await names.preload_abilities(
        e.killing_ability_id for e in death_events if e.killing_ability_id is not None
    )
    records = []
    for event in deaths(death_events):
        ability, source = await names.format_killing_info(
            event.killer_id, event.killing_ability_id,
        )
        records.append(DeathRecord(
            player_name=_victim_name(event, names),
            timestamp=fight.relative(event.timestamp),
            killing_ability=ability,
            killed_by=source,
        ))
    return records


async def summarize_deaths(
    death_events: Sequence[Event], fight: Fight, names: NameCache,
) -> DeathSummary:
    """Fight-wide view: who died when, and which abilities did the killing."""
    timeline: dict[int, list[str]] = defaultdict(list)
    ability_ids: Counter = Counter()
    total = 0

    for event in deaths(death_events):
        total += 1
        second = round(fight.relative(event.timestamp) / 1000)
        timeline[second].append(_victim_name(event, names))
        if event.killing_ability_id is not None:
            ability_ids[event.killing_ability_id] += 1

    await names.preload_abilities(ability_ids)
    killing_abilities: Counter = Counter()
    for ability_id, count in ability_ids.items():
        killing_abilities[await names.resolve_ability(ability_id)] += count

    return DeathSummary(
        total_deaths=total,
        timeline=dict(sorted(timeline.items())),
        killing_abilities=sorted(
            killing_abilities.items(), key=lambda item: (-item[1], item[0]),
        ),
    )


async def player_deaths(
    death_events: Sequence[Event], fight: Fight, player_id: int, names: NameCache,
) -> list[PlayerDeath]:
    """Each death of ``player_id`` with survival time and killing blow."""
    duration = fight.duration_ms
    result = []
    for event in deaths(death_events):
        if event.target_id != player_id:
            continue
        survival = fight.relative(event.timestamp)
        ability, source = await names.format_killing_info(
            event.killer_id, event.killing_ability_id,
        )
        result.append(PlayerDeath(
            player_id=player_id,
            death_number=len(result) + 1,
            timestamp=event.timestamp,
            survival_ms=survival,
            survival_pct=survival / duration * 100 if duration > 0 else 0.0,
            killing_ability=ability,
            killed_by=source,
        ))
    return result
