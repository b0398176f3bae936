"""Interrupt-to-cast correlation.

Interrupt events and hostile cast events come from separate queries with no
link between them. A cast counts as stopped when an interrupt landed on the
casting NPC within ``window_ms`` of the cast timestamp.
"""

import logging
from bisect import bisect_left
from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from wclogs.analysis.events import Event, casts, parse_events
from wclogs.analysis.names import NameCache
from wclogs.wcl.events import MAX_PAGES, fetch_all_events
from wclogs.wcl.models import Fight

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MS = 300.0
UNKNOWN_INTERRUPTER = "Unknown"


@dataclass(frozen=True)
class StoppedCast:
    caster_name: str
    interrupted_by: str
    timestamp: float  # fight-relative ms


@dataclass(frozen=True)
class MissedCast:
    caster_name: str
    timestamp: float  # fight-relative ms


@dataclass(frozen=True)
class CastAnalysis:
    """Outcome of every correlated cast of one ability, keyed by its name."""

    ability_name: str
    interrupted_by: Mapping[str, int]
    stopped_casts: tuple[StoppedCast, ...]
    missed_casts: tuple[MissedCast, ...]

    @property
    def stopped_count(self) -> int:
        return len(self.stopped_casts)

    @property
    def missed_count(self) -> int:
        return len(self.missed_casts)

    @property
    def total_casts(self) -> int:
        return self.stopped_count + self.missed_count

    @property
    def stopped_pct(self) -> float:
        return self.stopped_count / self.total_casts * 100 if self.total_casts else 0.0


@dataclass(frozen=True)
class CastMatch:
    cast: Event
    interrupt: Event | None

    @property
    def stopped(self) -> bool:
        return self.interrupt is not None


@dataclass(frozen=True)
class Effectiveness:
    total_interrupted: int
    total_completed: int

    @property
    def total_casts(self) -> int:
        return self.total_interrupted + self.total_completed

    @property
    def pct(self) -> float:
        if self.total_casts == 0:
            return 0.0
        return self.total_interrupted / self.total_casts * 100


def index_interrupts(interrupt_events: Iterable[Event]) -> dict[int, list[Event]]:
    """Interrupts grouped by interrupted actor, each list in timestamp order."""
    index: dict[int, list[Event]] = defaultdict(list)
    for interrupt in interrupt_events:
        if interrupt.target_id is not None:
            index[interrupt.target_id].append(interrupt)
    for npc_interrupts in index.values():
        # stable: equal timestamps keep input order
        npc_interrupts.sort(key=lambda e: e.timestamp)
    return dict(index)


def _earliest_within(
    npc_interrupts: Sequence[Event], timestamp: float, window_ms: float,
) -> Event | None:
    i = bisect_left(npc_interrupts, timestamp - window_ms, key=lambda e: e.timestamp)
    if i < len(npc_interrupts) and npc_interrupts[i].timestamp <= timestamp + window_ms:
        return npc_interrupts[i]
    return None


def match_casts(
    interrupt_events: Iterable[Event],
    cast_events: Iterable[Event],
    window_ms: float = DEFAULT_WINDOW_MS,
) -> list[CastMatch]:
    """Pair each relevant cast with the interrupt that stopped it, if any.

    Only casts from NPCs targeted by at least one interrupt are returned;
    casts without a source or ability ID are skipped. Output keeps input
    cast order. When several interrupts fall inside the window the earliest
    one is credited.
    """
    index = index_interrupts(interrupt_events)
    if not index:
        return []

    matches = []
    for cast in cast_events:
        if cast.source_id is None or cast.ability_id is None:
            continue
        npc_interrupts = index.get(cast.source_id)
        if npc_interrupts is None:
            continue
        matches.append(CastMatch(
            cast=cast,
            interrupt=_earliest_within(npc_interrupts, cast.timestamp, window_ms),
        ))
    return matches


def fight_relative(timestamp: float, fight_start_time: float) -> float:
    """``timestamp - fight_start_time``, or the raw timestamp if that is negative."""
    relative = timestamp - fight_start_time
    if relative < 0:
        logger.warning(
            "Event at %.0fms precedes fight start %.0fms; clock bases may differ, "
            "reporting raw timestamp",
            timestamp, fight_start_time,
        )
        return timestamp
    return relative


async def correlate_interrupts_and_casts(
    interrupt_events: Sequence[Event],
    cast_events: Sequence[Event],
    fight_start_time: float,
    names: NameCache,
    *,
    window_ms: float = DEFAULT_WINDOW_MS,
) -> dict[str, CastAnalysis]:
    """Per-ability stopped/missed breakdown of hostile casts.

    Returns an empty dict when there are no interrupts or no casts from
    interrupted NPCs. Ability names are preloaded in one pass before the
    records are built.
    """
    matches = match_casts(interrupt_events, cast_events, window_ms)
    if not matches:
        return {}

    await names.preload_abilities(m.cast.ability_id for m in matches)

    stopped: dict[str, list[StoppedCast]] = defaultdict(list)
    missed: dict[str, list[MissedCast]] = defaultdict(list)
    interrupted_by: dict[str, Counter] = defaultdict(Counter)
    order: dict[str, None] = {}

    for match in matches:
        cast = match.cast
        ability_name = await names.resolve_ability(cast.ability_id)
        caster_name = names.resolve_actor(cast.source_id)
        timestamp = fight_relative(cast.timestamp, fight_start_time)
        order.setdefault(ability_name)

        if match.stopped:
            source_id = match.interrupt.source_id
            interrupter = (
                names.resolve_actor(source_id) if source_id is not None
                else UNKNOWN_INTERRUPTER
            )
            stopped[ability_name].append(StoppedCast(caster_name, interrupter, timestamp))
            interrupted_by[ability_name][interrupter] += 1
        else:
            missed[ability_name].append(MissedCast(caster_name, timestamp))

    analysis = {
        name: CastAnalysis(
            ability_name=name,
            interrupted_by=dict(interrupted_by[name]),
            stopped_casts=tuple(stopped[name]),
            missed_casts=tuple(missed[name]),
        )
        for name in order
    }
    logger.info(
        "Correlated %d casts across %d abilities (%d stopped)",
        len(matches), len(analysis), sum(a.stopped_count for a in analysis.values()),
    )
    return analysis


async def analyze_interrupts(
    wcl,
    names: NameCache,
    report_code: str,
    fight: Fight,
    interrupt_events: Sequence[Event],
    *,
    window_ms: float = DEFAULT_WINDOW_MS,
    max_pages: int = MAX_PAGES,
) -> dict[str, CastAnalysis]:
    """Fetch hostile casts for ``fight`` and correlate them with interrupts.

    A failing cast fetch propagates to the caller.
    """
    if not interrupt_events:
        return {}

    raw = await fetch_all_events(
        wcl, report_code, fight.id,
        start_time=fight.start_time,
        end_time=fight.end_time,
        data_type="Casts",
        hostility_type="Enemies",
        max_pages=max_pages,
    )
    cast_events = casts(parse_events(raw))
    logger.debug("Found %d hostile cast events to correlate", len(cast_events))

    return await correlate_interrupts_and_casts(
        interrupt_events, cast_events, fight.start_time, names, window_ms=window_ms,
    )


def summarize_effectiveness(analysis: Mapping[str, CastAnalysis]) -> Effectiveness:
    return Effectiveness(
        total_interrupted=sum(a.stopped_count for a in analysis.values()),
        total_completed=sum(a.missed_count for a in analysis.values()),
    )


def sort_by_casts(analysis: Mapping[str, CastAnalysis]) -> list[CastAnalysis]:
    return sorted(analysis.values(), key=lambda a: (-a.total_casts, a.ability_name))


def count_interrupters(interrupt_events: Iterable[Event], names: NameCache) -> Counter:
    """Interrupts per interrupting actor name."""
    counts: Counter = Counter()
    for event in interrupt_events:
        if event.source_id is None:
            counts[UNKNOWN_INTERRUPTER] += 1
        else:
            counts[names.resolve_actor(event.source_id)] += 1
    return counts


def count_interrupt_targets(interrupt_events: Iterable[Event], names: NameCache) -> Counter:
    """Interrupts per interrupted actor name."""
    counts: Counter = Counter()
    for event in interrupt_events:
        if event.target_name:
            counts[event.target_name] += 1
        elif event.target_id is not None:
            counts[names.resolve_actor(event.target_id)] += 1
        else:
            counts["Unknown Target"] += 1
    return counts


async def count_interrupt_abilities(
    interrupt_events: Sequence[Event], names: NameCache,
) -> Counter:
    """Uses per interrupt spell; the view shown when correlation is unavailable."""
    await names.preload_abilities(
        e.ability_id for e in interrupt_events if e.ability_id is not None
    )
    counts: Counter = Counter()
    for event in interrupt_events:
        if event.ability_id is None:
            counts["Unknown Ability"] += 1
        else:
            counts[await names.resolve_ability(event.ability_id)] += 1
    return counts
