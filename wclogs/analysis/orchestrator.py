"""End-to-end analysis runs for one report fight.

Each run owns a fresh NameCache. Fight lookup, actor preload and the primary
event fetch are hard requirements; the follow-up queries (hostile casts,
per-death narrow queries) degrade to partial results when they fail.
"""

import logging
from dataclasses import dataclass, field

import httpx

from wclogs.analysis.deaths import (
    DeathRecord,
    DeathSummary,
    DeathWindow,
    PlayerDeath,
    analyze_death_window,
    death_records,
    defensive_casts,
    healing_received,
    player_deaths,
    summarize_deaths,
)
from wclogs.analysis.events import Event, deaths, interrupts, parse_events
from wclogs.analysis.interrupts import (
    CastAnalysis,
    Effectiveness,
    analyze_interrupts,
    count_interrupt_abilities,
    count_interrupt_targets,
    count_interrupters,
    sort_by_casts,
    summarize_effectiveness,
)
from wclogs.analysis.names import NameCache
from wclogs.analysis.tables import (
    class_breakdown,
    filter_by_name,
    load_table,
    table_sum,
    top,
)
from wclogs.config import AnalysisConfig
from wclogs.wcl.auth import WCLAuthError
from wclogs.wcl.client import WCLAPIError
from wclogs.wcl.events import fetch_all_events
from wclogs.wcl.models import Actor, Fight, PlayerEntry
from wclogs.wcl.report import (
    ReportNotFoundError,
    fetch_actors,
    fetch_fights,
    validate_query_variables,
    validate_report_code,
)

logger = logging.getLogger(__name__)

# Failures of a follow-up query that leave the rest of a run usable
UPSTREAM_ERRORS = (WCLAPIError, WCLAuthError, httpx.HTTPError, ReportNotFoundError)


class AnalysisError(Exception):
    """Base class for analysis failures the caller can report to a user."""


class FightNotFoundError(AnalysisError):
    def __init__(self, report_code: str, fight_id: int) -> None:
        self.report_code = report_code
        self.fight_id = fight_id
        super().__init__(f"fight {fight_id} not found in report {report_code}")


class PlayerNotFoundError(AnalysisError):
    def __init__(self, name: str, suggestions: list[str] | None = None) -> None:
        self.name = name
        self.suggestions = suggestions or []
        message = f"player '{name}' not found"
        if self.suggestions:
            message += f" (did you mean: {', '.join(self.suggestions)}?)"
        super().__init__(message)


@dataclass
class InterruptReport:
    report_code: str
    fight: Fight
    player_name: str | None
    interrupt_count: int
    interrupters: list[tuple[str, int]]
    targets: list[tuple[str, int]]
    casts: list[CastAnalysis]
    effectiveness: Effectiveness
    abilities_used: list[tuple[str, int]] = field(default_factory=list)
    correlation_error: str | None = None

    @property
    def degraded(self) -> bool:
        return self.correlation_error is not None or not self.casts


@dataclass
class DeathDetail:
    death: PlayerDeath
    window: DeathWindow | None = None
    healing_received: int | None = None
    defensive_casts: int | None = None
    errors: list[str] = field(default_factory=list)


@dataclass
class DeathReport:
    report_code: str
    fight: Fight
    player_name: str | None
    summary: DeathSummary
    deaths: list[DeathRecord]
    player_deaths: list[DeathDetail] = field(default_factory=list)


@dataclass
class TableReport:
    report_code: str
    fight_id: int
    kind: str
    entries: list[PlayerEntry]
    total: float
    classes: dict[str, int]


async def find_fight(wcl, report_code: str, fight_id: int) -> Fight:
    for fight in await fetch_fights(wcl, report_code):
        if fight.id == fight_id:
            return fight
    raise FightNotFoundError(report_code, fight_id)


def resolve_player(names: NameCache, player_name: str) -> int:
    player_id = names.find_player(player_name)
    if player_id is None:
        raise PlayerNotFoundError(player_name, names.suggest_players(player_name))
    return player_id


async def _prepare(
    wcl, report_code: str, fight_id: int, player_name: str | None,
    config: AnalysisConfig,
) -> tuple[Fight, NameCache, int | None]:
    validate_query_variables(report_code, fight_id)
    fight = await find_fight(wcl, report_code, fight_id)
    logger.info(
        "Analyzing %s fight %d: %s (%.0fs, kill=%s)",
        report_code, fight_id, fight.name, fight.duration_ms / 1000, fight.kill,
    )

    names = NameCache(wcl, concurrency=config.lookup_concurrency)
    await names.preload_actors(report_code)

    player_id = resolve_player(names, player_name) if player_name else None
    return fight, names, player_id


async def run_interrupt_analysis(
    wcl,
    report_code: str,
    fight_id: int,
    player_name: str | None = None,
    *,
    config: AnalysisConfig | None = None,
) -> InterruptReport:
    config = config or AnalysisConfig()
    fight, names, player_id = await _prepare(wcl, report_code, fight_id, player_name, config)

    raw = await fetch_all_events(
        wcl, report_code, fight.id,
        start_time=fight.start_time,
        end_time=fight.end_time,
        data_type="Interrupts",
        source_id=player_id,
        max_pages=config.max_event_pages,
    )
    interrupt_events: list[Event] = interrupts(parse_events(raw))
    logger.info("Found %d interrupts in %s fight %d", len(interrupt_events), report_code, fight_id)

    correlation_error = None
    try:
        analysis = await analyze_interrupts(
            wcl, names, report_code, fight, interrupt_events,
            window_ms=config.interrupt_window_ms,
            max_pages=config.max_event_pages,
        )
    except UPSTREAM_ERRORS as exc:
        logger.warning(
            "Cast correlation failed for %s fight %d, falling back to abilities used: %s",
            report_code, fight_id, exc,
        )
        analysis = {}
        correlation_error = str(exc)

    abilities_used: list[tuple[str, int]] = []
    if not analysis and interrupt_events:
        abilities_used = (await count_interrupt_abilities(interrupt_events, names)).most_common()

    return InterruptReport(
        report_code=report_code,
        fight=fight,
        player_name=names.resolve_actor(player_id) if player_id is not None else None,
        interrupt_count=len(interrupt_events),
        interrupters=count_interrupters(interrupt_events, names).most_common(),
        targets=count_interrupt_targets(interrupt_events, names).most_common(),
        casts=sort_by_casts(analysis),
        effectiveness=summarize_effectiveness(analysis),
        abilities_used=abilities_used,
        correlation_error=correlation_error,
    )


async def _death_detail(
    wcl, names: NameCache, report_code: str, fight: Fight, death: PlayerDeath,
    config: AnalysisConfig,
) -> DeathDetail:
    detail = DeathDetail(death=death)
    try:
        detail.window = await analyze_death_window(
            wcl, names, report_code, fight.id, death.player_id, death.timestamp,
            before_ms=config.death_window_before_ms,
            after_ms=config.death_window_after_ms,
            limit=config.death_event_limit,
        )
    except UPSTREAM_ERRORS as exc:
        logger.warning("Death window query failed for death #%d: %s", death.death_number, exc)
        detail.errors.append(f"events around death: {exc}")

    # Narrow queries cover the lead-up only, clamped to the fight start
    start = max(death.timestamp - config.death_window_before_ms, fight.start_time)
    try:
        detail.healing_received = await healing_received(
            wcl, report_code, fight.id, death.player_id, start, death.timestamp,
        )
    except UPSTREAM_ERRORS as exc:
        logger.warning("Healing query failed for death #%d: %s", death.death_number, exc)
        detail.errors.append(f"healing received: {exc}")
    try:
        detail.defensive_casts = await defensive_casts(
            wcl, report_code, fight.id, death.player_id, start, death.timestamp,
        )
    except UPSTREAM_ERRORS as exc:
        logger.warning("Defensive query failed for death #%d: %s", death.death_number, exc)
        detail.errors.append(f"defensive casts: {exc}")
    return detail


async def run_death_analysis(
    wcl,
    report_code: str,
    fight_id: int,
    player_name: str | None = None,
    *,
    config: AnalysisConfig | None = None,
) -> DeathReport:
    config = config or AnalysisConfig()
    fight, names, player_id = await _prepare(wcl, report_code, fight_id, player_name, config)

    raw = await fetch_all_events(
        wcl, report_code, fight.id,
        start_time=fight.start_time,
        end_time=fight.end_time,
        data_type="Deaths",
        target_id=player_id,
        max_pages=config.max_event_pages,
    )
    death_events = deaths(parse_events(raw))
    logger.info("Found %d deaths in %s fight %d", len(death_events), report_code, fight_id)

    report = DeathReport(
        report_code=report_code,
        fight=fight,
        player_name=names.resolve_actor(player_id) if player_id is not None else None,
        summary=await summarize_deaths(death_events, fight, names),
        deaths=await death_records(death_events, fight, names),
    )
    if player_id is None:
        return report

    for death in await player_deaths(death_events, fight, player_id, names):
        report.player_deaths.append(
            await _death_detail(wcl, names, report_code, fight, death, config)
        )
    return report


async def run_table(
    wcl,
    report_code: str,
    fight_id: int,
    kind: str,
    *,
    player_name: str | None = None,
    top_n: int = 0,
) -> TableReport:
    validate_query_variables(report_code, fight_id)
    entries = await load_table(wcl, report_code, fight_id, kind)
    total = table_sum(entries)
    classes = class_breakdown(entries)

    if player_name:
        matched = filter_by_name(entries, player_name)
        if not matched:
            raise PlayerNotFoundError(player_name, _suggest_from_entries(entries, player_name))
        entries = matched
    else:
        entries = top(entries, top_n)

    return TableReport(
        report_code=report_code,
        fight_id=fight_id,
        kind=kind,
        entries=entries,
        total=total,
        classes=classes,
    )


def _suggest_from_entries(entries: list[PlayerEntry], name: str, limit: int = 3) -> list[str]:
    wanted = name.casefold()
    return [
        e.name for e in entries
        if wanted in e.name.casefold() or e.name.casefold() in wanted
    ][:limit]


async def run_players(wcl, report_code: str) -> list[Actor]:
    """Players in a report, sorted by name."""
    validate_report_code(report_code)
    players = [a for a in await fetch_actors(wcl, report_code) if a.is_player]
    if not players:
        raise AnalysisError(f"no players found in report {report_code}")
    return sorted(players, key=lambda a: a.name.casefold())
