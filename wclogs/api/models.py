"""Pydantic response models for the analysis API and ``--json`` output."""

from pydantic import BaseModel, ConfigDict

from wclogs.analysis.orchestrator import (
    DeathReport,
    InterruptReport,
    TableReport,
)


class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class FightResponse(_FromAttributes):
    id: int
    name: str
    start_time: int
    end_time: int
    duration_ms: int
    kill: bool | None
    fight_percentage: float | None


class StoppedCastResponse(_FromAttributes):
    caster_name: str
    interrupted_by: str
    timestamp: float


class MissedCastResponse(_FromAttributes):
    caster_name: str
    timestamp: float


class CastAnalysisResponse(_FromAttributes):
    ability_name: str
    total_casts: int
    stopped_count: int
    missed_count: int
    stopped_pct: float
    interrupted_by: dict[str, int]
    stopped_casts: list[StoppedCastResponse]
    missed_casts: list[MissedCastResponse]


class EffectivenessResponse(_FromAttributes):
    total_interrupted: int
    total_completed: int
    total_casts: int
    pct: float


class InterruptReportResponse(_FromAttributes):
    report_code: str
    fight: FightResponse
    player_name: str | None
    interrupt_count: int
    interrupters: list[tuple[str, int]]
    targets: list[tuple[str, int]]
    casts: list[CastAnalysisResponse]
    effectiveness: EffectivenessResponse
    abilities_used: list[tuple[str, int]]
    correlation_error: str | None
    degraded: bool

    @classmethod
    def from_report(cls, report: InterruptReport) -> "InterruptReportResponse":
        return cls.model_validate(report)


class DamageHitResponse(_FromAttributes):
    seconds_before_death: float
    amount: int
    source_name: str
    ability_name: str


class DeathWindowResponse(_FromAttributes):
    player_id: int
    death_timestamp: float
    window_start: float
    window_end: float
    total_damage: int
    damage_event_count: int
    total_healing: int
    defensive_cast_count: int
    damage_taken: list[DamageHitResponse]
    event_count: int
    is_empty: bool


class PlayerDeathResponse(_FromAttributes):
    player_id: int
    death_number: int
    timestamp: float
    survival_ms: float
    survival_pct: float
    killing_ability: str
    killed_by: str


class DeathDetailResponse(_FromAttributes):
    death: PlayerDeathResponse
    window: DeathWindowResponse | None
    healing_received: int | None
    defensive_casts: int | None
    errors: list[str]


class DeathRecordResponse(_FromAttributes):
    player_name: str
    timestamp: float
    killing_ability: str
    killed_by: str


class DeathSummaryResponse(_FromAttributes):
    total_deaths: int
    timeline: dict[int, list[str]]
    killing_abilities: list[tuple[str, int]]


class DeathReportResponse(_FromAttributes):
    report_code: str
    fight: FightResponse
    player_name: str | None
    summary: DeathSummaryResponse
    deaths: list[DeathRecordResponse]
    player_deaths: list[DeathDetailResponse]

    @classmethod
    def from_report(cls, report: DeathReport) -> "DeathReportResponse":
        return cls.model_validate(report)


class PlayerEntryResponse(_FromAttributes):
    name: str
    id: int
    type: str
    item_level: float
    total: float
    active_time: int
    per_second: float
    percent: float


class TableReportResponse(BaseModel):
    report_code: str
    fight_id: int
    kind: str
    total: float
    classes: dict[str, int]
    entries: list[PlayerEntryResponse]

    @classmethod
    def from_report(cls, report: TableReport) -> "TableReportResponse":
        return cls(
            report_code=report.report_code,
            fight_id=report.fight_id,
            kind=report.kind,
            total=report.total,
            classes=report.classes,
            entries=[
                PlayerEntryResponse(
                    name=e.name,
                    id=e.id,
                    type=e.type,
                    item_level=e.item_level,
                    total=e.total,
                    active_time=e.active_time,
                    per_second=e.per_second,
                    percent=e.percent_of(report.total),
                )
                for e in report.entries
            ],
        )


class PlayerResponse(_FromAttributes):
    id: int
    name: str
    sub_type: str | None
    server: str | None
