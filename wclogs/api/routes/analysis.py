"""Live analysis endpoints: every request queries WCL through the shared factory."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query

from wclogs.analysis.orchestrator import (
    AnalysisError,
    run_death_analysis,
    run_interrupt_analysis,
    run_players,
    run_table,
)
from wclogs.api.deps import get_analysis_config, get_wcl_factory
from wclogs.api.models import (
    DeathReportResponse,
    InterruptReportResponse,
    PlayerResponse,
    TableReportResponse,
)
from wclogs.config import AnalysisConfig
from wclogs.wcl.auth import WCLAuthError
from wclogs.wcl.client import WCLAPIError
from wclogs.wcl.report import TABLE_DATA_TYPES, ReportNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["analysis"])


@contextmanager
def _upstream_errors(report_code: str) -> Iterator[None]:
    """Map analysis and WCL failures onto HTTP status codes."""
    try:
        yield
    except AnalysisError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None
    except ReportNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from None
    except (WCLAPIError, WCLAuthError, httpx.HTTPError) as exc:
        logger.exception("WCL request failed for report %s", report_code)
        raise HTTPException(
            status_code=502, detail=f"Warcraft Logs request failed: {exc}",
        ) from None


@router.get(
    "/{report_code}/fights/{fight_id}/interrupts",
    response_model=InterruptReportResponse,
)
async def fight_interrupts(
    report_code: str,
    fight_id: int,
    player: str | None = Query(None),
    factory=Depends(get_wcl_factory),
    config: AnalysisConfig = Depends(get_analysis_config),
):
    with _upstream_errors(report_code):
        async with factory() as wcl:
            report = await run_interrupt_analysis(
                wcl, report_code, fight_id, player, config=config,
            )
    return InterruptReportResponse.from_report(report)


@router.get(
    "/{report_code}/fights/{fight_id}/deaths",
    response_model=DeathReportResponse,
)
async def fight_deaths(
    report_code: str,
    fight_id: int,
    player: str | None = Query(None),
    factory=Depends(get_wcl_factory),
    config: AnalysisConfig = Depends(get_analysis_config),
):
    with _upstream_errors(report_code):
        async with factory() as wcl:
            report = await run_death_analysis(
                wcl, report_code, fight_id, player, config=config,
            )
    return DeathReportResponse.from_report(report)


@router.get(
    "/{report_code}/fights/{fight_id}/tables/{kind}",
    response_model=TableReportResponse,
)
async def fight_table(
    report_code: str,
    fight_id: int,
    kind: str,
    top: int = Query(0, ge=0),
    player: str | None = Query(None),
    factory=Depends(get_wcl_factory),
):
    if kind not in TABLE_DATA_TYPES:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown table '{kind}', expected one of: {', '.join(TABLE_DATA_TYPES)}",
        )
    with _upstream_errors(report_code):
        async with factory() as wcl:
            report = await run_table(
                wcl, report_code, fight_id, kind, player_name=player, top_n=top,
            )
    return TableReportResponse.from_report(report)


@router.get("/{report_code}/players", response_model=list[PlayerResponse])
async def report_players(report_code: str, factory=Depends(get_wcl_factory)):
    with _upstream_errors(report_code):
        async with factory() as wcl:
            players = await run_players(wcl, report_code)
    return [PlayerResponse.model_validate(p) for p in players]
