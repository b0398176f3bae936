"""Report-level lookups: fights, actors, single abilities and summary tables."""

import json
import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from wclogs.wcl.client import WCLAPIError
from wclogs.wcl.models import Ability, Actor, Fight
from wclogs.wcl.queries import (
    ABILITY_LOOKUP,
    REPORT_ACTORS,
    REPORT_FIGHTS,
    REPORT_TABLE,
    with_rate_limit,
)

logger = logging.getLogger(__name__)

TABLE_DATA_TYPES = {
    "damage": "DamageDone",
    "healing": "Healing",
    "deaths": "Deaths",
    "interrupts": "Interrupts",
}

MIN_REPORT_CODE_LENGTH = 6


class ReportNotFoundError(LookupError):
    """The service returned no report, or no section the query asked for."""


def validate_report_code(report_code: str) -> None:
    if not report_code:
        raise ValueError("report code cannot be empty")
    if len(report_code) < MIN_REPORT_CODE_LENGTH:
        raise ValueError(
            f"report code '{report_code}' is too short "
            f"(must be at least {MIN_REPORT_CODE_LENGTH} characters)"
        )


def validate_query_variables(report_code: str, fight_id: int) -> None:
    """Reject obviously malformed report codes and fight IDs before any request."""
    validate_report_code(report_code)
    if fight_id <= 0:
        raise ValueError(f"fight ID must be greater than 0, got: {fight_id}")


def report_section(data: dict[str, Any], report_code: str) -> dict[str, Any]:
    """``reportData.report`` of a response; ReportNotFoundError when absent."""
    report = (data.get("reportData") or {}).get("report")
    if report is None:
        raise ReportNotFoundError(f"report {report_code} not found")
    return report


def parse_model(model: type[BaseModel], payload: Any) -> Any:
    """Validate service data; a malformed payload is an upstream failure."""
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise WCLAPIError(
            f"malformed {model.__name__} in WCL response "
            f"({exc.error_count()} validation errors)"
        ) from exc


async def fetch_fights(wcl, report_code: str) -> list[Fight]:
    data = await wcl.query(
        with_rate_limit(REPORT_FIGHTS), variables={"code": report_code},
    )
    fights = report_section(data, report_code).get("fights") or []
    return [parse_model(Fight, f) for f in fights]


async def fetch_actors(wcl, report_code: str) -> list[Actor]:
    """Every actor in the report: players, NPCs and pets."""
    data = await wcl.query(
        with_rate_limit(REPORT_ACTORS), variables={"code": report_code},
    )
    master_data = report_section(data, report_code).get("masterData")
    if master_data is None:
        raise ReportNotFoundError(f"no actor data found for report {report_code}")
    return [parse_model(Actor, a) for a in master_data.get("actors") or []]


async def fetch_ability(wcl, ability_id: int) -> Ability | None:
    """Single-ID game data lookup; None when the service does not know it."""
    data = await wcl.query(
        with_rate_limit(ABILITY_LOOKUP), variables={"abilityID": ability_id},
    )
    ability = (data.get("gameData") or {}).get("ability")
    if ability is None:
        return None
    return parse_model(Ability, ability)


def parse_table_response(raw: Any) -> list[dict]:
    """Parse a WCL table response, handling the JSON string/dict ambiguity.

    The service wraps entries as ``{"data": {"entries": [...]}, "totalTime": ...}``;
    some callers already hold the inner ``{"entries": [...]}`` dict.
    """
    if isinstance(raw, str):
        raw = json.loads(raw)
    if isinstance(raw, dict):
        inner = raw.get("data", raw)
        if isinstance(inner, dict):
            return inner.get("entries", [])
        return []
    if isinstance(raw, list):
        return raw
    return []


async def fetch_table(wcl, report_code: str, fight_id: int, kind: str) -> list[dict]:
    """Raw table entries for ``kind`` (damage, healing, deaths, interrupts)."""
    try:
        data_type = TABLE_DATA_TYPES[kind]
    except KeyError:
        raise ValueError(
            f"unsupported table type: {kind} "
            f"(expected one of {', '.join(TABLE_DATA_TYPES)})"
        ) from None

    data = await wcl.query(
        with_rate_limit(REPORT_TABLE),
        variables={"code": report_code, "fightIDs": [fight_id], "dataType": data_type},
    )
    raw = report_section(data, report_code).get("table")
    try:
        entries = parse_table_response(raw)
    except json.JSONDecodeError as exc:
        raise WCLAPIError(f"malformed {data_type} table in WCL response: {exc}") from exc
    logger.info(
        "Fetched %s table for %s fight %d: %d entries",
        data_type, report_code, fight_id, len(entries),
    )
    return entries
