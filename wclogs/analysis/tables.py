"""Player summary tables (damage, healing, deaths, interrupts)."""

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Any

from pydantic import ValidationError

from wclogs.wcl.models import PlayerEntry
from wclogs.wcl.report import fetch_table, parse_table_response

logger = logging.getLogger(__name__)


def parse_table(raw: Any) -> list[PlayerEntry]:
    """Table response (JSON string, wrapped dict or entry list) -> rows."""
    entries = []
    for entry in parse_table_response(raw):
        try:
            entries.append(PlayerEntry.model_validate(entry))
        except ValidationError:
            logger.debug("Skipping malformed table entry: %r", entry)
    return entries


def sort_by_total(entries: Iterable[PlayerEntry]) -> list[PlayerEntry]:
    return sorted(entries, key=lambda e: e.total, reverse=True)


def top(entries: Sequence[PlayerEntry], n: int) -> list[PlayerEntry]:
    """First ``n`` rows; ``n <= 0`` or past the end returns everything."""
    if n <= 0 or n >= len(entries):
        return list(entries)
    return list(entries[:n])


def filter_by_name(entries: Iterable[PlayerEntry], name: str) -> list[PlayerEntry]:
    wanted = name.casefold()
    return [e for e in entries if e.name.casefold() == wanted]


def class_breakdown(entries: Iterable[PlayerEntry]) -> dict[str, int]:
    """Players per class, most common first."""
    counts = Counter(e.type or "Unknown" for e in entries)
    return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))


def table_sum(entries: Iterable[PlayerEntry]) -> float:
    return sum(e.total for e in entries)


async def load_table(wcl, report_code: str, fight_id: int, kind: str) -> list[PlayerEntry]:
    """Fetch and parse one table, sorted by total descending."""
    return sort_by_total(parse_table(await fetch_table(wcl, report_code, fight_id, kind)))
