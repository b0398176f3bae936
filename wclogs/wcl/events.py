"""Paginated WCL events API fetcher."""

import logging
from collections.abc import AsyncIterator

from wclogs.wcl.models import EventPage
from wclogs.wcl.queries import REPORT_EVENTS, with_rate_limit
from wclogs.wcl.report import parse_model, report_section

logger = logging.getLogger(__name__)

MAX_PAGES = 100


async def fetch_events(
    wcl,
    report_code: str,
    fight_id: int,
    *,
    start_time: float | None = None,
    end_time: float | None = None,
    data_type: str | None = None,
    hostility_type: str | None = None,
    source_id: int | None = None,
    target_id: int | None = None,
    limit: int | None = None,
    max_pages: int = MAX_PAGES,
) -> AsyncIterator[list[dict]]:
    """Yield raw event pages for one fight, following ``nextPageTimestamp``.

    Args:
        wcl: WCLClient instance.
        report_code: WCL report code.
        fight_id: Fight ID within the report.
        start_time: Window start (report clock, ms). None = fight start.
        end_time: Window end (report clock, ms). None = fight end.
        data_type: WCL EventDataType (e.g. "Deaths", "Casts", "Interrupts").
        hostility_type: "Friendlies" (default on the service) or "Enemies".
        source_id: Optional actor source ID filter.
        target_id: Optional actor target ID filter.
        limit: Optional page size.
        max_pages: Maximum number of pages to fetch (safety limit).

    Yields:
        Lists of event dicts, one per API page.
    """
    query = with_rate_limit(REPORT_EVENTS)
    current_start = start_time
    total_fetched = 0
    page_count = 0

    while True:
        variables: dict = {"code": report_code, "fightIDs": [fight_id]}
        optional = {
            "startTime": current_start,
            "endTime": end_time,
            "dataType": data_type,
            "hostilityType": hostility_type,
            "sourceID": source_id,
            "targetID": target_id,
            "limit": limit,
        }
        variables.update({k: v for k, v in optional.items() if v is not None})

        raw = await wcl.query(query, variables=variables)
        events = report_section(raw, report_code).get("events")
        if events is None:
            break
        page = parse_model(EventPage, events)

        total_fetched += len(page.data)
        page_count += 1
        if page.data:
            yield page.data

        next_page = page.next_page_timestamp
        if next_page is None:
            break

        # Guard against stuck pagination (same or earlier timestamp returned)
        if current_start is not None and next_page <= current_start:
            logger.warning(
                "Stuck pagination for %s fight %d %s: nextPageTimestamp %.0f <= "
                "current %.0f, stopping after %d pages (%d events)",
                report_code, fight_id, data_type, next_page, current_start,
                page_count, total_fetched,
            )
            break

        if page_count >= max_pages:
            logger.warning(
                "Max pages (%d) reached for %s fight %d %s, stopping with %d events",
                max_pages, report_code, fight_id, data_type, total_fetched,
            )
            break

        current_start = next_page
        logger.debug(
            "Events pagination: fetched %d events so far, next page at %.0f",
            total_fetched, next_page,
        )

    logger.info(
        "Fetched %d %s events for %s fight %d in %d pages",
        total_fetched, data_type or "all", report_code, fight_id, page_count,
    )


async def fetch_all_events(wcl, report_code: str, fight_id: int, **filters) -> list[dict]:
    """Collect every page of ``fetch_events`` into one list."""
    events: list[dict] = []
    async for page in fetch_events(wcl, report_code, fight_id, **filters):
        events.extend(page)
    return events
