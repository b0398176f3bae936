"""Command-line entry point: ``wclogs <command> REPORT [FIGHT]``."""

import argparse
import asyncio
import logging
import sys

import httpx
from pydantic import TypeAdapter

from wclogs.analysis.formatting import (
    format_death_report,
    format_interrupt_report,
    format_players,
    format_table_report,
)
from wclogs.analysis.orchestrator import (
    AnalysisError,
    run_death_analysis,
    run_interrupt_analysis,
    run_players,
    run_table,
)
from wclogs.api.models import (
    DeathReportResponse,
    InterruptReportResponse,
    PlayerResponse,
    TableReportResponse,
)
from wclogs.config import Settings, get_settings
from wclogs.wcl.auth import WCLAuth, WCLAuthError
from wclogs.wcl.client import WCLAPIError, WCLClient
from wclogs.wcl.report import ReportNotFoundError

logger = logging.getLogger(__name__)

TABLE_COMMANDS = ("damage", "healing")
EVENT_COMMANDS = ("deaths", "interrupts")

_PLAYER_LIST = TypeAdapter(list[PlayerResponse])


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="wclogs",
        description="Warcraft Logs combat log analysis",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    common.add_argument("--json", action="store_true", help="Print JSON instead of text")
    sub = parser.add_subparsers(dest="command", required=True)

    for name in (*TABLE_COMMANDS, *EVENT_COMMANDS):
        cmd = sub.add_parser(name, parents=[common], help=f"{name} analysis for one fight")
        cmd.add_argument("report_code", help="WCL report code")
        cmd.add_argument("fight_id", type=int, help="Fight ID within the report")
        cmd.add_argument("-p", "--player", help="Restrict to one player (case-insensitive)")
        if name in TABLE_COMMANDS:
            cmd.add_argument("-t", "--top", type=int, default=0, help="Show top N (0 = all)")

    players = sub.add_parser("players", parents=[common], help="List players in a report")
    players.add_argument("report_code", help="WCL report code")

    return parser.parse_args(argv)


def create_client(settings: Settings) -> WCLClient:
    auth = WCLAuth(
        settings.wcl.client_id,
        settings.wcl.client_secret.get_secret_value(),
        settings.wcl.oauth_url,
    )
    return WCLClient(auth, api_url=settings.wcl.api_url, timeout=settings.wcl.timeout)


async def run(args: argparse.Namespace, settings: Settings) -> str:
    """Run one command and return the text to print."""
    async with create_client(settings) as wcl:
        if args.command == "players":
            players = await run_players(wcl, args.report_code)
            if args.json:
                return _PLAYER_LIST.dump_json(
                    [PlayerResponse.model_validate(p) for p in players], indent=2,
                ).decode()
            return format_players(args.report_code, players)

        if args.command == "interrupts":
            report = await run_interrupt_analysis(
                wcl, args.report_code, args.fight_id, args.player,
                config=settings.analysis,
            )
            if args.json:
                return InterruptReportResponse.from_report(report).model_dump_json(indent=2)
            return format_interrupt_report(report)

        if args.command == "deaths":
            report = await run_death_analysis(
                wcl, args.report_code, args.fight_id, args.player,
                config=settings.analysis,
            )
            if args.json:
                return DeathReportResponse.from_report(report).model_dump_json(indent=2)
            return format_death_report(report)

        report = await run_table(
            wcl, args.report_code, args.fight_id, args.command,
            player_name=args.player, top_n=args.top,
        )
        if args.json:
            return TableReportResponse.from_report(report).model_dump_json(indent=2)
        return format_table_report(report)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not settings.has_credentials:
        print(
            "error: set WCL__CLIENT_ID and WCL__CLIENT_SECRET (environment or .env)",
            file=sys.stderr,
        )
        return 2

    try:
        output = asyncio.run(run(args, settings))
    except (AnalysisError, ValueError, ReportNotFoundError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except (WCLAPIError, WCLAuthError, httpx.HTTPError) as exc:
        logger.debug("WCL failure", exc_info=True)
        print(f"error: Warcraft Logs request failed: {exc}", file=sys.stderr)
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
