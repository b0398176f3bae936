"""Plain-text rendering of analysis reports for the terminal."""

from __future__ import annotations

from wclogs.analysis.orchestrator import (
    DeathDetail,
    DeathReport,
    InterruptReport,
    TableReport,
)
from wclogs.wcl.models import Actor, Fight

RULE = "-" * 72


def format_duration(ms: float) -> str:
    """Format milliseconds as 'Xm Ys'."""
    seconds = int(ms // 1000)
    return f"{seconds // 60}m {seconds % 60}s"


def format_clock(ms: float) -> str:
    """Fight-relative milliseconds as '[m:ss]'."""
    seconds = int(ms // 1000)
    return f"[{seconds // 60}:{seconds % 60:02d}]"


def format_amount(amount: float) -> str:
    if amount >= 1_000_000:
        return f"{amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"{amount / 1_000:.1f}K"
    return f"{amount:.0f}"


def _fight_header(fight: Fight) -> list[str]:
    if fight.kill:
        result = "Kill"
    elif fight.fight_percentage is not None:
        result = f"Wipe ({fight.fight_percentage:.1f}%)"
    else:
        result = "Wipe"
    return [
        f"Fight: {fight.name} (Duration: {format_duration(fight.duration_ms)})",
        f"Result: {result}",
    ]


def format_interrupt_report(report: InterruptReport) -> str:
    title = "INTERRUPT ANALYSIS"
    if report.player_name:
        title += f": {report.player_name}"
    lines = [title, *_fight_header(report.fight)]
    lines.append(f"Total Interrupts: {report.interrupt_count}")
    lines.append("")

    if report.interrupt_count == 0:
        lines.append("No interrupts recorded in this fight.")
        return "\n".join(lines)

    if report.player_name:
        lines.append("Interrupt targets:")
        for name, count in report.targets:
            lines.append(f"  {name}: {count}")
    else:
        lines.append("Top interrupters:")
        for name, count in report.interrupters:
            lines.append(f"  {name}: {count}")
    lines.append("")

    if report.correlation_error:
        lines.append(f"Cast correlation unavailable: {report.correlation_error}")

    if report.degraded:
        lines.append("Interrupt abilities used:")
        for name, count in report.abilities_used:
            lines.append(f"  {name}: {count}")
        return "\n".join(lines)

    lines.append("Hostile casts:")
    for cast in report.casts:
        lines.append(RULE)
        lines.append(
            f"{cast.ability_name}: {cast.total_casts} casts, "
            f"{cast.stopped_count} stopped, {cast.missed_count} completed "
            f"({cast.stopped_pct:.1f}% stopped)"
        )
        if cast.interrupted_by:
            lines.append("  Interrupted by:")
            for name, count in sorted(cast.interrupted_by.items(), key=lambda i: -i[1]):
                lines.append(f"    {name}: {count}")
        for stopped in cast.stopped_casts:
            lines.append(
                f"  {format_clock(stopped.timestamp)} {stopped.caster_name} "
                f"stopped by {stopped.interrupted_by}"
            )
        for missed in cast.missed_casts:
            lines.append(f"  {format_clock(missed.timestamp)} {missed.caster_name} completed")

    eff = report.effectiveness
    lines.append(RULE)
    lines.append(f"Total Interrupted: {eff.total_interrupted}")
    lines.append(f"Total Completed: {eff.total_completed}")
    lines.append(f"Overall Interrupt Effectiveness: {eff.pct:.1f}%")
    return "\n".join(lines)


def _format_death_detail(detail: DeathDetail) -> list[str]:
    death = detail.death
    lines = [
        RULE,
        f"Death #{death.death_number}",
        f"  Survival time: {format_duration(death.survival_ms)} "
        f"({death.survival_pct:.1f}% of fight)",
        f"  Killed by: {death.killing_ability} from {death.killed_by}",
    ]

    window = detail.window
    if window is not None:
        if window.is_empty:
            lines.append("  No events around death; likely instant death or environmental mechanic")
        else:
            for hit in window.damage_taken:
                when = (
                    f"-{hit.seconds_before_death:.1f}s" if hit.seconds_before_death >= 0
                    else f"+{-hit.seconds_before_death:.1f}s"
                )
                lines.append(
                    f"  {when}: {hit.amount} damage from {hit.source_name} ({hit.ability_name})"
                )
            if window.damage_event_count:
                lines.append(
                    f"  Total damage in window: {window.total_damage} "
                    f"({window.damage_event_count} hits)"
                )
            else:
                lines.append("  No damage events; likely environmental or scripted death")

    if detail.healing_received is not None:
        if detail.healing_received > 0:
            lines.append(f"  Healing received: {detail.healing_received}")
        else:
            lines.append("  No healing received before death")
    if detail.defensive_casts is not None:
        if detail.defensive_casts > 0:
            lines.append(f"  Defensive casts: {detail.defensive_casts}")
        else:
            lines.append("  No defensives used")
    for error in detail.errors:
        lines.append(f"  Unavailable: {error}")
    return lines


def format_death_report(report: DeathReport) -> str:
    title = "DEATH ANALYSIS"
    if report.player_name:
        title += f": {report.player_name}"
    lines = [title, *_fight_header(report.fight)]

    if report.player_name:
        lines.append(f"Deaths: {len(report.player_deaths)}")
        if not report.player_deaths:
            lines.append(f"{report.player_name} survived the entire fight.")
        for detail in report.player_deaths:
            lines.extend(_format_death_detail(detail))
        return "\n".join(lines)

    summary = report.summary
    lines.append(f"Deaths: {summary.total_deaths}")
    if summary.total_deaths == 0:
        lines.append("No deaths in this fight.")
        return "\n".join(lines)

    lines.append("")
    lines.append("Death timeline:")
    for second, players in summary.timeline.items():
        suffix = f" ({len(players)} players)" if len(players) > 1 else ""
        lines.append(f"  {second}s: {', '.join(players)}{suffix}")

    if summary.killing_abilities:
        lines.append("")
        lines.append("Top killing abilities:")
        for name, count in summary.killing_abilities:
            lines.append(f"  {name}: {count} deaths")
    return "\n".join(lines)


def format_table_report(report: TableReport) -> str:
    lines = [
        f"{report.kind.upper()} - report {report.report_code} fight {report.fight_id}",
        f"{'#':>3}  {'Name':<20} {'Class':<12} {'Total':>10} {'Per sec':>10} {'%':>6}",
    ]
    for rank, entry in enumerate(report.entries, start=1):
        lines.append(
            f"{rank:>3}  {entry.name:<20} {entry.type:<12} "
            f"{format_amount(entry.total):>10} {entry.per_second:>10.1f} "
            f"{entry.percent_of(report.total):>5.1f}%"
        )
    lines.append(f"Total: {format_amount(report.total)}")
    if report.classes:
        lines.append(
            "Classes: " + ", ".join(f"{cls} {n}" for cls, n in report.classes.items())
        )
    return "\n".join(lines)


def format_players(report_code: str, players: list[Actor]) -> str:
    lines = [f"Players in report {report_code}: {len(players)}"]
    for actor in players:
        server = f" ({actor.server})" if actor.server else ""
        lines.append(f"  {actor.name:<20} {actor.sub_type or '':<12}{server}")
    return "\n".join(lines)
