"""CSV and plain-text renderings of tabulation output."""

import csv
import io
from datetime import datetime

from tally.models import Competition, Leaderboard, Team, utcnow
from tally.tabulate import MetricStats

MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}


def leaderboard_rows(leaderboard: Leaderboard) -> list[list]:
    """Header row followed by one row per standing, best first."""
    columns = leaderboard.details.get("columns") or []
    rows: list[list] = [["Rank", "Team", "Total Points", *columns]]
    for standing in leaderboard.standings:
        rows.append([
            standing.rank,
            standing.team.name,
            standing.total,
            *(standing.score.breakdown.get(column, 0) for column in columns),
        ])
    return rows


def _to_csv(rows: list[list]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def leaderboard_csv(leaderboard: Leaderboard) -> str:
    return _to_csv(leaderboard_rows(leaderboard))


def leaderboard_report(
    leaderboard: Leaderboard,
    title: str = "Campaign Playbook Election Results",
    generated_at: datetime | None = None,
) -> str:
    """Printable summary, one ``"1. Vega: 115 points"`` line per team."""
    generated_at = generated_at or utcnow()
    lines = [
        title,
        f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M %Z').strip()}",
        "",
        "Official Results",
    ]
    for standing in leaderboard.standings:
        line = f"{standing.rank}. {standing.team.name}: {standing.total} points"
        medal = MEDALS.get(standing.rank)
        if medal:
            line += f" {medal}"
        if standing.tied:
            line += " (tied)"
        lines.append(line)
    return "\n".join(lines) + "\n"


def metric_analysis_csv(
    stats: list[MetricStats],
    teams: list[Team],
    competition: Competition,
) -> str:
    team_names = {t.id: t.name for t in teams}
    metric_names = {m.id: m.name for m in competition.metrics}
    scores = list(reversed(competition.score_range))

    header = ["Team", "Phase", "Metric", "Average", "Total"]
    header += [f"{s} Star" if s == 1 else f"{s} Stars" for s in scores]
    header.append("Total Votes")

    rows: list[list] = [header]
    for entry in stats:
        phase = competition.get_phase(entry.phase)
        rows.append([
            team_names.get(entry.team_id, f"Team {entry.team_id}"),
            phase.name if phase else f"Phase {entry.phase}",
            metric_names.get(entry.metric_id, entry.metric_id),
            f"{entry.mean:.2f}",
            entry.total,
            *(entry.distribution.get(s, 0) for s in scores),
            entry.vote_count,
        ])
    return _to_csv(rows)
