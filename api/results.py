"""Vercel serverless function serving the leaderboard."""

import sys
from pathlib import Path

# Add the project root to the path so we can import the tally package
sys.path.insert(0, str(Path(__file__).parent.parent))

from api._common import (
    as_int,
    create_response,
    error_response,
    get_service,
    internal_error,
    preflight,
    query_params,
)
from tally.errors import InvalidInput, TallyError
from tally.export import leaderboard_csv, leaderboard_report, metric_analysis_csv

FORMATS = ("json", "csv", "report")


def handler(request):
    """Return results.

    Accepts GET with query parameters:
    - phase: restrict to one phase (or round)
    - criterion: restrict to one criterion
    - view: "leaderboard" (default) or "analytics" for per-metric statistics
    - format: "json" (default), "csv", or "report" for a printable summary
    """
    if request.method == "OPTIONS":
        return preflight("GET, OPTIONS")

    if request.method != "GET":
        return create_response(
            {"error": "Method not allowed. Use GET."},
            status=405,
        )

    try:
        params = query_params(request)
        output = params.get("format", "json")
        if output not in FORMATS:
            raise InvalidInput(f"Unsupported format '{output}'. Use one of: {', '.join(FORMATS)}")
        view = params.get("view", "leaderboard")

        service = get_service()

        if view == "analytics":
            snapshot = service.snapshot()
            stats = service.analytics(snapshot)
            if output == "csv":
                return create_response(
                    metric_analysis_csv(stats, snapshot.teams, service.competition),
                    headers={"Content-Type": "text/csv"},
                )
            return create_response({"analytics": [s.to_dict() for s in stats]})
        if view != "leaderboard":
            raise InvalidInput(f"Unknown view '{view}'")

        phase = as_int(params["phase"], "phase") if params.get("phase") else None
        leaderboard = service.results(phase=phase, criterion=params.get("criterion") or None)

        if output == "csv":
            return create_response(leaderboard_csv(leaderboard), headers={"Content-Type": "text/csv"})
        if output == "report":
            return create_response(
                leaderboard_report(leaderboard),
                headers={"Content-Type": "text/plain; charset=utf-8"},
            )
        return create_response(leaderboard.to_dict())

    except TallyError as e:
        return error_response(e)
    except Exception as e:
        return internal_error(e)
