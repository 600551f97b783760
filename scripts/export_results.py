"""Export results from the configured catalog store.

Usage:
    python scripts/export_results.py
    python scripts/export_results.py --format csv -o results.csv
    python scripts/export_results.py --phase 4 --format report
    python scripts/export_results.py --analytics -o metric-analysis.csv
"""

import argparse
import json
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from tally.export import leaderboard_csv, leaderboard_report, metric_analysis_csv
from tally.service import build_service


def main():
    parser = argparse.ArgumentParser(
        description="Export the leaderboard or metric analysis")
    parser.add_argument("--format", choices=["report", "csv", "json"], default="report",
                        help="Output format (default: report)")
    parser.add_argument("--phase", type=int, help="Only count ballots of this phase")
    parser.add_argument("--criterion", help="Only count ballots under this criterion")
    parser.add_argument("--analytics", action="store_true",
                        help="Export per-metric slider statistics as CSV instead")
    parser.add_argument("-o", "--output",
                        help="Write to this path instead of stdout")
    args = parser.parse_args()

    service = build_service()

    if args.analytics:
        snapshot = service.snapshot()
        text = metric_analysis_csv(service.analytics(snapshot), snapshot.teams, service.competition)
    else:
        leaderboard = service.results(phase=args.phase, criterion=args.criterion)
        if args.format == "csv":
            text = leaderboard_csv(leaderboard)
        elif args.format == "json":
            text = json.dumps(leaderboard.to_dict(), indent=2) + "\n"
        else:
            text = leaderboard_report(leaderboard)

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(text, encoding="utf-8")
        print(f"Written to {output_path} ({date.today().isoformat()})")
    else:
        print(text, end="")


if __name__ == "__main__":
    main()
