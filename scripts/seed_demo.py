"""Fill a catalog store with demo voters and ballots.

Registers a few voters per team with fake names generated by faker with a
fixed seed, then casts a random but valid ballot for every voter in every
open unit. Ballots go through the normal validator, so locks and shape
rules apply exactly as they do for real voters.

Usage:
    python scripts/seed_demo.py
    python scripts/seed_demo.py --voters-per-team 6 --seed 7 --results
    STORE_URL=https://<project>.supabase.co python scripts/seed_demo.py
"""

import argparse
import random
import sys
from pathlib import Path

from faker import Faker

sys.path.insert(0, str(Path(__file__).parent.parent))

from tally.errors import GateLocked
from tally.export import leaderboard_report
from tally.models import VotingMode
from tally.service import TallyService, build_service
from tally.voting import BallotContext
from tally.voting.slider import score_key

SEED = 20261018


def generate_voter_names(count: int, seed: int) -> list[str]:
    """Distinct fake first names, ``count`` of them."""
    fake = Faker(["en_US", "en_GB"])
    Faker.seed(seed)
    names: list[str] = []
    while len(names) < count:
        name = fake.first_name()
        if name not in names:
            names.append(name)
    return names


def random_vote_data(mode: VotingMode, context: BallotContext, rng: random.Random) -> dict:
    """A complete ballot payload of the given mode."""
    if mode == VotingMode.RANKING:
        rankings = list(context.opponents)
        rng.shuffle(rankings)
        return {"rankings": rankings}
    return {
        score_key(team_id, metric_id): rng.randint(context.score_min, context.score_max)
        for team_id in context.opponents
        for metric_id in context.metric_ids
    }


def seed_ballots(service: TallyService, voters_per_team: int, seed: int) -> tuple[int, int]:
    """Register voters and cast their ballots.

    Returns:
        (ballots stored, ballots skipped because their unit was locked)
    """
    rng = random.Random(seed)
    snapshot = service.snapshot()
    names = generate_voter_names(voters_per_team * len(snapshot.teams), seed)

    stored = skipped = 0
    for index, team in enumerate(snapshot.teams):
        team_names = names[index * voters_per_team:(index + 1) * voters_per_team]
        for name in team_names:
            session = service.sign_in(team.code, name)
            context = service.validator.build_context(session)
            for unit in service.units(snapshot):
                phase = service.competition.get_phase(unit.phase)
                vote_data = random_vote_data(phase.mode, context, rng)
                try:
                    service.submit(
                        session,
                        unit.phase,
                        vote_data,
                        criterion=unit.criterion,
                        confirmed_teams=context.opponents,
                    )
                    stored += 1
                except GateLocked:
                    skipped += 1
    return stored, skipped


def main():
    parser = argparse.ArgumentParser(
        description="Seed demo voters and ballots")
    parser.add_argument("--voters-per-team", type=int, default=4,
                        help="Voters to register per team (default: 4)")
    parser.add_argument("--seed", type=int, default=SEED,
                        help=f"Random seed (default: {SEED})")
    parser.add_argument("--results", action="store_true",
                        help="Print the resulting leaderboard")
    args = parser.parse_args()

    service = build_service()
    stored, skipped = seed_ballots(service, args.voters_per_team, args.seed)
    print(f"Stored {stored} ballots ({skipped} skipped on locked units)")

    if args.results:
        print()
        print(leaderboard_report(service.results()), end="")


if __name__ == "__main__":
    main()
