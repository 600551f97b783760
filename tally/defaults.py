"""Seed catalog: the default teams, criteria, phases and slider metrics."""

import logging

from tally.config import Settings
from tally.gate import PhaseGate, voting_units
from tally.models import Competition, Criterion, Metric, Phase, Team, UnitKey, VotingMode
from tally.store.base import CATALOG_CONFLICT_KEYS, CRITERIA, TEAMS, CatalogStore

logger = logging.getLogger(__name__)

DEFAULT_TEAMS = [
    Team(id=1, name="Vega", code="NOVA47"),
    Team(id=2, name="Spence", code="ORBIT92"),
    Team(id=3, name="Sterling", code="COSMO38"),
    Team(id=4, name="Strongbow", code="LUNAR65"),
    Team(id=5, name="Thorne", code="ASTRO21"),
]

DEFAULT_CRITERIA = [
    Criterion(
        id="creativity",
        name="Creativity",
        icon="🎨",
        rounds=[1, 2, 3, 4],
        description="Originality and innovative thinking",
        display_order=1,
    ),
    Criterion(
        id="effectiveness",
        name="Effectiveness",
        icon="⚡",
        rounds=[1, 2, 3, 4],
        description="Impact and measurable results",
        display_order=2,
    ),
    Criterion(
        id="adaptation",
        name="Adaptation",
        icon="🔄",
        rounds=[4],
        description="Ability to adjust and improve based on feedback",
        display_order=3,
    ),
]

DEFAULT_PHASES = [
    Phase(id=1, name="Phase 1: The Announcement", mode=VotingMode.SLIDER),
    Phase(id=2, name="Phase 2: The Debate", mode=VotingMode.SLIDER),
    Phase(id=3, name="Phase 3: The Crisis", mode=VotingMode.SLIDER),
    Phase(id=4, name="Phase 4: The Final Election", mode=VotingMode.RANKING),
]

DEFAULT_METRICS = [
    Metric(
        id="message",
        name="Message",
        question="How clear and persuasive was the team's message?",
        descriptions={
            1: "Confusing or contradictory",
            2: "Understandable but forgettable",
            3: "Clear with a few strong moments",
            4: "Clear, consistent and persuasive",
            5: "Memorable and compelling throughout",
        },
    ),
    Metric(
        id="strategy",
        name="Strategy",
        question="How well did the team's choices serve its goals?",
        descriptions={
            1: "No visible plan",
            2: "A plan, poorly matched to the situation",
            3: "A sound plan with gaps",
            4: "A well reasoned plan",
            5: "A plan that anticipated the other teams",
        },
    ),
    Metric(
        id="execution",
        name="Execution",
        question="How well did the team deliver on what it set out to do?",
        descriptions={
            1: "Little was delivered",
            2: "Delivered with major slips",
            3: "Delivered with minor slips",
            4: "Delivered smoothly",
            5: "Delivered beyond what was promised",
        },
    ),
]


def build_competition(settings: Settings) -> Competition:
    """Variant configuration for the given settings.

    The phase variant scores phases 1-3 with sliders and phase 4 by ranking.
    The criteria variant ranks every round once per applicable criterion.
    """
    if settings.CRITERIA_SCOPED:
        phases = [
            Phase(id=p.id, name=f"Round {p.id}", mode=VotingMode.RANKING)
            for p in DEFAULT_PHASES
        ]
    else:
        phases = list(DEFAULT_PHASES)
    return Competition(
        phases=phases,
        metrics=list(DEFAULT_METRICS),
        score_min=settings.SCORE_MIN,
        score_max=settings.SCORE_MAX,
        allow_edit_when_locked=settings.ALLOW_EDIT_WHEN_LOCKED,
        require_lock_in=settings.REQUIRE_LOCK_IN,
        criteria_scoped=settings.CRITERIA_SCOPED,
    )


def initialize_catalog(store: CatalogStore, competition: Competition) -> bool:
    """Seed teams, lock rows and criteria into an empty store.

    Returns:
        False if the store already holds teams, True once seeded
    """
    if store.get(TEAMS):
        logger.info("Catalog already initialized")
        return False

    for team in DEFAULT_TEAMS:
        store.insert(TEAMS, team.to_row())

    gate = PhaseGate(store, competition)
    units = [UnitKey(phase.id) for phase in competition.phases]
    if competition.criteria_scoped:
        units += voting_units(competition, DEFAULT_CRITERIA)
    gate.ensure_units(units)

    for criterion in DEFAULT_CRITERIA:
        store.upsert(CRITERIA, criterion.to_row(), CATALOG_CONFLICT_KEYS[CRITERIA])

    logger.info(
        "Catalog initialized with %d teams, %d phases and %d criteria",
        len(DEFAULT_TEAMS), len(competition.phases), len(DEFAULT_CRITERIA),
    )
    return True
