"""Vercel serverless function for administrator actions."""

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
    read_json,
    require,
)
from tally.errors import InvalidInput, TallyError
from tally.models import Criterion


def _toggle_lock(service, session, data):
    require(data, "phase")
    state = service.admin.toggle_lock(session, as_int(data["phase"], "phase"), data.get("criterion") or None)
    return state.to_dict()


def _award_bonus(service, session, data):
    require(data, "team_id", "points", "reason")
    bonus = service.admin.award_bonus(
        session,
        as_int(data["team_id"], "team_id"),
        as_int(data["points"], "points"),
        data["reason"],
        data.get("awarded_by") or "Admin",
    )
    return {"id": bonus.id, "team_id": bonus.team_id, "points": bonus.points, "reason": bonus.reason}


def _revoke_bonus(service, session, data):
    require(data, "bonus_id")
    service.admin.revoke_bonus(session, as_int(data["bonus_id"], "bonus_id"))
    return {"deleted": True}


def _update_team(service, session, data):
    require(data, "team_id", "name", "code")
    team = service.admin.update_team(session, as_int(data["team_id"], "team_id"), data["name"], data["code"])
    return team.to_row()


def _add_voter(service, session, data):
    require(data, "team_id", "name")
    voter = service.admin.add_voter(session, as_int(data["team_id"], "team_id"), data["name"])
    return voter.to_row()


def _remove_voter(service, session, data):
    require(data, "voter_id")
    service.admin.remove_voter(session, data["voter_id"])
    return {"deleted": True}


def _save_criterion(service, session, data):
    require(data, "id", "name")
    rounds = data.get("rounds") or []
    if not isinstance(rounds, list):
        raise InvalidInput("'rounds' must be a list of round numbers")
    criterion = Criterion(
        id=str(data["id"]).strip(),
        name=str(data["name"]).strip(),
        icon=data.get("icon") or "⭐",
        rounds=sorted(as_int(r, "rounds") for r in rounds),
        description=data.get("description") or "",
        display_order=as_int(data.get("display_order") or 0, "display_order"),
        is_active=bool(data.get("is_active", True)),
    )
    return service.admin.save_criterion(session, criterion).to_row()


def _set_criterion_active(service, session, data):
    require(data, "criterion")
    if "active" not in data:
        raise InvalidInput("Missing 'active' in request body")
    criterion = service.admin.set_criterion_active(session, data["criterion"], bool(data["active"]))
    return criterion.to_row()


def _delete_criterion(service, session, data):
    require(data, "criterion")
    service.admin.delete_criterion(session, data["criterion"])
    return {"deleted": True}


def _dashboard(service, session, data):
    return service.dashboard(limit=as_int(data.get("limit") or 10, "limit"))


ACTIONS = {
    "toggle_lock": _toggle_lock,
    "award_bonus": _award_bonus,
    "revoke_bonus": _revoke_bonus,
    "update_team": _update_team,
    "add_voter": _add_voter,
    "remove_voter": _remove_voter,
    "save_criterion": _save_criterion,
    "set_criterion_active": _set_criterion_active,
    "delete_criterion": _delete_criterion,
    "dashboard": _dashboard,
}


def handler(request):
    """Run one administrator action.

    Accepts POST with JSON body: {"password": "...", "action": "<name>", ...}
    where the remaining fields are the action's arguments.
    """
    if request.method == "OPTIONS":
        return preflight("POST, OPTIONS")

    if request.method != "POST":
        return create_response(
            {"error": "Method not allowed. Use POST."},
            status=405,
        )

    try:
        data = read_json(request)
        require(data, "action")
        action = ACTIONS.get(data["action"])
        if action is None:
            raise InvalidInput(f"Unknown action '{data['action']}'")

        service = get_service()
        session = service.admin.authenticate(data.get("password") or "")
        return create_response(action(service, session, data))

    except TallyError as e:
        return error_response(e)
    except Exception as e:
        return internal_error(e)
