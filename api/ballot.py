"""Vercel serverless function for casting ballots."""

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
    read_json,
    require,
)
from tally.errors import TallyError


def handler(request):
    """Sign a voter in, then report their status or store their ballot.

    Accepts GET with query parameters team_code and name, returning the
    phases offered to the voter with their lock state and the voter's
    current ballots.

    Accepts POST with JSON body:
        {"team_code": "NOVA47", "name": "Ada", "phase": 4,
         "criterion": null, "vote_data": {"rankings": [2, 3, 4, 5]},
         "confirmed_teams": [2, 3, 4, 5]}

    Returns JSON with the receipt, or {"error": ...} with a status code
    matching the failure.
    """
    if request.method == "OPTIONS":
        return preflight("GET, POST, OPTIONS")

    if request.method not in ("GET", "POST"):
        return create_response(
            {"error": "Method not allowed. Use GET or POST."},
            status=405,
        )

    try:
        service = get_service()

        if request.method == "GET":
            params = query_params(request)
            require(params, "team_code", "name")
            session = service.sign_in(params["team_code"], params["name"])
            return create_response(service.voter_status(session))

        data = read_json(request)
        require(data, "team_code", "name", "phase", "vote_data")

        session = service.sign_in(data["team_code"], data["name"])
        receipt = service.submit(
            session,
            as_int(data["phase"], "phase"),
            data["vote_data"],
            criterion=data.get("criterion") or None,
            confirmed_teams=data.get("confirmed_teams"),
        )
        return create_response({**receipt.to_dict(), "voter": session.to_dict()})

    except TallyError as e:
        return error_response(e)
    except Exception as e:
        return internal_error(e)
