"""Helpers shared by the serverless handlers."""

import json
import logging
import sys
from pathlib import Path
from urllib.parse import parse_qs, urlparse

# Add the project root to the path so we can import the tally package
sys.path.insert(0, str(Path(__file__).parent.parent))

from tally.config import get_settings
from tally.errors import (
    GateLocked,
    IncompleteBallot,
    InvalidCredential,
    InvalidInput,
    NotFound,
    StorageError,
    StorageUnavailable,
    TallyError,
)
from tally.service import TallyService, build_service

logger = logging.getLogger(__name__)

# Checked in order, so subclasses come before their bases
ERROR_STATUS = [
    (InvalidCredential, 401),
    (InvalidInput, 400),
    (IncompleteBallot, 422),
    (NotFound, 404),
    (GateLocked, 423),
    (StorageUnavailable, 503),
    (StorageError, 502),
]

_service: TallyService | None = None


def configure_logging() -> None:
    logging.basicConfig(
        level=get_settings().LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def get_service() -> TallyService:
    """The process-wide service, built on first use."""
    global _service
    if _service is None:
        configure_logging()
        _service = build_service()
    return _service


def set_service(service: TallyService | None) -> None:
    global _service
    _service = service


def query_params(request) -> dict[str, str]:
    """First value of each query string parameter."""
    query = parse_qs(urlparse(getattr(request, "url", "") or "").query)
    return {key: values[0] for key, values in query.items() if values}


def read_json(request) -> dict:
    try:
        data = json.loads(request.body.decode("utf-8") or "{}")
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidInput(f"Invalid JSON: {e}")
    if not isinstance(data, dict):
        raise InvalidInput("Request body must be a JSON object.")
    return data


def require(data: dict, *fields: str) -> None:
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise InvalidInput(f"Missing {', '.join(repr(f) for f in missing)} in request")


def as_int(value, field: str) -> int:
    if isinstance(value, bool):
        raise InvalidInput(f"'{field}' must be a whole number")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"'{field}' must be a whole number")


def error_response(error: TallyError):
    for error_class, status in ERROR_STATUS:
        if isinstance(error, error_class):
            return create_response({"error": str(error)}, status=status)
    return create_response({"error": str(error)}, status=400)


def preflight(methods: str):
    return create_response(
        "",
        status=204,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": methods,
            "Access-Control-Allow-Headers": "Content-Type",
        },
    )


def internal_error(error: Exception):
    logger.exception("Unhandled error")
    return create_response({"error": f"Internal error: {error}"}, status=500)


def create_response(body, status: int = 200, headers: dict = None):
    """Create a response object for Vercel."""
    response_headers = {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": "*",
    }
    if headers:
        response_headers.update(headers)

    if isinstance(body, (dict, list)):
        body = json.dumps(body)

    # Return in format expected by Vercel Python runtime
    return {
        "statusCode": status,
        "headers": response_headers,
        "body": body,
    }
