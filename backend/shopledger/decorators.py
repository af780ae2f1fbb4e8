# Overview: Request decorators for API routes (current actor, service error mapping).

from functools import wraps
from flask import request, jsonify, g, current_app

from .extensions import db
from .identity import Actor
from .services.errors import (
    InvalidStateError,
    LedgerWriteError,
    NotFoundError,
    StockValidationError,
    UnbalancedJournalEntryError,
)
from .validation import ConflictError, ValidationError


def require_actor(f):
    """
    Establish the acting user for the request.

    Authentication happens in front of this service; the fronting layer
    forwards the user as headers:
    - X-User-Id: stable user identifier
    - X-User-Name: display name recorded on history entries and documents

    Sets g.actor (an Actor; both fields None when headers are absent).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.actor = Actor(
            user_id=request.headers.get("X-User-Id") or None,
            user_name=request.headers.get("X-User-Name") or None,
        )
        return f(*args, **kwargs)

    return decorated_function


def _error(message: str, status: int, details: dict | None = None):
    body = {"error": message}
    if details:
        body["details"] = details
    return jsonify(body), status


def handle_service_errors(f):
    """
    Translate service exceptions into JSON error responses.

    Every branch rolls the session back so a failed workflow leaves no
    partial state behind:
    - ValidationError, StockValidationError, UnbalancedJournalEntryError: 400
    - NotFoundError: 404
    - InvalidStateError, ConflictError: 409
    - LedgerWriteError and anything unexpected: 500 (logged)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except (ValidationError, StockValidationError, UnbalancedJournalEntryError) as e:
            db.session.rollback()
            return _error(str(e), 400, getattr(e, "details", None))
        except NotFoundError as e:
            db.session.rollback()
            return _error(str(e), 404, e.details)
        except (InvalidStateError, ConflictError) as e:
            db.session.rollback()
            return _error(str(e), 409, getattr(e, "details", None))
        except LedgerWriteError as e:
            db.session.rollback()
            current_app.logger.error("Inventory history write failed: %s", e)
            return _error(str(e), 500)
        except Exception as e:
            db.session.rollback()
            current_app.logger.exception("Unexpected error in %s", request.path)
            return _error(f"Unexpected error: {e}", 500)

    return decorated_function


def json_body() -> dict:
    """Request JSON object, or {} when the body is empty or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def require_field(data: dict, name: str):
    """Body field that must be present, else ValidationError (400)."""
    if data.get(name) is None:
        raise ValidationError(f"Missing required field: {name}")
    return data[name]
