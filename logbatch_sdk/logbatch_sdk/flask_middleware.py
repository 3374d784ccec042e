"""
Flask integration.

log_middleware(app):
    Gives every client a session id, makes it the current session for the
    request (so SessionLogHandler files records under it) and turns
    unhandled exceptions into a CRITICAL log record plus HTTP 503.

ingest_blueprint(entrypoint):
    POST /logs endpoint for producers that ship records over HTTP.
"""

import logging
import uuid
from typing import Optional

from flask import Blueprint, Flask, Response, g, jsonify, request, session
from werkzeug.exceptions import HTTPException

from .context import clear_session_id, set_session_id
from .errors import InvalidRecord, StorageUnavailable
from .ingest import IngestionEntrypoint
from .pipeline import get_default_entrypoint

logger = logging.getLogger(__name__)


SESSION_KEY = "sessionId"
SESSION_HEADER = "X-Session-Id"


def log_middleware(
    app: Flask,
    session_key: str = SESSION_KEY,
    header: str = SESSION_HEADER,
) -> None:
    """
    Register session tracking and the 503 guard on a Flask app.

    The session id is taken from the request header if present, else from
    the Flask session (when the app has a secret key), else a new uuid4 is
    issued and stored in the Flask session.

    Args:
        app: Flask application instance
        session_key: Flask session key holding the id
        header: Request/response header carrying the id
    """

    @app.before_request
    def bind_log_session():
        session_id = request.headers.get(header)
        if not session_id and app.secret_key:
            session_id = session.get(session_key)
        if not session_id:
            session_id = str(uuid.uuid4())
            if app.secret_key:
                session[session_key] = session_id

        g.log_session_id = session_id
        set_session_id(session_id)

    @app.after_request
    def expose_log_session(response: Response) -> Response:
        session_id = getattr(g, "log_session_id", None)
        if session_id:
            response.headers[header] = session_id
        return response

    @app.teardown_request
    def unbind_log_session(exc: Optional[BaseException] = None) -> None:
        clear_session_id()

    @app.errorhandler(Exception)
    def service_unavailable(e: Exception):
        if isinstance(e, HTTPException):
            return e
        app.logger.critical(str(e) or e.__class__.__name__, exc_info=e)
        return jsonify({"error": "service unavailable"}), 503

    return None


def get_log_session_id() -> Optional[str]:
    """Session id bound to the current request, or None outside middleware."""
    return getattr(g, "log_session_id", None)


def ingest_blueprint(
    entrypoint: Optional[IngestionEntrypoint] = None,
    url_prefix: str = "",
) -> Blueprint:
    """
    Build a blueprint exposing POST {url_prefix}/logs.

    Body:
        {"session_id": "...", "message": "...", "level": "INFO",
         "timestamp": "2024-01-01T12:00:00Z", "configuration": {...}}

    session_id may be omitted when log_middleware is active; the request's
    session is used then.

    Responses:
        202: record accepted
        400: InvalidRecord
        503: StorageUnavailable (producer should retry)
    """
    bp = Blueprint("logbatch", __name__, url_prefix=url_prefix or None)

    @bp.route("/logs", methods=["POST"])
    def ingest_log():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "expected a JSON object"}), 400

        target = entrypoint or get_default_entrypoint()
        try:
            result = target.ingest(
                data.get("session_id") or get_log_session_id(),
                data.get("message"),
                level=data.get("level"),
                timestamp=data.get("timestamp"),
                configuration=data.get("configuration"),
            )
        except InvalidRecord as e:
            return jsonify({"error": str(e), "field": e.field}), 400
        except StorageUnavailable as e:
            logger.error(f"Rejecting record, storage unavailable: {e}")
            return jsonify({"error": "storage unavailable"}), 503

        return jsonify({
            "session_id": result.session_id,
            "buffered": result.buffered,
            "flushed": result.flushed,
            "count": result.stats.count,
        }), 202

    return bp
