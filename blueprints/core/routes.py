from __future__ import annotations
import json, logging
from datetime import datetime, timezone

from flask import g, jsonify, request
from werkzeug.exceptions import HTTPException
from werkzeug.wrappers.response import Response

from flask_wtf.csrf import generate_csrf
from extensions import csrf, db

from . import bp, api_bp
from .errors import ServiceError

log = logging.getLogger(__name__)

# поля из extra=, которые попадают в JSON-строку лога
LOG_FIELDS = (
    "event", "path", "method", "status", "duration_ms",
    "block", "bed_type", "count", "resident_id", "swap_id", "purpose", "reason", "error",
)

class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in LOG_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)

def _setup_structured_logging(app):
    root = logging.getLogger()
    has_json = any(
        isinstance(h, logging.StreamHandler)
        and isinstance(getattr(h, "formatter", None), JSONFormatter)
        for h in root.handlers
    )
    if not has_json:
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)
    root.setLevel(app.config.get("LOG_LEVEL", "INFO"))

def _service_error(err: ServiceError):
    log.info("request failed", extra={"event": "service_error", "error": err.code,
                                      "path": request.path, "status": err.http_status})
    return jsonify(err.to_dict()), err.http_status

def _unexpected_error(err: Exception):
    if isinstance(err, HTTPException):
        return jsonify({"error": (err.name or "error").lower().replace(" ", "_"),
                        "message": err.description}), err.code
    # сессия могла остаться в сломанной транзакции
    db.session.rollback()
    log.exception("unhandled error", extra={"event": "internal_error", "path": request.path})
    return jsonify({"error": "internal_error"}), 500

@api_bp.get("/csrf")
@csrf.exempt          # токен выдаём без проверки
def get_csrf():
    token = generate_csrf()
    resp = jsonify({"csrf": token})
    resp.set_cookie("csrf_token", token, samesite="Lax")
    return resp

@bp.before_app_request
def _start_timer():
    g._req_start = datetime.now(timezone.utc)

@bp.after_app_request
def _log_request(response: Response):
    try:
        duration_ms = int((datetime.now(timezone.utc) - g._req_start).total_seconds() * 1000)
    except AttributeError:
        duration_ms = None
    log.info("request handled", extra={
        "event": "http_request",
        "path": request.path,
        "method": request.method,
        "status": response.status_code,
        "duration_ms": duration_ms,
    })
    return response

@bp.record_once
def _on_register(state):
    app = state.app
    _setup_structured_logging(app)
    app.register_error_handler(ServiceError, _service_error)
    app.register_error_handler(Exception, _unexpected_error)

@bp.get("/health")
def health():
    return jsonify({
        "status": "ok",
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
    })
