from __future__ import annotations
import json
import logging

import pytest

from app import create_app
from extensions import db
from blueprints.core.errors import CapacityError, NotFoundError
from blueprints.core.routes import JSONFormatter

@pytest.fixture()
def app():
    app = create_app("test")
    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()

def test_health_ok(app):
    with app.test_client() as c:
        rv = c.get("/health")
        assert rv.status_code == 200
        data = rv.get_json()
        assert data["status"] == "ok"
        assert data["ts"].endswith("Z")

def test_csrf_token_endpoint(app):
    with app.test_client() as c:
        rv = c.get("/api/v1/csrf")
        assert rv.status_code == 200
        assert rv.get_json()["csrf"]

def test_unknown_route_is_json_404(app):
    with app.test_client() as c:
        rv = c.get("/api/v1/nope")
        assert rv.status_code == 404
        assert rv.get_json()["error"] == "not_found"

def test_service_error_shape():
    err = CapacityError("Not enough rooms", available=1, requested=3)
    body = err.to_dict()
    assert body["error"] == "capacity_exceeded"
    assert body["detail"] == {"available": 1, "requested": 3}
    assert err.http_status == 409

    nf = NotFoundError("Block", "block4")
    assert nf.message == "Block 'block4' not found"
    assert "detail" not in nf.to_dict()

def test_json_formatter_keeps_extra_fields():
    rec = logging.LogRecord("hostel", logging.INFO, __file__, 1, "rooms increased", None, None)
    rec.event = "rooms_increased"
    rec.block = "block1"
    rec.count = 3
    line = json.loads(JSONFormatter().format(rec))
    assert line["msg"] == "rooms increased"
    assert line["event"] == "rooms_increased"
    assert line["block"] == "block1" and line["count"] == 3
    assert line["level"] == "INFO"

def test_sweep_command(app):
    from extensions import signup_otps
    signup_otps.issue("+911234567890", "signup_otp")
    runner = app.test_cli_runner()
    result = runner.invoke(args=["sweep-credentials"])
    assert result.exit_code == 0
    # свежий код не просрочен - удалять нечего
    assert "removed 0" in result.output
    assert len(signup_otps) == 1
