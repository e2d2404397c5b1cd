from __future__ import annotations
import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from extensions import db, signup_otps, reset_credentials
from models import Admin, Resident
from blueprints.auth.routes import reset_rate_limits
from blueprints.inventory.services import grow_rooms

@pytest.fixture()
def client_app():
    app = create_app("test")
    app.config.update(AUTH_RL_MAX=3, AUTH_RL_WINDOW=60)  # агрессивный лимит для теста
    reset_rate_limits()
    with app.app_context():
        db.create_all()
        grow_rooms("block1", 2, "2 bedded")
        db.session.add(Admin(username="warden", password_hash=generate_password_hash("wardenpass")))
        db.session.commit()
        yield app
        db.drop_all()

@pytest.fixture()
def client(client_app):
    return client_app.test_client()

def _signup(client, email="asha@uni.edu", room=1, **kw):
    body = {"name": "Asha", "email": email, "password": "secret1", "block": "block1", "room_number": room}
    body.update(kw)
    return client.post("/api/v1/auth/resident/signup", json=body)

# ---------- аккаунты ----------
def test_admin_signup_requires_key(client):
    r = client.post("/api/v1/auth/admin/signup",
                    json={"username": "boss", "password": "bosspass", "admin_key": "wrong"})
    assert r.status_code == 403
    r = client.post("/api/v1/auth/admin/signup",
                    json={"username": "boss", "password": "bosspass", "admin_key": "test-admin-key"})
    assert r.status_code == 201
    r = client.post("/api/v1/auth/admin/signup",
                    json={"username": "boss", "password": "bosspass", "admin_key": "test-admin-key"})
    assert r.status_code == 409

def test_admin_login_and_me(client):
    r = client.post("/api/v1/auth/admin/login", json={"username": "warden", "password": "wardenpass"})
    assert r.status_code == 200
    assert r.get_json()["user"]["is_admin"] is True
    me = client.get("/api/v1/auth/me").get_json()
    assert me["user"]["name"] == "warden"

def test_admin_login_wrong_password(client):
    r = client.post("/api/v1/auth/admin/login", json={"username": "warden", "password": "nope"})
    assert r.status_code == 401
    assert r.get_json()["error"] == "invalid_credentials"

def test_resident_signup_and_login(client):
    r = _signup(client, email="Asha@Uni.edu")
    assert r.status_code == 201
    r = client.post("/api/v1/auth/resident/login", json={"email": "asha@uni.edu", "password": "secret1"})
    assert r.status_code == 200
    user = r.get_json()["user"]
    assert user["block"] == "block1" and user["bed_type"] == "2 bedded"
    assert user["is_admin"] is False

def test_resident_signup_validation(client):
    r = _signup(client, email="not-an-email")
    assert r.status_code == 422
    r = _signup(client, room=99)
    assert r.status_code == 404
    r = _signup(client, bed_type="4 bedded")
    assert r.status_code == 422

def test_resident_signup_duplicate_email(client):
    assert _signup(client).status_code == 201
    r = _signup(client, room=2)
    assert r.status_code == 409

def test_logout(client):
    client.post("/api/v1/auth/admin/login", json={"username": "warden", "password": "wardenpass"})
    assert client.post("/api/v1/auth/logout").status_code == 200
    assert client.get("/api/v1/auth/me").status_code == 401

def test_rate_limit_login(client):
    for _ in range(3):  # AUTH_RL_MAX
        client.post("/api/v1/auth/admin/login", json={"username": "warden", "password": "wrong"})
    r = client.post("/api/v1/auth/admin/login", json={"username": "warden", "password": "wrong"})
    assert r.status_code == 429
    assert r.get_json()["error"] == "too_many_attempts"

# ---------- телефон + OTP ----------
def test_phone_signup_flow(client):
    r = client.post("/api/v1/auth/phone/signup", json={"phone": "+919876543210"})
    assert r.status_code == 200
    otp = r.get_json()["otp"]
    assert len(otp) == 6

    r = client.post("/api/v1/auth/phone/verify", json={"phone": "+919876543210", "otp": otp})
    assert r.status_code == 200
    assert r.get_json()["user"]["phone"] == "+919876543210"
    assert Resident.query.filter_by(phone="+919876543210").one().is_verified is True
    # код одноразовый
    r = client.post("/api/v1/auth/phone/verify", json={"phone": "+919876543210", "otp": otp})
    assert r.status_code == 400
    assert r.get_json()["error"] == "invalid_credential"

def test_phone_signup_bad_phone(client):
    r = client.post("/api/v1/auth/phone/signup", json={"phone": "call me"})
    assert r.status_code == 422

def test_phone_verify_wrong_code(client):
    client.post("/api/v1/auth/phone/signup", json={"phone": "+919876543210"})
    r = client.post("/api/v1/auth/phone/verify", json={"phone": "+919876543210", "otp": "not-it"})
    assert r.status_code == 400
    assert Resident.query.count() == 0

def test_secrets_hidden_when_not_exposed(client_app, client):
    client_app.config["EXPOSE_CREDENTIALS"] = False
    r = client.post("/api/v1/auth/phone/signup", json={"phone": "+919876543210"})
    assert r.status_code == 200
    assert "otp" not in r.get_json()
    assert len(signup_otps) == 1

# ---------- сброс пароля ----------
def test_reset_by_token_for_resident(client):
    _signup(client)
    r = client.post("/api/v1/auth/password/request", json={"role": "student", "identifier": "asha@uni.edu"})
    assert r.status_code == 200
    token = r.get_json()["token"]
    r = client.post("/api/v1/auth/password/confirm", json={
        "role": "student", "identifier": "asha@uni.edu", "token": token, "new_password": "newsecret"})
    assert r.status_code == 200
    r = client.post("/api/v1/auth/resident/login", json={"email": "asha@uni.edu", "password": "newsecret"})
    assert r.status_code == 200

def test_reset_by_token_for_admin(client):
    r = client.post("/api/v1/auth/password/request", json={"role": "admin", "identifier": "warden"})
    token = r.get_json()["token"]
    r = client.post("/api/v1/auth/password/confirm", json={
        "role": "admin", "identifier": "warden", "token": "x" + token[1:], "new_password": "newsecret"})
    assert r.status_code == 400
    r = client.post("/api/v1/auth/password/confirm", json={
        "role": "admin", "identifier": "warden", "token": token, "new_password": "newsecret"})
    assert r.status_code == 200

def test_reset_unknown_account_same_response(client):
    _signup(client)
    known = client.post("/api/v1/auth/password/request", json={"role": "student", "identifier": "asha@uni.edu"})
    unknown = client.post("/api/v1/auth/password/request", json={"role": "student", "identifier": "ghost@uni.edu"})
    assert known.status_code == unknown.status_code == 200
    assert known.get_json()["message"] == unknown.get_json()["message"]
    assert "token" not in unknown.get_json()
    assert len(reset_credentials) == 1

def test_reset_by_otp(client):
    _signup(client)
    r = client.post("/api/v1/auth/password/request-otp", json={"email": "asha@uni.edu"})
    otp = r.get_json()["otp"]
    r = client.post("/api/v1/auth/password/confirm-otp",
                    json={"email": "asha@uni.edu", "otp": otp, "new_password": "newsecret"})
    assert r.status_code == 200
    r = client.post("/api/v1/auth/password/confirm-otp",
                    json={"email": "asha@uni.edu", "otp": otp, "new_password": "another1"})
    assert r.status_code == 400
    r = client.post("/api/v1/auth/resident/login", json={"email": "asha@uni.edu", "password": "newsecret"})
    assert r.status_code == 200

def test_reset_token_bound_to_exact_admin_account(client):
    from werkzeug.security import check_password_hash
    db.session.add(Admin(username="Boss", password_hash=generate_password_hash("upperpass")))
    db.session.add(Admin(username="boss", password_hash=generate_password_hash("lowerpass")))
    db.session.commit()

    r = client.post("/api/v1/auth/password/request", json={"role": "admin", "identifier": "Boss"})
    token = r.get_json()["token"]
    # логины различаются только регистром - это другой аккаунт
    r = client.post("/api/v1/auth/password/confirm", json={
        "role": "admin", "identifier": "boss", "token": token, "new_password": "hijacked"})
    assert r.status_code == 400
    assert r.get_json()["error"] == "invalid_credential"
    lower = Admin.query.filter_by(username="boss").one()
    assert check_password_hash(lower.password_hash, "lowerpass")

    r = client.post("/api/v1/auth/password/confirm", json={
        "role": "admin", "identifier": "Boss", "token": token, "new_password": "newbosspass"})
    assert r.status_code == 200
    db.session.expire_all()
    upper = Admin.query.filter_by(username="Boss").one()
    lower = Admin.query.filter_by(username="boss").one()
    assert check_password_hash(upper.password_hash, "newbosspass")
    assert check_password_hash(lower.password_hash, "lowerpass")

def test_rate_limit_drops_stale_subjects(client, monkeypatch):
    from blueprints.auth import routes as auth_routes
    clock = [1000.0]
    monkeypatch.setattr(auth_routes.time, "time", lambda: clock[0])

    client.post("/api/v1/auth/admin/login", json={"username": "ghost1", "password": "nope"})
    assert [k for k in auth_routes._attempts if k.endswith("|ghost1")]

    clock[0] += 61  # AUTH_RL_WINDOW = 60
    client.post("/api/v1/auth/admin/login", json={"username": "ghost2", "password": "nope"})
    keys = list(auth_routes._attempts)
    assert len(keys) == 1 and keys[0].endswith("|ghost2")
    assert all(auth_routes._attempts[k] for k in keys)
