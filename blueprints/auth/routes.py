# blueprints/auth/routes.py
from __future__ import annotations
import threading
import time
from functools import wraps
from typing import Callable, Optional

from flask import Blueprint, request, jsonify, current_app, abort
from flask_login import login_user, logout_user, login_required, current_user

from extensions import db, login_manager
from models import Admin, Resident
from blueprints.core.validators import parse_payload
from blueprints.residents.services import register_resident
from . import services as svc
from .schemas import (
    AdminSignupIn, AdminLoginIn, ResidentSignupIn, ResidentLoginIn, PhoneIn, PhoneVerifyIn,
    ResetRequestIn, ResetConfirmIn, ResetOtpRequestIn, ResetOtpConfirmIn,
)

api_bp = Blueprint("auth_api", __name__)

# ---- безопасные значения по умолчанию
DEFAULT_RL_MAX = 5
DEFAULT_RL_WIN = 300  # 5 минут
_attempts: dict[str, list[float]] = {}  # ключ: scope|ip|subject -> [timestamps]
_attempts_lock = threading.Lock()
_last_sweep = 0.0

# неизвестный аккаунт при сбросе получает тот же ответ, что и известный
GENERIC_RESET_MESSAGE = "If the account exists, a reset message was sent"

@login_manager.user_loader
def load_user(uid: str):
    # "admin:1" / "resident:7"
    kind, _, raw_id = (uid or "").partition(":")
    if not raw_id.isdigit():
        return None
    model = {"admin": Admin, "resident": Resident}.get(kind)
    if model is None:
        return None
    return db.session.get(model, int(raw_id))

# ---------- rate limit ----------
def _rl_key(scope: str, subject: str) -> str:
    ip = request.headers.get("X-Forwarded-For", request.remote_addr or "0.0.0.0").split(",")[0].strip()
    return f"{scope}|{ip}|{(subject or '').lower()}"

def _sweep_stale(cutoff: float) -> None:
    # вызывается под _attempts_lock
    for key in [k for k, b in _attempts.items() if not b or b[-1] < cutoff]:
        del _attempts[key]

def _rl_check_and_hit(scope: str, subject: str) -> bool:
    global _last_sweep
    now = time.time()
    win = current_app.config.get("AUTH_RL_WINDOW", DEFAULT_RL_WIN)
    mx = current_app.config.get("AUTH_RL_MAX", DEFAULT_RL_MAX)
    key = _rl_key(scope, subject)
    cutoff = now - win
    with _attempts_lock:
        # ключи, к которым больше не обращаются, чистим не чаще раза за окно
        if now - _last_sweep >= win:
            _sweep_stale(cutoff)
            _last_sweep = now
        bucket = _attempts.get(key, [])
        # purge старых
        while bucket and bucket[0] < cutoff:
            bucket.pop(0)
        if len(bucket) >= mx:
            return False
        bucket.append(now)
        _attempts[key] = bucket
        return True

def reset_rate_limits() -> None:
    global _last_sweep
    with _attempts_lock:
        _attempts.clear()
        _last_sweep = 0.0

def _too_many():
    return jsonify({"error": "too_many_attempts"}), 429

# ---------- декораторы ролей ----------
def admin_required(fn: Callable):
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        if getattr(current_user, "role", None) != "ADMIN":
            abort(403)
        return fn(*args, **kwargs)
    return wrapper

def resident_required(fn: Callable):
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        if getattr(current_user, "role", None) != "RESIDENT":
            abort(403)
        return fn(*args, **kwargs)
    return wrapper

@login_manager.unauthorized_handler
def _unauth():
    return jsonify({"error": "unauthorized"}), 401

def _principal_json(user) -> dict:
    if user.role == "ADMIN":
        return {"id": user.id, "name": user.username, "is_admin": True}
    return {
        "id": user.id, "name": user.name, "email": user.email, "phone": user.phone,
        "block": user.block.value if user.block else None,
        "room_number": user.room_number,
        "bed_type": user.bed_type.value if user.bed_type else None,
        "is_admin": False,
    }

def _with_secret(body: dict, key: str, secret: Optional[str]) -> dict:
    # код/токен в ответе - только для dev/test, в проде уходит через уведомления
    if secret and current_app.config.get("EXPOSE_CREDENTIALS"):
        body[key] = secret
    return body

# ---------- аккаунты ----------
@api_bp.post("/auth/admin/signup")
def admin_signup():
    data = parse_payload(AdminSignupIn)
    svc.signup_admin(username=data.username, password=data.password, admin_key=data.admin_key)
    return jsonify({"ok": True, "message": "Admin created successfully"}), 201

@api_bp.post("/auth/admin/login")
def admin_login():
    data = parse_payload(AdminLoginIn)
    if not _rl_check_and_hit("login", data.username):
        return _too_many()
    admin = svc.authenticate_admin(data.username, data.password)
    login_user(admin, remember=True)
    return jsonify({"ok": True, "user": _principal_json(admin)})

@api_bp.post("/auth/resident/signup")
def resident_signup():
    data = parse_payload(ResidentSignupIn)
    register_resident(name=data.name, email=data.email, password=data.password,
                      block=data.block, room_number=data.room_number, bed_type=data.bed_type)
    return jsonify({"ok": True, "message": "Signup successful"}), 201

@api_bp.post("/auth/resident/login")
def resident_login():
    data = parse_payload(ResidentLoginIn)
    if not _rl_check_and_hit("login", data.email):
        return _too_many()
    resident = svc.authenticate_resident(data.email, data.password)
    login_user(resident, remember=True)
    return jsonify({"ok": True, "user": _principal_json(resident)})

@api_bp.post("/auth/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})

@api_bp.get("/auth/me")
@login_required
def me():
    return jsonify({"ok": True, "user": _principal_json(current_user)})

# ---------- телефон + OTP ----------
@api_bp.post("/auth/phone/signup")
def phone_signup():
    data = parse_payload(PhoneIn)
    if not _rl_check_and_hit("otp", data.phone):
        return _too_many()
    issued = svc.start_phone_signup(data.phone)
    return jsonify(_with_secret({"ok": True, "message": "OTP sent",
                                 "expires_at": issued.expires_at.isoformat()}, "otp", issued.secret))

@api_bp.post("/auth/phone/verify")
def phone_verify():
    data = parse_payload(PhoneVerifyIn)
    resident = svc.verify_phone_signup(data.phone, data.otp)
    login_user(resident, remember=True)
    return jsonify({"ok": True, "user": _principal_json(resident)})

# ---------- сброс пароля ----------
@api_bp.post("/auth/password/request")
def password_request():
    data = parse_payload(ResetRequestIn)
    if not _rl_check_and_hit("reset", data.identifier):
        return _too_many()
    issued = svc.request_password_reset(data.role, data.identifier)
    return jsonify(_with_secret({"ok": True, "message": GENERIC_RESET_MESSAGE},
                                "token", issued.secret if issued else None))

@api_bp.post("/auth/password/confirm")
def password_confirm():
    data = parse_payload(ResetConfirmIn)
    svc.confirm_password_reset(data.role, data.identifier, data.token, data.new_password)
    return jsonify({"ok": True, "message": "Password reset successful"})

@api_bp.post("/auth/password/request-otp")
def password_request_otp():
    data = parse_payload(ResetOtpRequestIn)
    if not _rl_check_and_hit("reset", data.email):
        return _too_many()
    issued = svc.request_password_reset_otp(data.email)
    return jsonify(_with_secret({"ok": True, "message": GENERIC_RESET_MESSAGE},
                                "otp", issued.secret if issued else None))

@api_bp.post("/auth/password/confirm-otp")
def password_confirm_otp():
    data = parse_payload(ResetOtpConfirmIn)
    svc.confirm_password_reset_otp(data.email, data.otp, data.new_password)
    return jsonify({"ok": True, "message": "Password reset successful"})
