# blueprints/auth/services.py
from __future__ import annotations
import hmac
import logging
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash, check_password_hash

from extensions import db, signup_otps, reset_credentials, events
from models import Admin, Resident
from blueprints.core.errors import (
    AuthenticationError, ConflictError, InvalidCredentialError, PermissionDeniedError,
)
from blueprints.notifications.events import EventType
from blueprints.residents.services import upsert_phone_resident
from .credentials import CredentialPurpose, IssuedCredential

log = logging.getLogger(__name__)

ROLE_RESIDENT = "student"
ROLE_ADMIN = "admin"

# ---------- аккаунты ----------
def signup_admin(*, username: str, password: str, admin_key: str) -> Admin:
    expected = current_app.config.get("ADMIN_SIGNUP_KEY")
    if not expected or not hmac.compare_digest(str(expected), str(admin_key or "")):
        raise PermissionDeniedError("Invalid admin key")
    if Admin.query.filter_by(username=username).first():
        raise ConflictError("Username already exists", {"username": username})
    admin = Admin(username=username, password_hash=generate_password_hash(password))
    db.session.add(admin)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise ConflictError("Username already exists", {"username": username}) from e
    return admin

def authenticate_admin(username: str, password: str) -> Admin:
    admin: Optional[Admin] = Admin.query.filter_by(username=username).first()
    if not admin or not check_password_hash(admin.password_hash, password):
        raise AuthenticationError()
    return admin

def authenticate_resident(email: str, password: str) -> Resident:
    resident: Optional[Resident] = Resident.query.filter_by(email=email.strip().lower()).first()
    if not resident or not resident.password_hash or not check_password_hash(resident.password_hash, password):
        raise AuthenticationError()
    return resident

# ---------- регистрация по телефону ----------
def start_phone_signup(phone: str) -> IssuedCredential:
    issued = signup_otps.issue(phone, CredentialPurpose.SIGNUP_OTP)
    # доставка (SMS) - у подписчиков шины; её сбой не отменяет выдачу кода
    events.publish(EventType.OTP_ISSUED, channel="sms", recipient=issued.subject_key,
                   purpose=issued.purpose.value, secret=issued.secret,
                   expires_at=issued.expires_at.isoformat())
    return issued

def verify_phone_signup(phone: str, otp: str) -> Resident:
    signup_otps.verify(phone, CredentialPurpose.SIGNUP_OTP, otp)
    return upsert_phone_resident(phone)

# ---------- сброс пароля ----------
def _find_account(role: str, identifier: str):
    if role == ROLE_RESIDENT:
        return Resident.query.filter_by(email=identifier.strip().lower()).first()
    return Admin.query.filter_by(username=identifier).first()

def _reset_key(role: str, account) -> str:
    # ключ по id аккаунта: хранилище приводит ключи к нижнему регистру,
    # а логины админов "Boss" и "boss" - разные аккаунты
    return f"{role}:{account.id}"

def request_password_reset(role: str, identifier: str) -> Optional[IssuedCredential]:
    """Токен-ссылка (15 минут). Для неизвестного аккаунта - None, ответ наружу тот же."""
    account = _find_account(role, identifier)
    if account is None:
        log.info("password reset for unknown account", extra={"event": "reset_requested", "reason": "unknown"})
        return None
    issued = reset_credentials.issue(_reset_key(role, account), CredentialPurpose.RESET_TOKEN)
    events.publish(EventType.RESET_TOKEN_ISSUED, channel="email", recipient=identifier, role=role,
                   token=issued.secret, expires_at=issued.expires_at.isoformat())
    return issued

def confirm_password_reset(role: str, identifier: str, token: str, new_password: str) -> None:
    account = _find_account(role, identifier)
    if account is None:
        # наружу - тот же ответ, что и на неверный токен
        raise InvalidCredentialError()
    reset_credentials.verify(_reset_key(role, account), CredentialPurpose.RESET_TOKEN, token)
    _set_password(account, role, new_password)

def request_password_reset_otp(email: str) -> Optional[IssuedCredential]:
    """Код сброса на почту (10 минут), только для жильцов."""
    account = _find_account(ROLE_RESIDENT, email)
    if account is None:
        log.info("reset otp for unknown account", extra={"event": "reset_otp_requested", "reason": "unknown"})
        return None
    issued = reset_credentials.issue(_reset_key(ROLE_RESIDENT, account), CredentialPurpose.RESET_OTP)
    events.publish(EventType.OTP_ISSUED, channel="email", recipient=account.email,
                   purpose=issued.purpose.value, otp=issued.secret,
                   expires_at=issued.expires_at.isoformat())
    return issued

def confirm_password_reset_otp(email: str, otp: str, new_password: str) -> None:
    account = _find_account(ROLE_RESIDENT, email)
    if account is None:
        raise InvalidCredentialError()
    reset_credentials.verify(_reset_key(ROLE_RESIDENT, account), CredentialPurpose.RESET_OTP, otp)
    _set_password(account, ROLE_RESIDENT, new_password)

def _set_password(account, role: str, new_password: str) -> None:
    account.password_hash = generate_password_hash(new_password)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    log.info("password reset", extra={"event": "password_reset", "purpose": role})
