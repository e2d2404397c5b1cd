# blueprints/auth/credentials.py
"""
Хранилище короткоживущих секретов: OTP и токенов сброса пароля.

Ключ записи - (subject_key, purpose). Новый ``issue`` для того же ключа
перезаписывает старый секрет, ``verify`` одноразовый: при успехе запись
удаляется сразу. Срок годности проверяется лениво при ``verify``; ``sweep``
только освобождает память. Все операции над одним ключом идут под его
блокировкой, поэтому verify не увидит полузаписанную перевыдачу.
"""
from __future__ import annotations
import hmac
import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from blueprints.core.errors import InvalidCredentialError, ValidationError
from blueprints.core.locks import KeyedLocks

log = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialPurpose(str, Enum):
    SIGNUP_OTP = "signup_otp"
    RESET_OTP = "reset_otp"
    RESET_TOKEN = "reset_token"

    @property
    def is_token(self) -> bool:
        return self is CredentialPurpose.RESET_TOKEN


@dataclass(frozen=True)
class IssuedCredential:
    subject_key: str
    purpose: CredentialPurpose
    secret: str
    expires_at: datetime


@dataclass
class _Entry:
    secret: str
    expires_at: datetime


class CredentialStore:
    def __init__(self, name: str, *, otp_ttl: timedelta = timedelta(minutes=10),
                 token_ttl: timedelta = timedelta(minutes=15), otp_length: int = 6,
                 sweep_interval: timedelta = timedelta(minutes=5), clock: Optional[Clock] = None):
        self.name = name
        self.otp_ttl = otp_ttl
        self.token_ttl = token_ttl
        self.otp_length = otp_length
        self.sweep_interval = sweep_interval
        self.clock: Clock = clock or utcnow
        self._entries: Dict[Tuple[str, CredentialPurpose], _Entry] = {}
        self._key_locks = KeyedLocks(name)
        self._guard = threading.Lock()
        self._last_sweep = self.clock()

    # ---- lifecycle ----
    def init_app(self, app) -> None:
        cfg = app.config
        self.otp_ttl = timedelta(minutes=cfg.get("OTP_TTL_MINUTES", 10))
        self.token_ttl = timedelta(minutes=cfg.get("RESET_TOKEN_TTL_MINUTES", 15))
        self.otp_length = int(cfg.get("OTP_LENGTH", 6))
        self.sweep_interval = timedelta(seconds=cfg.get("CREDENTIAL_SWEEP_SECONDS", 300))
        self.clear()
        app.extensions[f"credentials.{self.name}"] = self

    def clear(self) -> None:
        with self._guard:
            self._entries.clear()
            self._last_sweep = self.clock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    # ---- helpers ----
    @staticmethod
    def _key(subject_key: str, purpose) -> Tuple[str, CredentialPurpose]:
        if not subject_key or not str(subject_key).strip():
            raise ValidationError("subject key is required")
        try:
            purpose = CredentialPurpose(purpose)
        except ValueError:
            raise ValidationError(f"unknown credential purpose: {purpose}")
        return str(subject_key).strip().lower(), purpose

    @staticmethod
    def _lock_key(key: Tuple[str, CredentialPurpose]) -> str:
        return f"{key[1].value}|{key[0]}"

    def _generate(self, purpose: CredentialPurpose) -> str:
        if purpose.is_token:
            return secrets.token_hex(32)
        return str(secrets.randbelow(10 ** self.otp_length)).zfill(self.otp_length)

    def _ttl(self, purpose: CredentialPurpose) -> timedelta:
        return self.token_ttl if purpose.is_token else self.otp_ttl

    # ---- API ----
    def issue(self, subject_key: str, purpose, secret: Optional[str] = None) -> IssuedCredential:
        """Выдать новый секрет; предыдущий неиспользованный для того же ключа перестаёт действовать."""
        key = self._key(subject_key, purpose)
        value = secret if secret is not None else self._generate(key[1])
        with self._key_locks.hold(self._lock_key(key)):
            now = self.clock()
            entry = _Entry(secret=value, expires_at=now + self._ttl(key[1]))
            with self._guard:
                self._entries[key] = entry
        log.info("credential issued", extra={"event": "credential_issued", "purpose": key[1].value})
        self._maybe_sweep()
        return IssuedCredential(subject_key=key[0], purpose=key[1], secret=value, expires_at=entry.expires_at)

    def verify(self, subject_key: str, purpose, candidate: str) -> None:
        """Успех - запись удаляется (одноразовость). Любая неудача - InvalidCredentialError."""
        key = self._key(subject_key, purpose)
        with self._key_locks.hold(self._lock_key(key)):
            with self._guard:
                entry = self._entries.get(key)
            if entry is None:
                reason = "absent"
            elif entry.expires_at <= self.clock():
                reason = "expired"
                with self._guard:
                    self._entries.pop(key, None)
            elif not hmac.compare_digest(str(entry.secret), str(candidate or "")):
                reason = "mismatch"
            else:
                with self._guard:
                    self._entries.pop(key, None)
                log.info("credential consumed", extra={"event": "credential_consumed", "purpose": key[1].value})
                return
        log.info("credential rejected",
                 extra={"event": "credential_rejected", "purpose": key[1].value, "reason": reason})
        raise InvalidCredentialError()

    def discard(self, subject_key: str, purpose) -> bool:
        key = self._key(subject_key, purpose)
        with self._key_locks.hold(self._lock_key(key)):
            with self._guard:
                return self._entries.pop(key, None) is not None

    def sweep(self) -> int:
        """Удалить просроченные записи. Возвращает число удалённых."""
        with self._guard:
            keys = list(self._entries.keys())
            self._last_sweep = self.clock()
        removed = 0
        for key in keys:
            with self._key_locks.hold(self._lock_key(key)):
                now = self.clock()
                with self._guard:
                    entry = self._entries.get(key)
                    # перепроверяем под блокировкой ключа: могли перевыдать
                    if entry is not None and entry.expires_at <= now:
                        del self._entries[key]
                        removed += 1
        if removed:
            log.info("credentials swept", extra={"event": "credential_sweep", "count": removed})
        return removed

    def _maybe_sweep(self) -> None:
        with self._guard:
            due = self.clock() - self._last_sweep >= self.sweep_interval
        if due:
            self.sweep()
