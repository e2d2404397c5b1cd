# blueprints/core/errors.py
"""
Ошибки сервисного слоя.

Сервисы бросают их, API-слой превращает в JSON-ответ
``{"error": code, "message": ..., "detail": {...}}`` с нужным HTTP-кодом.
"""
from __future__ import annotations

from typing import Any, Optional


class ServiceError(Exception):
    code = "service_error"
    http_status = 400

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body["detail"] = self.details
        return body


class ValidationError(ServiceError):
    """Некорректный ввод: count < 1, неизвестный тип кровати/корпус и т.п."""
    code = "validation_error"
    http_status = 422


class NotFoundError(ServiceError):
    code = "not_found"
    http_status = 404

    def __init__(self, resource_type: str, identifier: Any, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(f"{resource_type} '{identifier}' not found", details)
        self.resource_type = resource_type
        self.identifier = identifier


class CapacityError(ServiceError):
    """Не хватает комнат нужного типа (или свободных мест)."""
    code = "capacity_exceeded"
    http_status = 409

    def __init__(self, message: str, *, available: int, requested: int,
                 details: Optional[dict[str, Any]] = None) -> None:
        data = {"available": available, "requested": requested}
        data.update(details or {})
        super().__init__(message, data)
        self.available = available
        self.requested = requested


class ConflictError(ServiceError):
    """Состояние изменилось между проверкой и записью, или дубликат."""
    code = "conflict"
    http_status = 409


class InvalidCredentialError(ServiceError):
    # намеренно без подробностей: не различаем «неверный», «истёк», «не выдавался»
    code = "invalid_credential"
    http_status = 400

    def __init__(self, message: str = "Invalid or expired code") -> None:
        super().__init__(message)


class AuthenticationError(ServiceError):
    code = "invalid_credentials"
    http_status = 401

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class PermissionDeniedError(ServiceError):
    code = "forbidden"
    http_status = 403
