from __future__ import annotations

from typing import Any, Dict

from tenderhub.ui_strings import error_message


class AppError(Exception):
    kind = "system_error"
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True

    def __init__(
        self,
        code: str | None = None,
        message_key: str | None = None,
        http_status: int | None = None,
        critical: bool | None = None,
        details: str | None = None,
        payload: Dict[str, Any] | None = None,
        message_params: Dict[str, Any] | None = None,
    ) -> None:
        self.code = (code or self.default_code).strip()
        self.message_key = (message_key or code or self.default_message_key).strip()
        self.http_status = int(http_status or self.default_http_status)
        self.critical = bool(self.default_critical if critical is None else critical)
        self.details = (details or "").strip() or None
        self.payload = dict(payload or {})
        self.message_params = dict(message_params or {})
        super().__init__(self.details or self.user_message())

    def user_message(self) -> str:
        fallback = error_message("unexpected_error", "The operation could not be completed.")
        template = error_message(self.message_key, fallback)
        if not self.message_params:
            return template
        try:
            return template.format(**self.message_params)
        except (KeyError, IndexError, ValueError):
            return template

    def to_response_payload(self, request_id: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.code,
            "kind": self.kind,
            "message": self.user_message(),
            "request_id": request_id,
        }
        if self.payload:
            payload.update(self.payload)
        return payload


class UserActionError(AppError):
    kind = "bad_request"
    default_code = "action_invalid"
    default_message_key = "action_invalid"
    default_http_status = 400
    default_critical = False


class ValidationError(UserActionError):
    default_code = "validation_error"
    default_message_key = "validation_error"


class PermissionError(UserActionError):
    kind = "forbidden"
    default_code = "permission_denied"
    default_message_key = "permission_denied"
    default_http_status = 403


class NotFoundError(UserActionError):
    kind = "not_found"
    default_code = "not_found"
    default_message_key = "not_found"
    default_http_status = 404


class ConflictError(UserActionError):
    kind = "conflict"
    default_code = "conflict"
    default_message_key = "conflict"
    default_http_status = 409


class SystemError(AppError):
    kind = "system_error"
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True
