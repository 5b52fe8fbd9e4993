from __future__ import annotations

from flask import current_app, g, request, session

from tenderhub.db import get_db
from tenderhub.domain.contracts import Caller
from tenderhub.errors import PermissionError as AppPermissionError
from tenderhub.infrastructure.repositories import DirectoryRepository


IDENTITY_HEADER = "X-User-Id"


def register_auth(app) -> None:
    @app.before_request
    def _load_identity():
        path = request.path or "/"
        if not path.startswith("/api/"):
            return None
        g.caller = load_caller()
        if g.caller is None and app.config.get("AUTH_ENABLED", True):
            raise _auth_required()
        return None


def _auth_required() -> AppPermissionError:
    return AppPermissionError(code="auth_required", message_key="auth_required", http_status=401)


def _identity_user_id() -> str:
    user_id = str(session.get("user_id") or "").strip()
    if user_id:
        return user_id
    if current_app.config.get("TRUST_IDENTITY_HEADERS", False):
        return str(request.headers.get(IDENTITY_HEADER) or "").strip()
    return ""


def load_caller() -> Caller | None:
    user_id = _identity_user_id()
    if not user_id:
        return None
    return DirectoryRepository().load_caller(get_db(), user_id)


def current_caller() -> Caller:
    caller = getattr(g, "caller", None)
    if caller is None:
        raise _auth_required()
    return caller
