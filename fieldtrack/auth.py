"""
Field Operations Tracker
Caller identity & role guards.

Login, OTP and session handling live in an upstream service.  By the time a
request reaches this app the caller is an opaque ``(role, user_id)`` pair,
delivered either as headers (``X-User-Role`` / ``X-User-Id``, set by the
gateway) or, for the legacy dashboard calls, as ``role`` / ``userId``
query-string, form or JSON fields.

Security model:
    - Unknown or missing roles are rejected with ForbiddenError (fail closed).
    - Route guards name the roles allowed; anything else gets HTTP 403.
"""

import functools
import logging
from dataclasses import dataclass

from flask import g, request

from fieldtrack.core.exceptions import ForbiddenError
from fieldtrack.models.auth import Role

logger = logging.getLogger(__name__)

ROLE_HEADER = "X-User-Role"
USER_HEADER = "X-User-Id"


@dataclass(frozen=True)
class Caller:
    role: Role | None
    user_id: str | None
    raw_role: str | None = None

    @property
    def is_known(self) -> bool:
        return self.role is not None


def _request_value(*names: str) -> str | None:
    """First non-empty value among query string, form fields and JSON body."""
    body = request.get_json(silent=True) if request.is_json else None
    for name in names:
        val = request.args.get(name)
        if not val and request.form:
            val = request.form.get(name)
        if not val and isinstance(body, dict):
            val = body.get(name)
        if val:
            return str(val)
    return None


def resolve_caller() -> Caller:
    """Build the Caller for the current request (headers win over parameters)."""
    raw_role = request.headers.get(ROLE_HEADER) or _request_value("role")
    user_id = request.headers.get(USER_HEADER) or _request_value("userId", "user_id")
    return Caller(role=Role.parse(raw_role), user_id=user_id or None, raw_role=raw_role)


def current_caller() -> Caller:
    caller = getattr(g, "caller", None)
    if caller is None:
        caller = resolve_caller()
        g.caller = caller
    return caller


def require_role(*allowed: Role):
    """
    Decorator: only callers whose role is in ``allowed`` may use the endpoint.

    Usage:
        @submission_bp.route("/submissions/<sid>/validate", methods=["PUT"])
        @require_role(Role.VALIDATOR)
        def validate(sid): ...
    """
    allowed_set = frozenset(allowed)

    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            caller = current_caller()
            if caller.role not in allowed_set:
                logger.warning(
                    "Access denied: role %r tried to access %s",
                    caller.raw_role, request.path,
                    extra={"actor_role": caller.raw_role, "actor_id": caller.user_id},
                )
                raise ForbiddenError(
                    f"Role {caller.raw_role!r} is not allowed to perform this action",
                    details={"allowed_roles": sorted(r.value for r in allowed_set)},
                )
            return f(*args, **kwargs)
        return decorated
    return decorator


def init_auth(app):
    """Resolve the caller once per API request and stash it on ``g``."""

    @app.before_request
    def _attach_caller():
        if not request.path.startswith("/api/") or request.method == "OPTIONS":
            return None
        g.caller = resolve_caller()
        return None
