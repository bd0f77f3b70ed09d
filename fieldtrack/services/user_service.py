"""
User directory service.

Holds the people behind the opaque user ids: names, employee ids and
contact details used to enrich submission lists and revenue stats.
Credentials are not stored here; authentication is handled upstream.
"""

import logging

from email_validator import EmailNotValidError, validate_email
from flask import current_app
from sqlalchemy import select

from fieldtrack.core.exceptions import (
    DuplicateKeyError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from fieldtrack.models import db
from fieldtrack.models.auth import VALID_ROLES, Role, User

logger = logging.getLogger(__name__)

_UNIQUE_FIELDS = ("emp_id", "email")


def _clean(value) -> str:
    return str(value).strip() if value is not None else ""


def _check_email(email: str) -> str:
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": email}) from None


def _check_role(role) -> str:
    parsed = Role.parse(role)
    if parsed is None:
        raise ValidationError(
            f"Unknown role {role!r}",
            details={"role": role, "allowed": sorted(VALID_ROLES)},
        )
    return parsed.value


_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off"})


def _parse_active(value) -> bool:
    """A bool, or its form-encoded text ("true"/"false", "1"/"0", "yes"/"no", "on"/"off")."""
    if isinstance(value, bool):
        return value
    text = _clean(value).lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValidationError("active must be true or false", details={"active": value})


def _check_unique(field: str, value: str, exclude_id: str | None = None) -> None:
    stmt = select(User.id).where(getattr(User, field) == value)
    if exclude_id:
        stmt = stmt.where(User.id != exclude_id)
    if db.session.execute(stmt).first():
        raise DuplicateKeyError("User", field, value)


def list_users() -> list[User]:
    return list(db.session.execute(select(User).order_by(User.created_at, User.name)).scalars())


def get_user(user_id) -> User:
    user = db.session.get(User, str(user_id)) if user_id else None
    if user is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    return user


def create_user(name, emp_id, role, email, phone=None, image=None) -> User:
    """Register a user.

    Raises:
        ValidationError: Missing name / emp_id / email or unknown role.
        DuplicateKeyError: emp_id or email already taken.
    """
    values = {"name": _clean(name), "emp_id": _clean(emp_id), "email": _clean(email)}
    missing = [k for k, v in values.items() if not v]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details={k: "required" for k in missing},
        )
    values["email"] = _check_email(values["email"])
    role_value = _check_role(role)
    for field in _UNIQUE_FIELDS:
        _check_unique(field, values[field])

    user = User(
        role=role_value,
        phone=_clean(phone) or None,
        image=_clean(image) or None,
        **values,
    )
    db.session.add(user)
    db.session.commit()
    logger.info("User created", extra={"actor_id": user.id, "actor_role": user.role})
    return user


def update_user(user_id, **fields) -> User:
    """Update the supplied fields of an existing user.

    Only ``name``, ``emp_id``, ``email``, ``phone``, ``role``, ``image`` and
    ``active`` are accepted; ``None`` means "leave as is".
    """
    user = get_user(user_id)

    for field in ("name", "emp_id", "email"):
        value = fields.get(field)
        if value is None:
            continue
        text = _clean(value)
        if not text:
            raise ValidationError(f"{field} cannot be blank", details={field: "required"})
        if field == "email":
            text = _check_email(text)
        if field in _UNIQUE_FIELDS:
            _check_unique(field, text, exclude_id=user.id)
        setattr(user, field, text)

    if fields.get("role") is not None:
        user.role = _check_role(fields["role"])
    if fields.get("phone") is not None:
        user.phone = _clean(fields["phone"]) or None
    if fields.get("image") is not None:
        user.image = _clean(fields["image"]) or None
    if fields.get("active") is not None:
        user.active = _parse_active(fields["active"])

    db.session.commit()
    logger.info("User updated", extra={"actor_id": user.id})
    return user


def delete_user(user_id) -> None:
    """Remove a user.  The seeded super-admin account can never be deleted.

    Raises:
        ForbiddenError: ``user_id`` is the protected account.
        NotFoundError: Unknown id.
    """
    if str(user_id) == current_app.config["PROTECTED_USER_ID"]:
        raise ForbiddenError("Super Admin account cannot be deleted")
    user = get_user(user_id)
    db.session.delete(user)
    db.session.commit()
    logger.info("User deleted", extra={"actor_id": str(user_id)})
