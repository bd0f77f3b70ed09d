"""
Users and roles.

Authentication lives upstream; this table only records who the people
behind the opaque user ids are, so submission lists and revenue stats can
show a supervisor's name, employee id and email.
"""

from enum import Enum

from fieldtrack.models import db, isoformat, new_id, utcnow


class Role(str, Enum):
    SUPERVISOR = "supervisor"
    VALIDATOR = "validator"
    ADMIN = "admin"
    MANAGER = "manager"
    SUPERADMIN = "superadmin"

    @classmethod
    def parse(cls, value) -> "Role | None":
        """Return the Role for a wire value, or None when unrecognised."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


VALID_ROLES = frozenset(r.value for r in Role)


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False)
    emp_id = db.Column(db.String(50), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    phone = db.Column(db.String(30), nullable=True)
    role = db.Column(db.String(20), nullable=False, default=Role.SUPERVISOR.value)
    image = db.Column(db.String(500), nullable=True, comment="Profile photo reference")
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "emp_id": self.emp_id,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "image": self.image or "",
            "active": self.active,
            "created_at": isoformat(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<User {self.emp_id} {self.role}>"
