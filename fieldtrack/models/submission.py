"""
Submission — one supervisor's reported quantity of work against a line item.

Status machine (SUBMISSION_TRANSITIONS is the only place legal moves live):

    (create) ─► Pending Validation ─┬─► Approved            (terminal)
                                    └─► Rejected ─► Resubmitted (terminal;
                                                    a new record continues
                                                    the chain)

Write-once columns (ownership, references, the rate snapshot) refuse
reassignment at the ORM level.  ``revenue`` is derived by
fieldtrack.services.revenue.compute_revenue and never set independently.

``version`` is SQLAlchemy's optimistic-concurrency counter: every UPDATE is
issued as ``... WHERE id = :id AND version = :loaded_version`` and raises
StaleDataError when another writer got there first.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy.orm import validates

from fieldtrack.models import db, isoformat, new_id, utcnow
from fieldtrack.services.revenue import format_money, format_quantity


class SubmissionStatus(str, Enum):
    PENDING_VALIDATION = "Pending Validation"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    RESUBMITTED = "Resubmitted"

    @classmethod
    def parse(cls, value) -> "SubmissionStatus | None":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


SUBMISSION_TRANSITIONS = {
    SubmissionStatus.PENDING_VALIDATION: frozenset({SubmissionStatus.APPROVED, SubmissionStatus.REJECTED}),
    SubmissionStatus.REJECTED: frozenset({SubmissionStatus.RESUBMITTED}),
    SubmissionStatus.APPROVED: frozenset(),
    SubmissionStatus.RESUBMITTED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in SUBMISSION_TRANSITIONS.items() if not targets)

DEFAULT_REJECTION_REMARKS = "Rejected by Validator"


def validate_submission_transition(old_status, new_status) -> bool:
    """Return True if Submission status transition is valid."""
    old = SubmissionStatus.parse(old_status)
    new = SubmissionStatus.parse(new_status)
    if old is None or new is None:
        return False
    return new in SUBMISSION_TRANSITIONS[old]


@dataclass(frozen=True)
class RateSnapshot:
    """Master-data values frozen at submission time.

    Kept separate from LineItem so nothing downstream can reach for the live
    rate by accident: a Submission only ever sees this value object.
    """

    line_item_id: str
    rate: Decimal
    standard_manpower: str
    captured_at: datetime

    @classmethod
    def capture(cls, line_item) -> "RateSnapshot":
        return cls(
            line_item_id=line_item.id,
            rate=Decimal(line_item.rate),
            standard_manpower=line_item.standard_manpower or "",
            captured_at=utcnow(),
        )


_WRITE_ONCE = (
    "supervisor_id",
    "supervisor_name",
    "work_order_id",
    "line_item_id",
    "snapshot_rate",
    "snapshot_standard_manpower",
    "previous_submission_id",
)


class Submission(db.Model):
    """
    Work-quantity entry with its own validation status.

    Business rules:
    - revenue == compute_revenue(quantity, snapshot_rate) at every state.
    - A resubmission is a NEW row whose previous_submission_id points at the
      rejected predecessor; the unique constraint on that column means a
      predecessor is superseded at most once.
    - No deletion path.
    """

    __tablename__ = "submissions"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_submissions_quantity_non_negative"),
        db.Index("ix_submissions_supervisor_created", "supervisor_id", "created_at"),
        db.Index("ix_submissions_status_created", "status", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    # Ownership, write-once
    supervisor_id = db.Column(db.String(36), nullable=False)
    supervisor_name = db.Column(db.String(200), nullable=False, default="")

    # References, write-once
    work_order_id = db.Column(
        db.String(36), db.ForeignKey("work_orders.id", ondelete="RESTRICT"), nullable=False,
    )
    line_item_id = db.Column(
        db.String(36), db.ForeignKey("line_items.id", ondelete="RESTRICT"), nullable=False,
    )

    # Supervisor inputs
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    actual_manpower = db.Column(db.String(255), nullable=False, default="")
    material_consumed = db.Column(db.Text, nullable=False, default="")

    # Master data snapshot taken at creation, write-once
    snapshot_rate = db.Column(db.Numeric(12, 2), nullable=False)
    snapshot_standard_manpower = db.Column(db.String(255), nullable=False, default="")

    # Derived
    revenue = db.Column(db.Numeric(16, 2), nullable=False)

    # Workflow
    status = db.Column(
        db.String(30),
        nullable=False,
        default=SubmissionStatus.PENDING_VALIDATION.value,
        comment="Pending Validation | Approved | Rejected | Resubmitted",
    )
    remarks = db.Column(db.Text, nullable=False, default="", comment="Validator rejection reason")
    admin_remarks = db.Column(db.Text, nullable=False, default="")
    previous_submission_id = db.Column(
        db.String(36),
        db.ForeignKey("submissions.id", ondelete="RESTRICT"),
        nullable=True,
        unique=True,
    )

    evidence_photos = db.Column(db.JSON, nullable=False, default=list)

    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __mapper_args__ = {"version_id_col": version}

    work_order = db.relationship("WorkOrder")
    line_item = db.relationship("LineItem")
    previous_submission = db.relationship(
        "Submission", remote_side=[id], uselist=False, foreign_keys=[previous_submission_id],
    )

    @validates(*_WRITE_ONCE)
    def _guard_write_once(self, key, value):
        current = getattr(self, key)
        if current is not None and current != value:
            raise ValueError(f"Submission.{key} is write-once")
        return value

    @property
    def status_enum(self) -> SubmissionStatus:
        return SubmissionStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum in TERMINAL_STATUSES

    def to_dict(self) -> dict:
        """Serialize every stored field; role shaping happens in the query layer."""
        return {
            "id": self.id,
            "supervisor_id": self.supervisor_id,
            "supervisor_name": self.supervisor_name,
            "work_order_id": self.work_order_id,
            "line_item_id": self.line_item_id,
            "quantity": format_quantity(self.quantity),
            "actual_manpower": self.actual_manpower,
            "material_consumed": self.material_consumed,
            "snapshot_rate": format_money(self.snapshot_rate),
            "snapshot_standard_manpower": self.snapshot_standard_manpower,
            "revenue": format_money(self.revenue),
            "status": self.status,
            "remarks": self.remarks,
            "admin_remarks": self.admin_remarks,
            "previous_submission_id": self.previous_submission_id,
            "evidence_photos": list(self.evidence_photos or []),
            "version": self.version,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Submission {self.id} {self.status} qty={self.quantity}>"
