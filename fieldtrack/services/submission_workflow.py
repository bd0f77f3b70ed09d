"""
Submission workflow engine.

Owns every write to a Submission:

  create_submission     supervisor entry, optionally superseding a rejected one
  validate_submission   validator approve / reject (+ optional quantity edit)
  resubmit_submission   legacy "PUT /submissions/<id>" — same semantics as a
                        create with previous_submission_id
  set_admin_remarks     admin annotation, independent of status

Business rules enforced here (not in blueprints):
  - Status moves are checked against SUBMISSION_TRANSITIONS only.
  - Rate and standard manpower are captured once via RateSnapshot; a later
    quantity change recomputes revenue from that snapshot, never from the
    live LineItem.
  - A resubmission inserts the successor and flips the predecessor to
    Resubmitted in ONE commit.
  - Callers that send the version they last read get VersionConflictError
    instead of silently overwriting a newer decision.

Usage:
    from fieldtrack.services.submission_workflow import SubmissionInput, create_submission

    sub = create_submission(SubmissionInput(
        supervisor_id=uid, supervisor_name="Ravi", work_order_id=wo_id,
        line_item_id=li_id, quantity="5", actual_manpower="4",
    ))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from fieldtrack.core.exceptions import (
    ForbiddenError,
    InvalidReferenceError,
    InvalidStateTransitionError,
    ValidationError,
    VersionConflictError,
)
from fieldtrack.models import utcnow
from fieldtrack.models.auth import Role
from fieldtrack.models.submission import (
    DEFAULT_REJECTION_REMARKS,
    RateSnapshot,
    Submission,
    SubmissionStatus,
    validate_submission_transition,
)
from fieldtrack.services.revenue import compute_revenue, parse_quantity
from fieldtrack.services.submission_repository import SubmissionRepository

logger = logging.getLogger(__name__)

VALIDATION_OUTCOMES = frozenset({SubmissionStatus.APPROVED, SubmissionStatus.REJECTED})


@dataclass
class SubmissionInput:
    """Everything a supervisor sends when reporting work."""

    supervisor_id: str
    line_item_id: str
    quantity: object
    supervisor_name: str = ""
    work_order_id: str | None = None
    actual_manpower: str = ""
    material_consumed: str = ""
    existing_photos: Sequence[str] = field(default_factory=list)
    previous_submission_id: str | None = None


@dataclass
class ResubmitFields:
    """Optional overrides for a resubmission; None means "keep the predecessor's value"."""

    quantity: object = None
    actual_manpower: str | None = None
    material_consumed: str | None = None


def _text(value) -> str:
    return str(value).strip() if value is not None else ""


def _resolve_references(repo: SubmissionRepository, data: SubmissionInput):
    """Return (line_item, work_order_id) or raise InvalidReferenceError."""
    line_item = repo.get_line_item(data.line_item_id, for_update=True)
    if line_item is None:
        raise InvalidReferenceError("LineItem", data.line_item_id)

    work_order_id = data.work_order_id or line_item.work_order_id
    if work_order_id != line_item.work_order_id:
        if repo.get_work_order(work_order_id) is None:
            raise InvalidReferenceError("WorkOrder", work_order_id)
        raise InvalidReferenceError(
            "WorkOrder", work_order_id,
            reason=f"line item {line_item.id} belongs to work order {line_item.work_order_id}",
        )
    return line_item, work_order_id


def _claim_predecessor(repo: SubmissionRepository, data: SubmissionInput, line_item, work_order_id):
    """Load and check the record a resubmission supersedes (row-locked)."""
    predecessor = repo.get(data.previous_submission_id, for_update=True)
    if predecessor is None:
        raise InvalidReferenceError("Submission", data.previous_submission_id)

    if not validate_submission_transition(predecessor.status, SubmissionStatus.RESUBMITTED):
        raise InvalidStateTransitionError(
            predecessor.id, predecessor.status, SubmissionStatus.RESUBMITTED.value,
        )
    if predecessor.supervisor_id != data.supervisor_id:
        raise ForbiddenError(
            "Only the supervisor who owns a submission may resubmit it",
            details={"submission_id": predecessor.id},
        )
    if predecessor.line_item_id != line_item.id or predecessor.work_order_id != work_order_id:
        raise ValidationError(
            "A resubmission must reference the same work order and line item as the rejected submission",
            details={
                "work_order_id": predecessor.work_order_id,
                "line_item_id": predecessor.line_item_id,
            },
        )
    return predecessor


def create_submission(
    data: SubmissionInput,
    new_photos: Sequence[str] = (),
    *,
    repo: SubmissionRepository | None = None,
) -> Submission:
    """Create a Submission in Pending Validation.

    Snapshot rate / standard manpower are read from the line item at call
    time (row-locked so a concurrent rate revision cannot interleave).
    Photos are the retained existing references followed by the new
    uploads.  When ``previous_submission_id`` is set the predecessor is
    flipped to Resubmitted in the same commit.

    Raises:
        ValidationError: Missing supervisor or bad quantity.
        InvalidReferenceError: Unknown line item / work order / predecessor,
            or a line item that does not belong to the work order.
        InvalidStateTransitionError: Predecessor is not Rejected.
        ForbiddenError: Predecessor belongs to another supervisor.
        VersionConflictError: Predecessor was claimed by a concurrent resubmission.
    """
    repo = repo or SubmissionRepository()

    supervisor_id = _text(data.supervisor_id)
    if not supervisor_id:
        raise ValidationError("supervisor_id is required", details={"supervisor_id": "required"})
    data.supervisor_id = supervisor_id
    quantity = parse_quantity(data.quantity)

    try:
        line_item, work_order_id = _resolve_references(repo, data)
        predecessor = None
        if data.previous_submission_id:
            predecessor = _claim_predecessor(repo, data, line_item, work_order_id)

        snapshot = RateSnapshot.capture(line_item)
        now = utcnow()
        submission = Submission(
            supervisor_id=supervisor_id,
            supervisor_name=_text(data.supervisor_name),
            work_order_id=work_order_id,
            line_item_id=line_item.id,
            quantity=quantity,
            actual_manpower=_text(data.actual_manpower),
            material_consumed=_text(data.material_consumed),
            snapshot_rate=snapshot.rate,
            snapshot_standard_manpower=snapshot.standard_manpower,
            revenue=compute_revenue(quantity, snapshot.rate),
            status=SubmissionStatus.PENDING_VALIDATION.value,
            remarks="",
            admin_remarks="",
            evidence_photos=[*data.existing_photos, *new_photos],
            previous_submission_id=predecessor.id if predecessor else None,
            created_at=now,
            updated_at=now,
        )
        repo.add(submission)

        if predecessor is not None:
            predecessor.status = SubmissionStatus.RESUBMITTED.value
            predecessor.updated_at = now
    except Exception:
        repo.rollback()
        raise

    repo.commit(submission)

    logger.info(
        "Submission created",
        extra={
            "submission_id": submission.id,
            "previous_submission_id": submission.previous_submission_id,
            "to_status": submission.status,
            "actor_id": supervisor_id,
            "line_item_id": submission.line_item_id,
            "work_order_id": submission.work_order_id,
        },
    )
    if predecessor is not None:
        logger.info(
            "Submission superseded",
            extra={
                "submission_id": predecessor.id,
                "from_status": SubmissionStatus.REJECTED.value,
                "to_status": SubmissionStatus.RESUBMITTED.value,
                "actor_id": supervisor_id,
            },
        )
    return submission


def validate_submission(
    submission_id: str,
    status,
    remarks: str | None = None,
    quantity=None,
    *,
    expected_version: int | None = None,
    actor_id: str | None = None,
    repo: SubmissionRepository | None = None,
) -> Submission:
    """Approve or reject a Pending Validation submission.

    Rejected stores ``remarks`` (or the default reason); Approved clears
    them.  A supplied ``quantity`` overwrites the reported one and revenue
    is recomputed from the existing snapshot rate.

    Raises:
        NotFoundError: Unknown id.
        ValidationError: ``status`` is not Approved/Rejected, or bad quantity.
        VersionConflictError: ``expected_version`` does not match, or a
            concurrent writer committed first.
        InvalidStateTransitionError: Submission already decided or superseded.
    """
    repo = repo or SubmissionRepository()
    try:
        submission = repo.get_or_raise(submission_id, for_update=True)

        target = SubmissionStatus.parse(status)
        if target not in VALIDATION_OUTCOMES:
            raise ValidationError(
                f"status must be one of: {', '.join(sorted(s.value for s in VALIDATION_OUTCOMES))}",
                details={"status": status},
            )
        if expected_version is not None and int(expected_version) != submission.version:
            raise VersionConflictError(
                resource="Submission", resource_id=submission.id,
                expected=int(expected_version), actual=submission.version,
            )
        previous_status = submission.status
        if not validate_submission_transition(previous_status, target):
            raise InvalidStateTransitionError(submission.id, previous_status, target.value)

        new_quantity = parse_quantity(quantity) if quantity is not None else None

        submission.status = target.value
        if target is SubmissionStatus.REJECTED:
            submission.remarks = _text(remarks) or DEFAULT_REJECTION_REMARKS
        else:
            submission.remarks = ""
        if new_quantity is not None:
            submission.quantity = new_quantity
            submission.revenue = compute_revenue(new_quantity, submission.snapshot_rate)
        submission.updated_at = utcnow()
    except Exception:
        repo.rollback()
        raise

    repo.commit(submission)

    logger.info(
        "Submission validated",
        extra={
            "submission_id": submission.id,
            "from_status": previous_status,
            "to_status": submission.status,
            "actor_role": Role.VALIDATOR.value,
            "actor_id": actor_id,
        },
    )
    return submission


def resubmit_submission(
    submission_id: str,
    fields: ResubmitFields | None = None,
    new_photos: Sequence[str] = (),
    *,
    supervisor_id: str | None = None,
    repo: SubmissionRepository | None = None,
) -> Submission:
    """Resubmit a rejected submission as a new linked record.

    Unspecified fields are copied from the predecessor, all of its photos are
    retained and ``new_photos`` are appended.  The predecessor becomes
    Resubmitted; the returned record is the new Pending Validation entry.

    ``supervisor_id`` is the caller; when omitted the predecessor's owner is
    assumed (legacy clients never sent it).

    Raises:
        NotFoundError: Unknown id.
        plus everything create_submission raises.
    """
    repo = repo or SubmissionRepository()
    fields = fields or ResubmitFields()
    predecessor = repo.get_or_raise(submission_id)

    data = SubmissionInput(
        supervisor_id=supervisor_id or predecessor.supervisor_id,
        supervisor_name=predecessor.supervisor_name,
        work_order_id=predecessor.work_order_id,
        line_item_id=predecessor.line_item_id,
        quantity=fields.quantity if fields.quantity is not None else predecessor.quantity,
        actual_manpower=(
            fields.actual_manpower if fields.actual_manpower is not None else predecessor.actual_manpower
        ),
        material_consumed=(
            fields.material_consumed if fields.material_consumed is not None
            else predecessor.material_consumed
        ),
        existing_photos=list(predecessor.evidence_photos or []),
        previous_submission_id=predecessor.id,
    )
    return create_submission(data, new_photos, repo=repo)


def set_admin_remarks(
    submission_id: str,
    admin_remarks: str | None,
    *,
    role,
    repo: SubmissionRepository | None = None,
) -> Submission:
    """Attach or replace the admin annotation.  Status and revenue are untouched.

    Raises:
        ForbiddenError: Caller is not an admin.
        NotFoundError: Unknown id.
    """
    if Role.parse(role) is not Role.ADMIN:
        raise ForbiddenError(
            "Only admins may annotate submissions",
            details={"allowed_roles": [Role.ADMIN.value]},
        )
    repo = repo or SubmissionRepository()
    try:
        submission = repo.get_or_raise(submission_id, for_update=True)
        submission.admin_remarks = _text(admin_remarks)
        submission.updated_at = utcnow()
    except Exception:
        repo.rollback()
        raise
    repo.commit(submission)

    logger.info(
        "Admin remark set",
        extra={"submission_id": submission.id, "actor_role": Role.ADMIN.value},
    )
    return submission
