"""
Tests: submission workflow engine.

Covers:
    - the transition table (every legal edge, every illegal one)
    - creation: snapshot, revenue, photo ordering, reference checks
    - validation: approve / reject / quantity edit / double decision
    - resubmission: linked record, predecessor flip, ownership, atomicity
    - optimistic concurrency (explicit version and stale in-memory copy)
    - admin remarks

The ``session`` fixture in conftest.py is autouse and recreates tables after
every test, so each test builds its own submissions.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select, text

from fieldtrack.core.exceptions import (
    ForbiddenError,
    InvalidReferenceError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
    VersionConflictError,
)
from fieldtrack.models import db
from fieldtrack.models.master_data import LineItem, WorkOrder
from fieldtrack.models.submission import (
    SUBMISSION_TRANSITIONS,
    Submission,
    SubmissionStatus,
    validate_submission_transition,
)
from fieldtrack.services import master_data_service
from fieldtrack.services.revenue import compute_revenue
from fieldtrack.services.submission_repository import SubmissionRepository
from fieldtrack.services.submission_workflow import (
    ResubmitFields,
    SubmissionInput,
    create_submission,
    resubmit_submission,
    set_admin_remarks,
    validate_submission,
)

from conftest import OTHER_SUPERVISOR_ID, SUPERVISOR_ID


# ── Helpers ──────────────────────────────────────────────────────────────────


def _make_submission(line_item, quantity="5", **overrides) -> Submission:
    data = SubmissionInput(
        supervisor_id=overrides.pop("supervisor_id", SUPERVISOR_ID),
        supervisor_name="Ravi",
        work_order_id=overrides.pop("work_order_id", line_item.work_order_id),
        line_item_id=line_item.id,
        quantity=quantity,
        actual_manpower="4",
        **overrides,
    )
    return create_submission(data)


def _rejected(line_item, **kwargs) -> Submission:
    sub = _make_submission(line_item, **kwargs)
    return validate_submission(sub.id, "Rejected", remarks="Photos blurry")


def _count() -> int:
    return db.session.execute(select(func.count(Submission.id))).scalar_one()


# ═════════════════════════════════════════════════════════════════════════════
# Transition table
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize(
    "old,new",
    [(old, new) for old, targets in SUBMISSION_TRANSITIONS.items() for new in targets],
)
def test_valid_transitions(old, new):
    assert validate_submission_transition(old, new)
    assert validate_submission_transition(old.value, new.value)


@pytest.mark.parametrize(
    "old,new",
    [
        (old, new)
        for old in SubmissionStatus
        for new in SubmissionStatus
        if new not in SUBMISSION_TRANSITIONS[old]
    ],
)
def test_invalid_transitions(old, new):
    assert not validate_submission_transition(old, new)


def test_unknown_status_never_valid():
    assert not validate_submission_transition("Draft", "Approved")
    assert not validate_submission_transition("Pending Validation", "Done")


# ═════════════════════════════════════════════════════════════════════════════
# Create
# ═════════════════════════════════════════════════════════════════════════════


class TestCreate:
    def test_pending_with_snapshot_and_revenue(self, line_item):
        sub = _make_submission(line_item, quantity="5")
        assert sub.status == SubmissionStatus.PENDING_VALIDATION.value
        assert sub.snapshot_rate == Decimal("100.00")
        assert sub.snapshot_standard_manpower == "4 labourers"
        assert sub.revenue == Decimal("500.00")
        assert sub.version == 1
        assert sub.remarks == ""
        assert sub.previous_submission_id is None

    def test_work_order_defaults_to_line_item_owner(self, line_item):
        sub = create_submission(SubmissionInput(
            supervisor_id=SUPERVISOR_ID, line_item_id=line_item.id, quantity="1",
        ))
        assert sub.work_order_id == line_item.work_order_id

    def test_unknown_line_item(self, work_order):
        with pytest.raises(InvalidReferenceError) as exc:
            create_submission(SubmissionInput(
                supervisor_id=SUPERVISOR_ID, line_item_id="nope",
                work_order_id=work_order.id, quantity="1",
            ))
        assert exc.value.resource == "LineItem"
        assert _count() == 0

    def test_unknown_work_order(self, line_item):
        with pytest.raises(InvalidReferenceError) as exc:
            _make_submission(line_item, work_order_id="missing-wo")
        assert exc.value.resource == "WorkOrder"

    def test_line_item_from_another_work_order(self, line_item):
        other = master_data_service.create_work_order("WO-OTHER")
        with pytest.raises(InvalidReferenceError):
            _make_submission(line_item, work_order_id=other.id)

    def test_negative_quantity(self, line_item):
        with pytest.raises(ValidationError):
            _make_submission(line_item, quantity="-2")

    def test_missing_supervisor(self, line_item):
        with pytest.raises(ValidationError):
            _make_submission(line_item, supervisor_id="  ")

    def test_photos_retained_then_uploaded(self, line_item):
        sub = create_submission(
            SubmissionInput(
                supervisor_id=SUPERVISOR_ID,
                line_item_id=line_item.id,
                quantity="1",
                existing_photos=["/uploads/old-1.jpg", "/uploads/old-2.jpg"],
            ),
            ["/uploads/new-1.jpg"],
        )
        assert sub.evidence_photos == [
            "/uploads/old-1.jpg", "/uploads/old-2.jpg", "/uploads/new-1.jpg",
        ]

    def test_snapshot_is_write_once(self, line_item):
        sub = _make_submission(line_item)
        with pytest.raises(ValueError):
            sub.snapshot_rate = Decimal("1.00")
        with pytest.raises(ValueError):
            sub.line_item_id = "other"


# ═════════════════════════════════════════════════════════════════════════════
# Validate
# ═════════════════════════════════════════════════════════════════════════════


class TestValidate:
    def test_approve_clears_remarks(self, line_item):
        sub = _make_submission(line_item)
        sub = validate_submission(sub.id, "Approved", remarks="ignored")
        assert sub.status == "Approved"
        assert sub.remarks == ""
        assert sub.version == 2

    def test_reject_default_remarks(self, line_item):
        sub = _make_submission(line_item)
        sub = validate_submission(sub.id, "Rejected")
        assert sub.status == "Rejected"
        assert sub.remarks == "Rejected by Validator"

    def test_reject_with_remarks(self, line_item):
        sub = _rejected(line_item)
        assert sub.remarks == "Photos blurry"

    def test_quantity_edit_recomputes_from_snapshot(self, line_item):
        sub = _make_submission(line_item, quantity="5")
        sub = validate_submission(sub.id, "Approved", quantity="4")
        assert sub.quantity == Decimal("4")
        assert sub.revenue == Decimal("400.00")
        assert sub.revenue == compute_revenue(sub.quantity, sub.snapshot_rate)

    def test_double_approve_rejected(self, line_item):
        sub = _make_submission(line_item)
        validate_submission(sub.id, "Approved")
        with pytest.raises(InvalidStateTransitionError) as exc:
            validate_submission(sub.id, "Approved")
        assert exc.value.current_status == "Approved"
        assert db.session.get(Submission, sub.id).version == 2

    def test_cannot_reject_after_approval(self, line_item):
        sub = _make_submission(line_item)
        validate_submission(sub.id, "Approved")
        with pytest.raises(InvalidStateTransitionError):
            validate_submission(sub.id, "Rejected")

    @pytest.mark.parametrize("status", ["Resubmitted", "Pending Validation", "approved", "Done"])
    def test_status_must_be_a_decision(self, line_item, status):
        sub = _make_submission(line_item)
        with pytest.raises(ValidationError):
            validate_submission(sub.id, status)

    def test_unknown_id(self):
        with pytest.raises(NotFoundError):
            validate_submission("missing", "Approved")

    def test_bad_quantity_leaves_record_untouched(self, line_item):
        sub = _make_submission(line_item)
        with pytest.raises(ValidationError):
            validate_submission(sub.id, "Approved", quantity="-1")
        fresh = db.session.get(Submission, sub.id)
        assert fresh.status == SubmissionStatus.PENDING_VALIDATION.value
        assert fresh.version == 1


# ═════════════════════════════════════════════════════════════════════════════
# Optimistic concurrency
# ═════════════════════════════════════════════════════════════════════════════


class TestVersioning:
    def test_expected_version_mismatch(self, line_item):
        sub = _make_submission(line_item)
        with pytest.raises(VersionConflictError):
            validate_submission(sub.id, "Approved", expected_version=7)
        assert db.session.get(Submission, sub.id).status == SubmissionStatus.PENDING_VALIDATION.value

    def test_expected_version_match(self, line_item):
        sub = _make_submission(line_item)
        sub = validate_submission(sub.id, "Approved", expected_version=1)
        assert sub.version == 2

    def test_stale_in_memory_copy(self, line_item):
        sub = _make_submission(line_item)
        loaded = db.session.get(Submission, sub.id)
        assert loaded.version == 1
        # Another writer bumps the row behind the ORM's back
        db.session.execute(
            text("UPDATE submissions SET version = version + 1 WHERE id = :id"),
            {"id": sub.id},
        )
        with pytest.raises(VersionConflictError):
            validate_submission(sub.id, "Approved")
        fresh = db.session.get(Submission, sub.id)
        assert fresh.status == SubmissionStatus.PENDING_VALIDATION.value


# ═════════════════════════════════════════════════════════════════════════════
# Resubmission
# ═════════════════════════════════════════════════════════════════════════════


class TestResubmission:
    def test_create_with_predecessor(self, line_item):
        old = _rejected(line_item)
        new = _make_submission(line_item, quantity="6", previous_submission_id=old.id)

        assert new.status == SubmissionStatus.PENDING_VALIDATION.value
        assert new.previous_submission_id == old.id
        assert new.revenue == Decimal("600.00")
        predecessor = db.session.get(Submission, old.id)
        assert predecessor.status == SubmissionStatus.RESUBMITTED.value
        assert predecessor.remarks == "Photos blurry"

    def test_predecessor_must_be_rejected(self, line_item):
        pending = _make_submission(line_item)
        with pytest.raises(InvalidStateTransitionError):
            _make_submission(line_item, previous_submission_id=pending.id)
        assert _count() == 1

    def test_predecessor_superseded_only_once(self, line_item):
        old = _rejected(line_item)
        _make_submission(line_item, previous_submission_id=old.id)
        with pytest.raises(InvalidStateTransitionError):
            _make_submission(line_item, previous_submission_id=old.id)
        assert _count() == 2

    def test_unknown_predecessor(self, line_item):
        with pytest.raises(InvalidReferenceError):
            _make_submission(line_item, previous_submission_id="ghost")

    def test_other_supervisor_cannot_resubmit(self, line_item):
        old = _rejected(line_item)
        with pytest.raises(ForbiddenError):
            _make_submission(line_item, supervisor_id=OTHER_SUPERVISOR_ID, previous_submission_id=old.id)
        assert db.session.get(Submission, old.id).status == SubmissionStatus.REJECTED.value

    def test_predecessor_must_match_line_item(self, line_item, work_order):
        other_li = master_data_service.create_line_item(work_order.id, "Backfill", "m3", "50")
        old = _rejected(line_item)
        with pytest.raises(ValidationError):
            _make_submission(other_li, previous_submission_id=old.id)

    def test_atomic_on_commit_failure(self, line_item):
        old = _rejected(line_item)

        class _FailingCommitSession:
            def __init__(self, real):
                self._real = real

            def __getattr__(self, name):
                return getattr(self._real, name)

            def commit(self):
                self._real.flush()
                raise RuntimeError("connection lost during commit")

        repo = SubmissionRepository(session=_FailingCommitSession(db.session))
        with pytest.raises(RuntimeError):
            create_submission(
                SubmissionInput(
                    supervisor_id=SUPERVISOR_ID,
                    line_item_id=line_item.id,
                    quantity="6",
                    previous_submission_id=old.id,
                ),
                repo=repo,
            )

        assert _count() == 1
        assert db.session.get(Submission, old.id).status == SubmissionStatus.REJECTED.value
        assert SubmissionRepository().successor_of(old.id) is None

    def test_snapshot_survives_rate_change(self, line_item):
        sub = _make_submission(line_item, quantity="5")
        master_data_service.update_line_item_rate(line_item.id, "150.00")

        sub = validate_submission(sub.id, "Approved", quantity="2")
        assert sub.snapshot_rate == Decimal("100.00")
        assert sub.revenue == Decimal("200.00")

    def test_resubmission_snapshots_live_rate(self, line_item):
        old = _rejected(line_item, quantity="5")
        master_data_service.update_line_item_rate(line_item.id, "150.00")
        new = _make_submission(line_item, quantity="5", previous_submission_id=old.id)
        assert new.snapshot_rate == Decimal("150.00")
        assert new.revenue == Decimal("750.00")
        assert db.session.get(Submission, old.id).snapshot_rate == Decimal("100.00")


class TestLegacyResubmit:
    def test_copies_fields_and_appends_photos(self, line_item):
        old = create_submission(
            SubmissionInput(
                supervisor_id=SUPERVISOR_ID,
                supervisor_name="Ravi",
                line_item_id=line_item.id,
                quantity="5",
                actual_manpower="4",
                material_consumed="cement 2 bags",
            ),
            ["/uploads/a.jpg"],
        )
        validate_submission(old.id, "Rejected")

        new = resubmit_submission(
            old.id, ResubmitFields(quantity="7"), ["/uploads/b.jpg"],
        )
        assert new.id != old.id
        assert new.previous_submission_id == old.id
        assert new.quantity == Decimal("7")
        assert new.revenue == Decimal("700.00")
        assert new.actual_manpower == "4"
        assert new.material_consumed == "cement 2 bags"
        assert new.supervisor_name == "Ravi"
        assert new.evidence_photos == ["/uploads/a.jpg", "/uploads/b.jpg"]
        assert db.session.get(Submission, old.id).status == SubmissionStatus.RESUBMITTED.value

    def test_unknown_id(self):
        with pytest.raises(NotFoundError):
            resubmit_submission("missing")

    def test_pending_cannot_be_resubmitted(self, line_item):
        sub = _make_submission(line_item)
        with pytest.raises(InvalidStateTransitionError):
            resubmit_submission(sub.id)

    def test_wrong_supervisor(self, line_item):
        old = _rejected(line_item)
        with pytest.raises(ForbiddenError):
            resubmit_submission(old.id, supervisor_id=OTHER_SUPERVISOR_ID)


# ═════════════════════════════════════════════════════════════════════════════
# Chain
# ═════════════════════════════════════════════════════════════════════════════


def test_chain_is_acyclic_and_ordered(line_item):
    first = _rejected(line_item, quantity="1")
    second = _make_submission(line_item, quantity="2", previous_submission_id=first.id)
    validate_submission(second.id, "Rejected")
    third = _make_submission(line_item, quantity="3", previous_submission_id=second.id)

    chain = SubmissionRepository().chain(third.id)
    assert [s.id for s in chain] == [third.id, second.id, first.id]
    assert len({s.id for s in chain}) == 3
    assert [s.status for s in chain] == ["Pending Validation", "Resubmitted", "Resubmitted"]


# ═════════════════════════════════════════════════════════════════════════════
# Scenarios
# ═════════════════════════════════════════════════════════════════════════════


def test_scenario_happy_path():
    wo = master_data_service.create_work_order("WO-HAPPY")
    li = master_data_service.create_line_item(wo.id, "Excavation", "m3", "100.00")
    sub = _make_submission(li, quantity="5")
    assert sub.revenue == Decimal("500.00")
    sub = validate_submission(sub.id, "Approved")
    assert sub.status == "Approved"
    assert sub.revenue == Decimal("500.00")


def test_scenario_reject_and_resubmit():
    wo = master_data_service.create_work_order("WO-RR")
    li = master_data_service.create_line_item(wo.id, "Excavation", "m3", "100.00")
    s1 = _make_submission(li, quantity="5")
    validate_submission(s1.id, "Rejected", remarks="Photos blurry")
    s2 = _make_submission(li, quantity="5", previous_submission_id=s1.id)

    assert db.session.get(Submission, s1.id).status == "Resubmitted"
    assert s2.status == "Pending Validation"
    assert s2.previous_submission_id == s1.id
    s2 = validate_submission(s2.id, "Approved")
    assert s2.status == "Approved"


def test_scenario_validator_edits_quantity():
    wo = master_data_service.create_work_order("WO-EDIT")
    li = master_data_service.create_line_item(wo.id, "Excavation", "m3", "100.00")
    sub = _make_submission(li, quantity="5")
    sub = validate_submission(sub.id, "Approved", quantity="4")
    assert sub.quantity == Decimal("4")
    assert sub.revenue == Decimal("400.00")
    assert sub.status == "Approved"
    assert db.session.get(WorkOrder, wo.id) is not None
    assert db.session.get(LineItem, li.id).rate == Decimal("100.00")


# ═════════════════════════════════════════════════════════════════════════════
# Admin remarks
# ═════════════════════════════════════════════════════════════════════════════


class TestAdminRemarks:
    def test_set_on_any_status(self, line_item):
        sub = _make_submission(line_item)
        validate_submission(sub.id, "Approved")
        sub = set_admin_remarks(sub.id, "Checked on site", role="admin")
        assert sub.admin_remarks == "Checked on site"
        assert sub.status == "Approved"
        assert sub.revenue == Decimal("500.00")

    @pytest.mark.parametrize("role", ["validator", "supervisor", "manager", "", None, "root"])
    def test_non_admin_forbidden(self, line_item, role):
        sub = _make_submission(line_item)
        with pytest.raises(ForbiddenError):
            set_admin_remarks(sub.id, "x", role=role)

    def test_unknown_id(self):
        with pytest.raises(NotFoundError):
            set_admin_remarks("missing", "x", role="admin")
