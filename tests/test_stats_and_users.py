"""
Tests: revenue stats aggregation, user directory service, demo seed.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from fieldtrack.core.exceptions import DuplicateKeyError, ForbiddenError, NotFoundError, ValidationError
from fieldtrack.models import db
from fieldtrack.models.auth import User
from fieldtrack.models.master_data import LineItem, WorkOrder
from fieldtrack.models.submission import Submission
from fieldtrack.services import user_service
from fieldtrack.services.demo_seed import seed_demo_data
from fieldtrack.services.stats_service import _months_back, revenue_stats
from fieldtrack.services.submission_workflow import (
    SubmissionInput,
    create_submission,
    validate_submission,
)

from conftest import OTHER_SUPERVISOR_ID, SUPERVISOR_ID

TODAY = date(2024, 3, 15)


def _approved(line_item, quantity, supervisor_id=SUPERVISOR_ID, name="Ravi", when=None):
    sub = create_submission(SubmissionInput(
        supervisor_id=supervisor_id, supervisor_name=name,
        line_item_id=line_item.id, quantity=quantity,
    ))
    if when is not None:
        sub.created_at = when
        db.session.commit()
    validate_submission(sub.id, "Approved")
    return sub


# ── Stats ────────────────────────────────────────────────────────────────────


class TestRevenueStats:
    def test_empty(self):
        stats = revenue_stats(TODAY)
        assert stats["total_revenue"] == "0.00"
        assert stats["revenue_breakdown"] == []
        assert stats["top_performer_details"] is None
        assert len(stats["daily_revenue"]) == 7
        assert len(stats["monthly_revenue"]) == 6
        assert [y["date"] for y in stats["yearly_revenue"]] == ["2020", "2021", "2022", "2023", "2024"]

    def test_window_labels(self):
        stats = revenue_stats(TODAY)
        assert stats["daily_revenue"][-1]["date"] == "Fri"
        assert [m["date"] for m in stats["monthly_revenue"]] == [
            "Oct 23", "Nov 23", "Dec 23", "Jan 24", "Feb 24", "Mar 24",
        ]

    def test_series_bucketing(self, line_item):
        _approved(line_item, "2", when=datetime(2024, 3, 15, 9, tzinfo=timezone.utc))
        _approved(line_item, "1", when=datetime(2024, 1, 10, 9, tzinfo=timezone.utc))
        stats = revenue_stats(TODAY)

        assert stats["total_revenue"] == "300.00"
        assert stats["daily_revenue"][-1]["revenue"] == "200.00"
        monthly = {m["date"]: m["revenue"] for m in stats["monthly_revenue"]}
        assert monthly["Mar 24"] == "200.00"
        assert monthly["Jan 24"] == "100.00"
        assert monthly["Feb 24"] == "0.00"
        assert stats["yearly_revenue"][-1]["revenue"] == "300.00"

    def test_rejected_and_pending_excluded(self, line_item):
        _approved(line_item, "1")
        rejected = create_submission(SubmissionInput(
            supervisor_id=SUPERVISOR_ID, line_item_id=line_item.id, quantity="50",
        ))
        validate_submission(rejected.id, "Rejected")
        stats = revenue_stats()
        assert stats["total_revenue"] == "100.00"
        counts = {s["name"]: s["value"] for s in stats["status_breakdown"]}
        assert counts == {"Approved": 1, "Pending": 0, "Rejected": 1}

    def test_top_supervisors_and_performer(self, line_item):
        db.session.add(User(
            id=OTHER_SUPERVISOR_ID, name="Kiran", emp_id="SUP002",
            email="kiran@example.com", role="supervisor",
        ))
        db.session.commit()
        _approved(line_item, "1")
        _approved(line_item, "4", supervisor_id=OTHER_SUPERVISOR_ID, name="Kiran")

        stats = revenue_stats()
        assert [s["name"] for s in stats["top_supervisors"]] == ["Kiran", "Ravi"]
        top = stats["top_performer_details"]
        assert top["emp_id"] == "SUP002"
        assert top["total_revenue"] == "400.00"
        perf = stats["user_performance"]
        assert perf == [{
            "id": OTHER_SUPERVISOR_ID, "name": "Kiran", "role": "supervisor", "emp_id": "SUP002",
            "image": "", "approved_count": 1, "revenue_generated": "400.00",
        }]

    def test_breakdown_by_work_order(self, line_item):
        other = WorkOrder(order_number="WO-200")
        db.session.add(other)
        db.session.flush()
        li = LineItem(work_order_id=other.id, name="Shuttering", uom="m2", rate=Decimal("10.00"))
        db.session.add(li)
        db.session.commit()
        _approved(line_item, "1")
        _approved(li, "3")

        breakdown = revenue_stats()["revenue_breakdown"]
        assert breakdown == [
            {"name": "WO-100", "value": "100.00"},
            {"name": "WO-200", "value": "30.00"},
        ]

    def test_months_back_crosses_year(self):
        assert _months_back(date(2024, 2, 1), 3) == [(2023, 11), (2024, 0), (2024, 1)]


# ── Users ────────────────────────────────────────────────────────────────────


class TestUserService:
    def test_create_normalises_role(self):
        user = user_service.create_user("Asha", "SUP100", " Supervisor ", "asha@example.com")
        assert user.role == "supervisor"
        assert user.active is True

    def test_duplicate_emp_id(self):
        user_service.create_user("Asha", "SUP100", "supervisor", "asha@example.com")
        with pytest.raises(DuplicateKeyError) as exc:
            user_service.create_user("Other", "SUP100", "supervisor", "other@example.com")
        assert exc.value.field == "emp_id"

    def test_invalid_email(self):
        with pytest.raises(ValidationError):
            user_service.create_user("Asha", "SUP100", "supervisor", "not-an-email")

    def test_blank_fields(self):
        with pytest.raises(ValidationError):
            user_service.create_user("  ", "SUP100", "supervisor", "asha@example.com")

    def test_update_keeps_unset_fields(self):
        user = user_service.create_user("Asha", "SUP100", "supervisor", "asha@example.com")
        updated = user_service.update_user(user.id, role="validator", active=False)
        assert updated.role == "validator"
        assert updated.active is False
        assert updated.email == "asha@example.com"

    @pytest.mark.parametrize("text, expected", [
        ("false", False), ("0", False), ("No", False), ("true", True), ("on", True),
    ])
    def test_update_active_from_text(self, text, expected):
        user = user_service.create_user("Asha", "SUP100", "supervisor", "asha@example.com")
        assert user_service.update_user(user.id, active=text).active is expected

    def test_update_active_rejects_unknown_text(self):
        user = user_service.create_user("Asha", "SUP100", "supervisor", "asha@example.com")
        with pytest.raises(ValidationError):
            user_service.update_user(user.id, active="maybe")

    def test_update_cannot_steal_email(self):
        user_service.create_user("Asha", "SUP100", "supervisor", "asha@example.com")
        other = user_service.create_user("Kiran", "SUP101", "supervisor", "kiran@example.com")
        with pytest.raises(DuplicateKeyError):
            user_service.update_user(other.id, email="asha@example.com")

    def test_update_unknown(self):
        with pytest.raises(NotFoundError):
            user_service.update_user("missing", name="X")

    def test_protected_delete(self, app):
        with pytest.raises(ForbiddenError):
            user_service.delete_user(app.config["PROTECTED_USER_ID"])


# ── Demo seed ────────────────────────────────────────────────────────────────


class TestDemoSeed:
    def test_idempotent(self, app):
        first = seed_demo_data()
        second = seed_demo_data()
        assert first["users"] > 0
        assert second == {key: 0 for key in second}
        assert db.session.get(User, app.config["PROTECTED_USER_ID"]).role == "superadmin"
        assert db.session.query(Submission).count() == 0
