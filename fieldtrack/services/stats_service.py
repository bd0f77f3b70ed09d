"""
Revenue analytics for the management dashboard.

Revenue figures only ever count Approved submissions; the status breakdown
counts everything.  Sums stay Decimal until serialised, then go out as
two-decimal strings like every other money value in the API.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, select

from fieldtrack.models import db, utcnow
from fieldtrack.models.auth import User
from fieldtrack.models.master_data import WorkOrder
from fieldtrack.models.submission import Submission, SubmissionStatus
from fieldtrack.services.revenue import format_money

logger = logging.getLogger(__name__)

DAYS_WINDOW = 7
MONTHS_WINDOW = 6
YEARS_WINDOW = 5
TOP_SUPERVISORS = 5

STATUS_COLORS = (
    ("Approved", SubmissionStatus.APPROVED, "#10b981"),
    ("Pending", SubmissionStatus.PENDING_VALIDATION, "#f59e0b"),
    ("Rejected", SubmissionStatus.REJECTED, "#ef4444"),
)


def _day(value: datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def _months_back(today: date, count: int) -> list[tuple[int, int]]:
    """(year, month) pairs for the last ``count`` months, oldest first."""
    base = today.year * 12 + today.month - 1
    return [divmod(base - i, 12) for i in reversed(range(count))]


def _series(buckets: dict, keys, label) -> list[dict]:
    return [
        {"date": label(key), "revenue": format_money(buckets.get(key, Decimal("0")))}
        for key in keys
    ]


def _status_breakdown() -> list[dict]:
    counts = dict(
        db.session.execute(
            select(Submission.status, func.count(Submission.id)).group_by(Submission.status)
        ).all()
    )
    return [
        {"name": name, "value": counts.get(status.value, 0), "color": color}
        for name, status, color in STATUS_COLORS
    ]


def revenue_stats(today: date | None = None) -> dict:
    """Dashboard payload: totals, breakdowns, time series and supervisor rankings."""
    today = today or utcnow().date()

    approved = list(
        db.session.execute(
            select(Submission, WorkOrder.order_number)
            .outerjoin(WorkOrder, WorkOrder.id == Submission.work_order_id)
            .where(Submission.status == SubmissionStatus.APPROVED.value)
        ).all()
    )
    users = list(db.session.execute(select(User).order_by(User.created_at, User.name)).scalars())

    total = Decimal("0")
    by_work_order = defaultdict(Decimal)
    by_day = defaultdict(Decimal)
    by_month = defaultdict(Decimal)
    by_year = defaultdict(Decimal)
    by_supervisor = defaultdict(Decimal)
    supervisor_ids = {}

    for sub, order_number in approved:
        revenue = sub.revenue or Decimal("0")
        created = _day(sub.created_at)
        total += revenue
        by_work_order[order_number or "Unknown"] += revenue
        by_day[created] += revenue
        by_month[(created.year, created.month - 1)] += revenue
        by_year[created.year] += revenue
        by_supervisor[sub.supervisor_name] += revenue
        supervisor_ids.setdefault(sub.supervisor_name, sub.supervisor_id)

    days = [today - timedelta(days=i) for i in reversed(range(DAYS_WINDOW))]
    months = _months_back(today, MONTHS_WINDOW)
    years = [today.year - i for i in reversed(range(YEARS_WINDOW))]

    ranked = sorted(by_supervisor.items(), key=lambda kv: kv[1], reverse=True)[:TOP_SUPERVISORS]
    top_supervisors = [{"name": name, "revenue": format_money(rev)} for name, rev in ranked]

    top_performer = None
    if ranked:
        top_name, top_revenue = ranked[0]
        user = next((u for u in users if u.id == supervisor_ids.get(top_name)), None)
        if user is None:
            user = next((u for u in users if u.name == top_name), None)
        if user is not None:
            top_performer = {
                "name": user.name,
                "email": user.email,
                "phone": user.phone,
                "emp_id": user.emp_id,
                "image": user.image or "",
                "role": user.role,
                "total_revenue": format_money(top_revenue),
            }

    user_performance = []
    for user in users:
        mine = [s for s, _ in approved if s.supervisor_id == user.id or s.supervisor_name == user.name]
        user_performance.append({
            "id": user.id,
            "name": user.name,
            "role": user.role,
            "emp_id": user.emp_id,
            "image": user.image or "",
            "approved_count": len(mine),
            "revenue_generated": format_money(sum((s.revenue for s in mine), Decimal("0"))),
        })

    logger.debug("Revenue stats computed over %d approved submissions", len(approved))

    return {
        "total_revenue": format_money(total),
        "revenue_breakdown": [
            {"name": name, "value": format_money(value)}
            for name, value in sorted(by_work_order.items(), key=lambda kv: kv[1], reverse=True)
        ],
        "status_breakdown": _status_breakdown(),
        "daily_revenue": _series(by_day, days, lambda d: d.strftime("%a")),
        "monthly_revenue": _series(
            by_month, months, lambda ym: date(ym[0], ym[1] + 1, 1).strftime("%b %y"),
        ),
        "yearly_revenue": _series(by_year, years, str),
        "top_supervisors": top_supervisors,
        "top_performer_details": top_performer,
        "user_performance": user_performance,
    }
