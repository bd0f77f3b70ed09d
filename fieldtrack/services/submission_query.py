"""
Role-scoped submission queries.

Every submission list or history the API returns goes through here, so the
role rules live in one place:

    supervisor   own records only; rate / revenue / snapshot_rate removed
    validator    every record, every field
    admin        Approved only (``view=all`` widens to every status)
    anything else (manager, superadmin, unknown, missing) → ForbiddenError

Items are enriched with the work order number, line item name / UOM and the
supervisor's directory details, falling back to "Unknown" / "N/A" when a
referenced row is missing.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import func, select

from fieldtrack.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from fieldtrack.models.auth import Role, User
from fieldtrack.models.master_data import LineItem, WorkOrder
from fieldtrack.models.submission import SubmissionStatus
from fieldtrack.services.revenue import format_money
from fieldtrack.services.submission_repository import SubmissionRepository

logger = logging.getLogger(__name__)

FINANCIAL_FIELDS = ("rate", "revenue", "snapshot_rate")
ADMIN_VISIBLE_STATUSES = frozenset({SubmissionStatus.APPROVED.value})
LIST_ROLES = frozenset({Role.SUPERVISOR, Role.VALIDATOR, Role.ADMIN})


@dataclass(frozen=True)
class QueryScope:
    """Filter criteria and field shaping derived from the caller's role."""

    role: Role
    supervisor_id: str | None = None
    statuses: frozenset | None = None

    @property
    def hide_financials(self) -> bool:
        return self.role is Role.SUPERVISOR

    def allows(self, submission) -> bool:
        if self.supervisor_id is not None and submission.supervisor_id != self.supervisor_id:
            return False
        if self.statuses is not None and submission.status not in self.statuses:
            return False
        return True


def scope_for(role, user_id: str | None = None, view: str | None = None) -> QueryScope:
    """Translate (role, user_id, view) into a QueryScope, failing closed.

    Raises:
        ForbiddenError: Role is not supervisor / validator / admin, or a
            supervisor did not say who they are.
    """
    parsed = Role.parse(role)
    if parsed not in LIST_ROLES:
        logger.warning("Submission list refused for role %r", role, extra={"actor_role": str(role)})
        raise ForbiddenError(
            f"Role {role!r} may not list submissions",
            details={"allowed_roles": sorted(r.value for r in LIST_ROLES)},
        )
    if parsed is Role.SUPERVISOR:
        if not user_id:
            raise ForbiddenError("Supervisor listing requires a user id")
        return QueryScope(role=parsed, supervisor_id=str(user_id))
    if parsed is Role.ADMIN and view != "all":
        return QueryScope(role=parsed, statuses=ADMIN_VISIBLE_STATUSES)
    return QueryScope(role=parsed)


def _lookup_maps(session, submissions):
    wo_ids = {s.work_order_id for s in submissions}
    li_ids = {s.line_item_id for s in submissions}
    sup_ids = {s.supervisor_id for s in submissions}
    sup_names = {s.supervisor_name.lower() for s in submissions if s.supervisor_name}

    work_orders = {}
    if wo_ids:
        stmt = select(WorkOrder).where(WorkOrder.id.in_(sorted(wo_ids)))
        work_orders = {wo.id: wo for wo in session.execute(stmt).scalars()}
    line_items = {}
    if li_ids:
        stmt = select(LineItem).where(LineItem.id.in_(sorted(li_ids)))
        line_items = {li.id: li for li in session.execute(stmt).scalars()}
    users_by_id, users_by_name = {}, {}
    if sup_ids or sup_names:
        stmt = select(User).where(
            User.id.in_(sorted(sup_ids)) | func.lower(User.name).in_(sorted(sup_names))
        )
        for user in session.execute(stmt).scalars():
            users_by_id[user.id] = user
            users_by_name.setdefault(user.name.lower(), user)
    return work_orders, line_items, users_by_id, users_by_name


def enrich(submissions, session) -> list[dict]:
    """Serialize submissions and join in master-data and supervisor details."""
    work_orders, line_items, users_by_id, users_by_name = _lookup_maps(session, submissions)
    items = []
    for sub in submissions:
        wo = work_orders.get(sub.work_order_id)
        li = line_items.get(sub.line_item_id)
        supervisor = users_by_id.get(sub.supervisor_id)
        if supervisor is None and sub.supervisor_name:
            supervisor = users_by_name.get(sub.supervisor_name.lower())

        item = sub.to_dict()
        item.update({
            "work_order_number": wo.order_number if wo else "Unknown",
            "line_item_name": li.name if li else "Unknown",
            "uom": li.uom if li else "",
            "supervisor_name": supervisor.name if supervisor else sub.supervisor_name,
            "supervisor_email": supervisor.email if supervisor else "N/A",
            "supervisor_emp_id": supervisor.emp_id if supervisor else "N/A",
            "rate": format_money(sub.snapshot_rate),
        })
        items.append(item)
    return items


def shape_for_role(item: dict, scope: QueryScope) -> dict:
    """Drop the keys the caller's role must not see (absent, not nulled)."""
    if scope.hide_financials:
        for key in FINANCIAL_FIELDS:
            item.pop(key, None)
    return item


def list_submissions(
    role,
    user_id: str | None = None,
    status: str | None = None,
    view: str | None = None,
    *,
    limit: int | None = None,
    offset: int = 0,
    repo: SubmissionRepository | None = None,
) -> list[dict]:
    """Role-filtered, enriched submissions, newest first.

    Raises:
        ForbiddenError: See scope_for.
        ValidationError: ``status`` is not a known submission status.
    """
    scope = scope_for(role, user_id, view)
    status_value = None
    if status:
        parsed_status = SubmissionStatus.parse(status)
        if parsed_status is None:
            raise ValidationError(
                f"Unknown status {status!r}",
                details={"allowed": [s.value for s in SubmissionStatus]},
            )
        status_value = parsed_status.value

    repo = repo or SubmissionRepository()
    submissions = repo.list(
        supervisor_id=scope.supervisor_id,
        statuses=scope.statuses,
        status=status_value,
        limit=limit,
        offset=offset,
    )
    return [shape_for_role(item, scope) for item in enrich(submissions, repo.session)]


def submission_history(
    submission_id: str,
    role,
    user_id: str | None = None,
    view: str | None = None,
    *,
    repo: SubmissionRepository | None = None,
) -> list[dict]:
    """Resubmission chain ending at ``submission_id``, newest → oldest.

    A record outside the caller's scope is reported as NotFound so its
    existence is not disclosed.  Older links the caller may not see are
    left out of the chain.
    """
    scope = scope_for(role, user_id, view)
    repo = repo or SubmissionRepository()
    head = repo.get(submission_id)
    if head is None or not scope.allows(head):
        raise NotFoundError(resource="Submission", resource_id=submission_id)
    chain = [s for s in repo.chain(head.id) if scope.allows(s)]
    return [shape_for_role(item, scope) for item in enrich(chain, repo.session)]
