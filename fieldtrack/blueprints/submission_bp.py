"""
Submission Blueprint — supervisor entry, validator decisions, admin review.

Routes:
  GET    /api/submissions                       – role-scoped list (?role=&userId=&status=&view=)
  POST   /api/submissions                       – create (JSON or multipart with ``photos``)
  GET    /api/submissions/<sid>/history         – resubmission chain, newest first
  PUT    /api/submissions/<sid>/validate        – approve / reject (+ quantity edit)
  PUT    /api/submissions/<sid>                 – legacy resubmit (deprecated)
  PUT    /api/submissions/<sid>/admin-remark    – admin annotation

Blueprints only parse and shape; every rule lives in
fieldtrack.services.submission_workflow / submission_query.
"""

import logging

from flask import Blueprint, jsonify, request

from fieldtrack.auth import current_caller, require_role
from fieldtrack.blueprints import bad_request, pagination_args, parse_photo_list, pick, request_data
from fieldtrack.core.exceptions import ForbiddenError, ValidationError
from fieldtrack.models import db
from fieldtrack.models.auth import Role
from fieldtrack.services.photo_store import LocalPhotoStore, check_photo_count
from fieldtrack.services.submission_query import (
    QueryScope,
    enrich,
    list_submissions,
    shape_for_role,
    submission_history,
)
from fieldtrack.services.submission_repository import SubmissionRepository
from fieldtrack.services.submission_workflow import (
    ResubmitFields,
    SubmissionInput,
    create_submission,
    resubmit_submission,
    set_admin_remarks,
    validate_submission,
)

logger = logging.getLogger(__name__)

submission_bp = Blueprint("submission_bp", __name__, url_prefix="/api")


# ── helpers ──────────────────────────────────────────────────────────────

def _payload(submission, caller) -> dict:
    """Enriched single record, shaped for the caller's role."""
    return shape_for_role(enrich([submission], db.session)[0], QueryScope(role=caller.role))


def _uploads():
    return LocalPhotoStore.from_app().check(request.files.getlist("photos"))


def _parse_version(value):
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("version must be an integer", details={"version": value}) from None


# ═════════════════════════════════════════════════════════════════════════════
# READ
# ═════════════════════════════════════════════════════════════════════════════

@submission_bp.route("/submissions", methods=["GET"])
def list_submissions_route():
    """List submissions visible to the caller's role, newest first."""
    caller = current_caller()
    limit, offset = pagination_args()
    items = list_submissions(
        caller.raw_role,
        caller.user_id,
        status=request.args.get("status"),
        view=request.args.get("view"),
        limit=limit,
        offset=offset,
    )
    return jsonify(items)


@submission_bp.route("/submissions/<sid>/history", methods=["GET"])
def submission_history_route(sid):
    caller = current_caller()
    items = submission_history(sid, caller.raw_role, caller.user_id, view=request.args.get("view"))
    return jsonify(items)


# ═════════════════════════════════════════════════════════════════════════════
# WRITE
# ═════════════════════════════════════════════════════════════════════════════

@submission_bp.route("/submissions", methods=["POST"])
@require_role(Role.SUPERVISOR)
def create_submission_route():
    """Create a submission, or supersede a rejected one via ``previousSubmissionId``.

    Body: { supervisorId?, supervisorName, workOrderId, lineItemId, quantity,
            actualManpower, materialConsumed?, existingPhotos?, previousSubmissionId? }
    """
    caller = current_caller()
    data = request_data()

    missing = [
        key for key, alias in (("lineItemId", "line_item_id"), ("quantity", "quantity"))
        if pick(data, key, alias) is None
    ]
    if missing:
        return bad_request(f"Missing required fields: {', '.join(missing)}", missing=missing)

    supervisor_id = pick(data, "supervisorId", "supervisor_id") or caller.user_id
    if not supervisor_id:
        return bad_request("supervisorId is required", missing=["supervisorId"])
    if caller.user_id and str(supervisor_id) != caller.user_id:
        raise ForbiddenError("Supervisors may only submit work as themselves")

    existing = parse_photo_list(pick(data, "existingPhotos", "existing_photos"))
    uploads = _uploads()
    check_photo_count(len(existing) + len(uploads))
    store = LocalPhotoStore.from_app()
    new_photos = store.save_all(uploads)

    try:
        submission = create_submission(
            SubmissionInput(
                supervisor_id=str(supervisor_id),
                supervisor_name=pick(data, "supervisorName", "supervisor_name", default=""),
                work_order_id=pick(data, "workOrderId", "work_order_id"),
                line_item_id=str(pick(data, "lineItemId", "line_item_id")),
                quantity=pick(data, "quantity"),
                actual_manpower=pick(data, "actualManpower", "actual_manpower", default=""),
                material_consumed=pick(data, "materialConsumed", "material_consumed", default=""),
                existing_photos=existing,
                previous_submission_id=pick(data, "previousSubmissionId", "previous_submission_id"),
            ),
            new_photos,
        )
    except Exception:
        store.discard(new_photos)
        raise
    return jsonify({
        "success": True,
        "message": "Submitted successfully",
        "submission": _payload(submission, caller),
    }), 201


@submission_bp.route("/submissions/<sid>/validate", methods=["PUT"])
@require_role(Role.VALIDATOR)
def validate_submission_route(sid):
    """Approve or reject.

    Body: { status: "Approved" | "Rejected", remarks?, quantity?, version? }
    """
    caller = current_caller()
    data = request_data()
    status = pick(data, "status")
    if status is None:
        return bad_request("status is required", missing=["status"])

    submission = validate_submission(
        sid,
        status,
        remarks=pick(data, "remarks"),
        quantity=pick(data, "quantity"),
        expected_version=_parse_version(data.get("version")),
        actor_id=caller.user_id,
    )
    return jsonify({
        "success": True,
        "message": f"Submission {submission.status}",
        "submission": _payload(submission, caller),
    })


@submission_bp.route("/submissions/<sid>", methods=["PUT"])
@require_role(Role.SUPERVISOR)
def resubmit_submission_route(sid):
    """Deprecated: resubmit a rejected record.

    Creates a new linked submission exactly like POST /submissions with
    ``previousSubmissionId``; the old record is never edited in place.

    Body: { quantity?, actualManpower?, materialConsumed? } + optional ``photos`` files
    """
    caller = current_caller()
    data = request_data()

    predecessor = SubmissionRepository().get_or_raise(sid)
    uploads = _uploads()
    check_photo_count(len(predecessor.evidence_photos or []) + len(uploads))
    store = LocalPhotoStore.from_app()
    new_photos = store.save_all(uploads)

    try:
        submission = resubmit_submission(
            sid,
            ResubmitFields(
                quantity=pick(data, "quantity"),
                actual_manpower=pick(data, "actualManpower", "actual_manpower"),
                material_consumed=pick(data, "materialConsumed", "material_consumed"),
            ),
            new_photos,
            supervisor_id=caller.user_id,
        )
    except Exception:
        store.discard(new_photos)
        raise
    logger.warning(
        "Deprecated resubmit endpoint used",
        extra={"submission_id": submission.id, "previous_submission_id": sid},
    )
    resp = jsonify({
        "success": True,
        "message": "Resubmitted successfully",
        "submission": _payload(submission, caller),
    })
    resp.headers["Deprecation"] = "true"
    resp.headers["Link"] = '</api/submissions>; rel="successor-version"'
    return resp


@submission_bp.route("/submissions/<sid>/admin-remark", methods=["PUT"])
@require_role(Role.ADMIN)
def admin_remark_route(sid):
    """Body: { adminRemarks }"""
    caller = current_caller()
    data = request_data()
    if "adminRemarks" not in data and "admin_remarks" not in data:
        return bad_request("adminRemarks is required", missing=["adminRemarks"])

    submission = set_admin_remarks(
        sid,
        data.get("adminRemarks", data.get("admin_remarks")),
        role=caller.role,
    )
    return jsonify({
        "success": True,
        "message": "Admin remark saved",
        "submission": _payload(submission, caller),
    })
