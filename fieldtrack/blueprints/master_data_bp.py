"""
Master Data Blueprint — work orders and line items.

Routes:
  GET    /api/work-orders                 – list (any known role)
  POST   /api/work-orders                 – create (admin, superadmin)
  GET    /api/line-items?workOrderId=     – list; rate omitted for supervisors
  POST   /api/line-items                  – create (admin, superadmin)
  PUT    /api/line-items/<lid>            – revise rate (admin, superadmin)
"""

from flask import Blueprint, jsonify, request

from fieldtrack.auth import current_caller, require_role
from fieldtrack.blueprints import bad_request, pick, request_data
from fieldtrack.models.auth import Role
from fieldtrack.services import master_data_service as svc

master_data_bp = Blueprint("master_data_bp", __name__, url_prefix="/api")

ANY_ROLE = tuple(Role)
MASTER_DATA_EDITORS = (Role.ADMIN, Role.SUPERADMIN)


# ═════════════════════════════════════════════════════════════════════════════
# WORK ORDERS
# ═════════════════════════════════════════════════════════════════════════════

@master_data_bp.route("/work-orders", methods=["GET"])
@require_role(*ANY_ROLE)
def list_work_orders():
    return jsonify([wo.to_dict() for wo in svc.list_work_orders()])


@master_data_bp.route("/work-orders", methods=["POST"])
@require_role(*MASTER_DATA_EDITORS)
def create_work_order():
    """Body: { orderNumber }"""
    data = request_data()
    order_number = pick(data, "orderNumber", "order_number")
    if order_number is None:
        return bad_request("orderNumber is required", missing=["orderNumber"])

    wo = svc.create_work_order(order_number)
    return jsonify({"success": True, "message": "Work Order created", "work_order": wo.to_dict()}), 201


# ═════════════════════════════════════════════════════════════════════════════
# LINE ITEMS
# ═════════════════════════════════════════════════════════════════════════════

@master_data_bp.route("/line-items", methods=["GET"])
@require_role(*ANY_ROLE)
def list_line_items():
    """Optionally filtered by ``workOrderId``; supervisors never receive ``rate``."""
    include_rate = current_caller().role is not Role.SUPERVISOR
    work_order_id = request.args.get("workOrderId") or request.args.get("work_order_id")
    items = svc.list_line_items(work_order_id)
    return jsonify([svc.line_item_payload(li, include_rate=include_rate) for li in items])


@master_data_bp.route("/line-items", methods=["POST"])
@require_role(*MASTER_DATA_EDITORS)
def create_line_item():
    """Body: { workOrderId, name, uom, rate, standardManpower }"""
    data = request_data()
    required = (("workOrderId", "work_order_id"), ("name", "name"), ("rate", "rate"))
    missing = [key for key, alias in required if pick(data, key, alias) is None]
    if missing:
        return bad_request(f"Missing required fields: {', '.join(missing)}", missing=missing)

    li = svc.create_line_item(
        pick(data, "workOrderId", "work_order_id"),
        pick(data, "name"),
        uom=pick(data, "uom", default=""),
        rate=pick(data, "rate"),
        standard_manpower=pick(data, "standardManpower", "standard_manpower", default=""),
    )
    return jsonify({"success": True, "message": "Line Item added", "line_item": li.to_dict()}), 201


@master_data_bp.route("/line-items/<lid>", methods=["PUT"])
@require_role(*MASTER_DATA_EDITORS)
def update_line_item_rate(lid):
    """Body: { rate } — applies to submissions created from now on."""
    data = request_data()
    rate = pick(data, "rate")
    if rate is None:
        return bad_request("rate is required", missing=["rate"])

    li = svc.update_line_item_rate(lid, rate)
    return jsonify({"success": True, "message": "Line Item rate updated", "line_item": li.to_dict()})
