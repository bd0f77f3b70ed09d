"""
Revenue analytics Blueprint.

Routes:
  GET    /api/stats    – dashboard payload (manager, superadmin, admin)
"""

from flask import Blueprint, jsonify

from fieldtrack.auth import require_role
from fieldtrack.models.auth import Role
from fieldtrack.services.stats_service import revenue_stats

stats_bp = Blueprint("stats_bp", __name__, url_prefix="/api")


@stats_bp.route("/stats", methods=["GET"])
@require_role(Role.MANAGER, Role.SUPERADMIN, Role.ADMIN)
def stats():
    return jsonify(revenue_stats())
