"""
User directory Blueprint.

Routes:
  GET    /api/users          – list (admin, superadmin, manager)
  POST   /api/users          – create, or update when the body carries ``id``
                               (JSON, or multipart with an ``image`` file)
  DELETE /api/users/<uid>    – delete (protected super-admin refused)
"""

from flask import Blueprint, jsonify, request

from fieldtrack.auth import require_role
from fieldtrack.blueprints import bad_request, pick, request_data
from fieldtrack.models.auth import Role
from fieldtrack.services import user_service
from fieldtrack.services.photo_store import LocalPhotoStore

user_bp = Blueprint("user_bp", __name__, url_prefix="/api")

USER_READERS = (Role.ADMIN, Role.SUPERADMIN, Role.MANAGER)
USER_EDITORS = (Role.ADMIN, Role.SUPERADMIN)


@user_bp.route("/users", methods=["GET"])
@require_role(*USER_READERS)
def list_users():
    return jsonify([u.to_dict() for u in user_service.list_users()])


@user_bp.route("/users", methods=["POST"])
@require_role(*USER_EDITORS)
def save_user():
    """Body: { id?, name, emp_id, role, email, phone?, image?, active? }

    ``image`` is either a reference string or, on multipart posts, an uploaded
    file stored alongside evidence photos.
    """
    data = request_data()
    fields = {
        "name": pick(data, "name"),
        "emp_id": pick(data, "emp_id", "empId"),
        "role": pick(data, "role"),
        "email": pick(data, "email"),
        "phone": pick(data, "phone"),
        "image": pick(data, "image"),
    }

    user_id = pick(data, "id")
    if not user_id:
        missing = [k for k in ("name", "emp_id", "role", "email") if fields[k] is None]
        if missing:
            return bad_request(f"Missing required fields: {', '.join(missing)}", missing=missing)

    store = LocalPhotoStore.from_app()
    saved = store.save_all([request.files.get("image")])
    if saved:
        fields["image"] = saved[0]

    try:
        if user_id:
            user = user_service.update_user(user_id, active=pick(data, "active"), **fields)
        else:
            user = user_service.create_user(**fields)
    except Exception:
        store.discard(saved)
        raise

    if user_id:
        return jsonify({"success": True, "message": "User updated", "user": user.to_dict()})
    return jsonify({"success": True, "message": "User created", "user": user.to_dict()}), 201


@user_bp.route("/users/<uid>", methods=["DELETE"])
@require_role(*USER_EDITORS)
def delete_user(uid):
    user_service.delete_user(uid)
    return jsonify({"success": True, "message": "User deleted"})
