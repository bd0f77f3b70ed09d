"""
Field Operations Tracker
Blueprint registry and request helpers shared by the API blueprints.
"""

import json

from flask import jsonify, request

from fieldtrack.core.exceptions import ValidationError


def request_data() -> dict:
    """Request fields as a plain dict: the JSON body, or the form for multipart posts."""
    if request.is_json:
        body = request.get_json(silent=True)
        return body if isinstance(body, dict) else {}
    return request.form.to_dict() if request.form else {}


def pick(data: dict, *names, default=None):
    """First present, non-blank value among ``names`` (camelCase first, snake_case fallback)."""
    for name in names:
        val = data.get(name)
        if val is None or (isinstance(val, str) and not val.strip()):
            continue
        return val
    return default


def bad_request(message: str, **details):
    """400 for malformed bodies, caught before any service is called."""
    return jsonify({"error": "BadRequest", "message": message, "details": details}), 400


def parse_photo_list(value, name: str = "existingPhotos") -> list[str]:
    """Accept a JSON array, or a JSON-encoded array string (multipart forms)."""
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise ValidationError(f"{name} must be a JSON array", details={name: value}) from None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{name} must be an array of photo references", details={name: value})
    return value


def pagination_args(max_limit=1000):
    """(limit, offset) from the query string; limit is None when not requested.

    Query params:
        limit  - max items (capped at max_limit; values below 1 are ignored)
        offset - starting position (default 0)
    """
    limit = request.args.get("limit")
    try:
        limit = min(int(limit), max_limit) if limit is not None else None
        if limit is not None and limit < 1:
            limit = None
    except (ValueError, TypeError):
        limit = None
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return limit, offset
