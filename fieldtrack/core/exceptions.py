"""
Service-layer exception hierarchy.

Every business-rule failure in the tracker is raised as one of these types.
The app factory registers a single error handler against FieldtrackError so
each kind maps to one HTTP status and one machine-readable ``error`` string
everywhere.  Callers (UI, chat front-ends) branch on that string to tell
"nothing to validate" from "already decided" from "not allowed for your role".

Usage:
    from fieldtrack.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Submission", resource_id=sid)
    raise ValidationError("quantity must be >= 0", details={"quantity": "-1"})
"""


class FieldtrackError(Exception):
    """Base class for caller-visible service errors.

    Subclasses set ``kind`` (the wire name of the error) and ``status_code``.
    """

    kind = "Error"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": str(self), "details": self.details}


class NotFoundError(FieldtrackError):
    """Raised when a requested record does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Submission", "LineItem").
        resource_id: The id that was looked up.
    """

    kind = "NotFound"
    status_code = 404

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg, details={"resource": resource, "id": resource_id})


class InvalidReferenceError(FieldtrackError):
    """Raised when a create call points at a work order or line item that does not exist.

    Distinct from NotFoundError: the record being *operated on* is fine, one
    of its references is not.  Maps to HTTP 400.
    """

    kind = "InvalidReference"
    status_code = 400

    def __init__(self, resource: str, resource_id: str | None, reason: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"Invalid {resource} reference id={resource_id}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, details={"resource": resource, "id": resource_id})


class DuplicateKeyError(FieldtrackError):
    """Raised when a create would violate a unique business key.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    kind = "DuplicateKey"
    status_code = 409

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(
            f"{resource} with {field}={value!r} already exists",
            details={"field": field},
        )


class InvalidStateTransitionError(FieldtrackError):
    """Raised when a submission is asked to move along an edge the workflow does not define.

    Typical case: validating a submission that is already Approved or
    Resubmitted.
    """

    kind = "InvalidStateTransition"
    status_code = 409

    def __init__(self, submission_id: str, current: str, requested: str) -> None:
        self.submission_id = submission_id
        self.current_status = current
        self.requested_status = requested
        super().__init__(
            f"Cannot move submission {submission_id} from '{current}' to '{requested}'",
            details={"from": current, "to": requested},
        )


class ForbiddenError(FieldtrackError):
    """Raised when the caller's role does not grant the requested view or action.

    Unknown and missing roles land here too: role scoping fails closed.
    """

    kind = "Forbidden"
    status_code = 403


class VersionConflictError(FieldtrackError):
    """Raised when an update was computed against a stale copy of the record."""

    kind = "Conflict"
    status_code = 409

    def __init__(self, resource: str, resource_id: str, expected=None, actual=None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource} id={resource_id} was modified concurrently"
        if expected is not None:
            msg += f" (expected version {expected}, found {actual})"
        super().__init__(msg, details={"expected_version": expected, "actual_version": actual})


class ValidationError(FieldtrackError):
    """Raised when well-formed input violates a business rule.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    kind = "Validation"
    status_code = 422
