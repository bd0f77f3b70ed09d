"""
Submission repository — the storage seam for the workflow engine.

Workflow functions never touch ``db.session`` directly; they talk to a
SubmissionRepository.  The default instance wraps the Flask-SQLAlchemy
session (SQLite in tests, PostgreSQL in production); tests may hand in a
repository bound to another session.

Rules:
  - commit() is the single place a unit of work is made durable.  A
    resubmission adds the new row and flips the predecessor before one
    commit(), so both land together or neither does.
  - Any failure during commit() rolls the whole unit back before the error
    propagates.
  - Stale writes (version_id_col mismatch) surface as VersionConflictError.
  - Rows that feed a write are read with ``with_for_update()``; PostgreSQL
    takes a row lock, SQLite ignores the hint (its writer lock covers it).
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from fieldtrack.core.exceptions import NotFoundError, VersionConflictError
from fieldtrack.models import db
from fieldtrack.models.master_data import LineItem, WorkOrder
from fieldtrack.models.submission import Submission

logger = logging.getLogger(__name__)


class SubmissionRepository:
    """Create / read / update contract for Submission rows plus the master-data reads they need."""

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    # ── Reads ────────────────────────────────────────────────────────────

    def get(self, submission_id: str, *, for_update: bool = False) -> Submission | None:
        """Load one submission.

        With ``for_update`` the ORM also compares the row's version against
        any copy already in the session; a mismatch means another writer got
        in first and surfaces as VersionConflictError.
        """
        if not submission_id:
            return None
        stmt = select(Submission).where(Submission.id == str(submission_id))
        if for_update:
            stmt = stmt.with_for_update()
        try:
            return self.session.execute(stmt).scalar_one_or_none()
        except StaleDataError:
            self.session.rollback()
            logger.warning("Stale copy detected on load", extra={"submission_id": submission_id})
            raise VersionConflictError(resource="Submission", resource_id=str(submission_id)) from None

    def get_or_raise(self, submission_id: str, *, for_update: bool = False) -> Submission:
        submission = self.get(submission_id, for_update=for_update)
        if submission is None:
            raise NotFoundError(resource="Submission", resource_id=submission_id)
        return submission

    def get_line_item(self, line_item_id: str, *, for_update: bool = False) -> LineItem | None:
        if not line_item_id:
            return None
        stmt = select(LineItem).where(LineItem.id == str(line_item_id))
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def get_work_order(self, work_order_id: str) -> WorkOrder | None:
        if not work_order_id:
            return None
        return self.session.get(WorkOrder, str(work_order_id))

    def successor_of(self, submission_id: str) -> Submission | None:
        return self.session.execute(
            select(Submission).where(Submission.previous_submission_id == submission_id)
        ).scalar_one_or_none()

    def list(
        self,
        *,
        supervisor_id: str | None = None,
        statuses: frozenset[str] | None = None,
        status: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Submission]:
        """Filtered list, newest first by created_at."""
        stmt = select(Submission)
        if supervisor_id is not None:
            stmt = stmt.where(Submission.supervisor_id == supervisor_id)
        if statuses is not None:
            stmt = stmt.where(Submission.status.in_(sorted(statuses)))
        if status is not None:
            stmt = stmt.where(Submission.status == status)
        stmt = stmt.order_by(Submission.created_at.desc(), Submission.id.desc())
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars().all())

    def chain(self, submission_id: str) -> list[Submission]:
        """Follow previous_submission_id from ``submission_id`` back to the first entry.

        Returns newest → oldest.  A seen-set stops the walk if the data were
        ever corrupted into a loop.
        """
        records: list[Submission] = []
        seen: set[str] = set()
        current = self.get_or_raise(submission_id)
        while current is not None and current.id not in seen:
            records.append(current)
            seen.add(current.id)
            current = self.get(current.previous_submission_id) if current.previous_submission_id else None
        if current is not None:
            logger.error(
                "Resubmission chain loops back to %s", current.id,
                extra={"submission_id": submission_id},
            )
        return records

    # ── Writes ───────────────────────────────────────────────────────────

    def add(self, submission: Submission) -> Submission:
        self.session.add(submission)
        return submission

    def commit(self, submission: Submission | None = None) -> None:
        """Commit the current unit of work, rolling back on any failure.

        Raises:
            VersionConflictError: If a versioned UPDATE matched no row, or a
                concurrent resubmission already claimed the predecessor.
        """
        try:
            self.session.commit()
        except StaleDataError:
            self.session.rollback()
            rid = submission.id if submission is not None else "?"
            logger.warning("Stale write rejected", extra={"submission_id": rid})
            raise VersionConflictError(resource="Submission", resource_id=rid) from None
        except IntegrityError as exc:
            self.session.rollback()
            if "previous_submission_id" in str(exc.orig):
                rid = submission.previous_submission_id if submission is not None else "?"
                raise VersionConflictError(resource="Submission", resource_id=rid) from None
            raise
        except Exception:
            self.session.rollback()
            raise

    def rollback(self) -> None:
        self.session.rollback()
