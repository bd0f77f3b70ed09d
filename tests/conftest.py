"""
Shared pytest fixtures for the Field Operations Tracker test suite.

Provides:
    - app: Flask application (session-scoped), uploads redirected to a tmp dir
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - work_order / line_item: Pre-created master data (rate 100.00)
    - headers(): X-User-Role / X-User-Id header builder
"""

from decimal import Decimal

import pytest

from fieldtrack import create_app
from fieldtrack.models import db as _db
from fieldtrack.models.master_data import LineItem, WorkOrder

SUPERVISOR_ID = "sup-0001"
OTHER_SUPERVISOR_ID = "sup-0002"
VALIDATOR_ID = "val-0001"
ADMIN_ID = "adm-0001"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create the Flask application once per test session."""
    application = create_app("testing")
    application.config["UPLOAD_FOLDER"] = str(tmp_path_factory.mktemp("uploads"))
    return application


def _drop_all():
    """drop_all with SQLite FK enforcement paused.

    submissions.previous_submission_id is a self-referencing RESTRICT FK,
    which SQLite checks row by row during DROP TABLE's implicit DELETE.
    """
    engine = _db.engine
    if engine.dialect.name != "sqlite":
        _db.drop_all()
        return
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        _db.metadata.drop_all(conn)
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")
        conn.commit()


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


def headers(role: str, user_id: str | None = None) -> dict:
    h = {"X-User-Role": role}
    if user_id:
        h["X-User-Id"] = user_id
    return h


@pytest.fixture()
def work_order():
    wo = WorkOrder(order_number="WO-100")
    _db.session.add(wo)
    _db.session.commit()
    return wo


@pytest.fixture()
def line_item(work_order):
    li = LineItem(
        work_order_id=work_order.id,
        name="Excavation",
        uom="m3",
        rate=Decimal("100.00"),
        standard_manpower="4 labourers",
    )
    _db.session.add(li)
    _db.session.commit()
    return li
