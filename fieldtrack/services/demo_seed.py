"""
Demo seed for local development (``flask seed-demo``).

Idempotent: existing users (by emp_id) and work orders (by order number)
are left alone, so the command can be re-run after a partial seed.
"""

import logging
from decimal import Decimal

from flask import current_app
from sqlalchemy import select

from fieldtrack.models import db
from fieldtrack.models.auth import Role, User
from fieldtrack.models.master_data import LineItem, WorkOrder

logger = logging.getLogger(__name__)

DEMO_USERS = [
    {"name": "Super Admin", "emp_id": "ADM001", "email": "admin@fieldtrack.example.com", "role": Role.SUPERADMIN},
    {"name": "Ravi Kumar", "emp_id": "SUP001", "email": "ravi@fieldtrack.example.com", "role": Role.SUPERVISOR},
    {"name": "Meena Iyer", "emp_id": "VAL001", "email": "meena@fieldtrack.example.com", "role": Role.VALIDATOR},
    {"name": "Arjun Das", "emp_id": "ADM002", "email": "arjun@fieldtrack.example.com", "role": Role.ADMIN},
    {"name": "Priya Nair", "emp_id": "MGR001", "email": "priya@fieldtrack.example.com", "role": Role.MANAGER},
]

DEMO_WORK_ORDER = "WO-2024-001"
DEMO_LINE_ITEMS = [
    ("Excavation", "m3", Decimal("450.00"), "4 labourers"),
    ("PCC 1:4:8", "m3", Decimal("5200.00"), "1 mason, 6 labourers"),
    ("Brick masonry", "m2", Decimal("780.50"), "2 masons, 2 helpers"),
]


def seed_demo_data() -> dict:
    """Insert demo users, one work order and its line items.  Returns insert counts."""
    counts = {"users": 0, "work_orders": 0, "line_items": 0}
    protected_id = current_app.config["PROTECTED_USER_ID"]

    for entry in DEMO_USERS:
        if db.session.execute(select(User.id).where(User.emp_id == entry["emp_id"])).first():
            continue
        user = User(
            name=entry["name"],
            emp_id=entry["emp_id"],
            email=entry["email"],
            role=entry["role"].value,
        )
        if entry["role"] is Role.SUPERADMIN:
            user.id = protected_id
        db.session.add(user)
        counts["users"] += 1

    wo = db.session.execute(
        select(WorkOrder).where(WorkOrder.order_number == DEMO_WORK_ORDER)
    ).scalar_one_or_none()
    if wo is None:
        wo = WorkOrder(order_number=DEMO_WORK_ORDER)
        db.session.add(wo)
        db.session.flush()
        counts["work_orders"] += 1
        for name, uom, rate, manpower in DEMO_LINE_ITEMS:
            db.session.add(LineItem(
                work_order_id=wo.id, name=name, uom=uom, rate=rate, standard_manpower=manpower,
            ))
            counts["line_items"] += 1

    db.session.commit()
    logger.info("Demo seed complete", extra={"work_order_id": wo.id})
    return counts
