"""
Master data — work orders and their billable line items.

WorkOrder is created once by an admin and never edited.  LineItem carries
the live per-unit rate; submissions copy it into their own snapshot at
creation time and never look at the live value again, so revising a rate
here only affects submissions created afterwards.
"""

from fieldtrack.models import db, isoformat, new_id, utcnow


class WorkOrder(db.Model):
    """Top-level unit of contracted work, identified by its order number."""

    __tablename__ = "work_orders"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    order_number = db.Column(
        db.String(100),
        nullable=False,
        unique=True,
        comment="Exact, case-sensitive business key",
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    line_items = db.relationship(
        "LineItem", back_populates="work_order", lazy="dynamic",
        order_by="LineItem.created_at",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "created_at": isoformat(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<WorkOrder {self.order_number}>"


class LineItem(db.Model):
    """Billable unit of work under a WorkOrder, with UOM and per-unit rate.

    ``rate`` is hidden from supervisors by the query layer; this model does
    not know about roles.
    """

    __tablename__ = "line_items"
    __table_args__ = (
        db.CheckConstraint("rate >= 0", name="ck_line_items_rate_non_negative"),
        db.Index("ix_line_items_work_order", "work_order_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    work_order_id = db.Column(
        db.String(36),
        db.ForeignKey("work_orders.id", ondelete="RESTRICT"),
        nullable=False,
    )
    name = db.Column(db.String(255), nullable=False)
    uom = db.Column(db.String(30), nullable=False, default="", comment="Unit of measure, e.g. m3")
    rate = db.Column(db.Numeric(12, 2), nullable=False, comment="Currency per UOM")
    standard_manpower = db.Column(db.String(255), nullable=False, default="")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    work_order = db.relationship("WorkOrder", back_populates="line_items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "work_order_id": self.work_order_id,
            "name": self.name,
            "uom": self.uom,
            "rate": f"{self.rate:.2f}" if self.rate is not None else None,
            "standard_manpower": self.standard_manpower,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<LineItem {self.name} @ {self.rate}/{self.uom}>"
