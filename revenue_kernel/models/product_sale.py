"""
Module: revenue_kernel.models.product_sale
Responsibility: ORM persistence for over-the-counter product sales, the
    second revenue stream next to membership payments.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - total_amount equals the sum of its items' line_total.
    - line_total equals unit_price * quantity, computed in Decimal.
    - Each item names either a catalog product_id or a custom_name, not both.

Sales have no correction mechanism; a wrong sale is deleted and recreated,
subject to the same month lock as payments (keyed on the tenant-local month
of sold_at).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from revenue_kernel.db.base import Base, TrackedBase, UUIDString
from revenue_kernel.db.types import MONEY_PRECISION, MONEY_SCALE, UTCDateTime
from revenue_kernel.domain.payment_method import PaymentMethod


class ProductSale(TrackedBase):
    """Header row of a product sale."""

    __tablename__ = "product_sales"

    __table_args__ = (
        Index("idx_product_sale_tenant_branch_sold_at", "tenant_id", "branch_id", "sold_at"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    branch_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # UTC instant; grouped by tenant-local day/month when reporting
    sold_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    payment_method: Mapped[PaymentMethod] = mapped_column(String(20), nullable=False)

    note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(MONEY_PRECISION, MONEY_SCALE),
        nullable=False,
    )

    items: Mapped[list["ProductSaleItem"]] = relationship(
        back_populates="sale",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductSaleItem.position",
    )

    def __repr__(self) -> str:
        return f"<ProductSale {self.id} {self.sold_at.isoformat()}>"


class ProductSaleItem(Base):
    """One line of a product sale."""

    __tablename__ = "product_sale_items"

    sale_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("product_sales.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Catalog reference (catalog itself is an external collaborator)
    product_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    custom_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(MONEY_PRECISION, MONEY_SCALE),
        nullable=False,
    )

    line_total: Mapped[Decimal] = mapped_column(
        Numeric(MONEY_PRECISION, MONEY_SCALE),
        nullable=False,
    )

    sale: Mapped["ProductSale"] = relationship(back_populates="items")

    def __repr__(self) -> str:
        label = self.product_id or self.custom_name
        return f"<ProductSaleItem {label} x{self.quantity}>"
