"""
Module: revenue_kernel.selectors.product_sale_selector
Responsibility: Read access to product sales, scoped by tenant and branch.
Architecture position: Kernel > Selectors.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from revenue_kernel.domain.dtos import ProductSaleDTO
from revenue_kernel.exceptions import ProductSaleNotFoundError
from revenue_kernel.models.mapping import product_sale_to_dto
from revenue_kernel.models.product_sale import ProductSale
from revenue_kernel.selectors.base import BaseSelector


class ProductSaleSelector(BaseSelector[ProductSale]):
    def get_sale(self, tenant_id: str, branch_id: str, sale_id: str | UUID) -> ProductSaleDTO:
        try:
            sale_uuid = sale_id if isinstance(sale_id, UUID) else UUID(str(sale_id))
        except ValueError as e:
            raise ProductSaleNotFoundError(str(sale_id)) from e

        sale = self.session.execute(
            select(ProductSale).where(
                ProductSale.id == sale_uuid,
                ProductSale.tenant_id == tenant_id,
                ProductSale.branch_id == branch_id,
            )
        ).scalar_one_or_none()
        if sale is None:
            raise ProductSaleNotFoundError(str(sale_id))
        return product_sale_to_dto(sale)

    def list_sales(
        self,
        tenant_id: str,
        branch_id: str,
        sold_from: datetime | None = None,
        sold_to: datetime | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[ProductSaleDTO]:
        """Sales newest first; ``sold_from`` / ``sold_to`` are inclusive instants."""
        stmt = select(ProductSale).where(
            ProductSale.tenant_id == tenant_id,
            ProductSale.branch_id == branch_id,
        )
        if sold_from is not None:
            stmt = stmt.where(ProductSale.sold_at >= sold_from)
        if sold_to is not None:
            stmt = stmt.where(ProductSale.sold_at <= sold_to)

        rows = self.session.execute(
            stmt.order_by(ProductSale.sold_at.desc(), ProductSale.created_at.desc())
            .offset(offset)
            .limit(limit)
        ).scalars()
        return [product_sale_to_dto(sale) for sale in rows]
