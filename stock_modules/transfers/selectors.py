"""
TransferSelector -- read-only transfer queries for reporting consumers.

Lookup by id or transfer number, listings by status or warehouse, and the
transfers still holding stock in transit.
"""

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from stock_kernel.exceptions import TransferNotFoundError
from stock_kernel.selectors.base import BaseSelector
from stock_modules.transfers.models import StockTransfer, TransferStatus
from stock_modules.transfers.orm import StockTransferModel


class TransferSelector(BaseSelector[StockTransferModel]):
    """Read-only queries over stock transfers."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, transfer_id: UUID) -> StockTransfer:
        transfer = self.session.get(StockTransferModel, transfer_id)
        if transfer is None:
            raise TransferNotFoundError(transfer_id)
        return transfer.to_dto()

    def get_by_number(self, transfer_number: str) -> StockTransfer:
        transfer = self.session.execute(
            select(StockTransferModel)
            .where(StockTransferModel.transfer_number == transfer_number)
        ).scalar_one_or_none()
        if transfer is None:
            raise TransferNotFoundError(transfer_number)
        return transfer.to_dto()

    def list_transfers(
        self,
        status: TransferStatus | None = None,
        warehouse_id: UUID | None = None,
    ) -> list[StockTransfer]:
        """Transfers newest first, optionally filtered by status or warehouse."""
        stmt = select(StockTransferModel).order_by(
            StockTransferModel.transfer_number.desc(),
        )
        if status is not None:
            stmt = stmt.where(StockTransferModel.status == status.value)
        if warehouse_id is not None:
            stmt = stmt.where(
                or_(
                    StockTransferModel.from_warehouse_id == warehouse_id,
                    StockTransferModel.to_warehouse_id == warehouse_id,
                )
            )
        return [t.to_dto() for t in self.session.execute(stmt).scalars()]

    def in_transit(self, warehouse_id: UUID | None = None) -> list[StockTransfer]:
        """Dispatched transfers whose stock has left the source but not arrived."""
        return self.list_transfers(TransferStatus.IN_TRANSIT, warehouse_id)

    def with_discrepancies(self) -> list[StockTransfer]:
        return [t for t in self.list_transfers() if t.discrepancies]
