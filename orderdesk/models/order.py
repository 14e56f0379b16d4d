"""Order line model."""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Numeric, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderdesk.database import Base

if TYPE_CHECKING:
    from orderdesk.models.manufacturer import Manufacturer


class OrderStatus(str, Enum):
    """Order status enumeration."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class Order(Base):
    """
    One fulfillment line from a marketplace upload.

    manufacturer_name mirrors manufacturer_id; every write path sets both.
    fulfillment_type is the raw routing hint from the source system and is
    only read for exclusion matching.
    """
    __tablename__ = "orders"
    __table_args__ = (
        Index('ix_order_status_created', 'status', 'created_at'),
        Index('ix_order_manufacturer_status', 'manufacturer_id', 'status'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_number: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True
    )

    # Product
    product_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    product_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    option_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    payment_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))

    # Recipient
    recipient_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    shopping_mall: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Manufacturer assignment
    manufacturer_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("manufacturers.id"),
        nullable=True
    )
    manufacturer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    status: Mapped[str] = mapped_column(
        String(50),
        default=OrderStatus.PENDING.value,
        nullable=False,
        comment="pending, processing, completed, error"
    )

    # Exclusion
    fulfillment_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    excluded_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Shipping (filled by invoice reconciliation)
    courier: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    manufacturer: Mapped[Optional["Manufacturer"]] = relationship(
        "Manufacturer",
        back_populates="orders"
    )

    def __repr__(self) -> str:
        return f"<Order(order_number='{self.order_number}', status='{self.status}')>"
