"""Manufacturer, product and option mapping models."""
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderdesk.database import Base

if TYPE_CHECKING:
    from orderdesk.models.order import Order


class Manufacturer(Base):
    """
    Supplier that fulfills order lines.
    order_count / last_order_date are cached values recomputed from orders.
    """
    __tablename__ = "manufacturers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    # Contact
    contact_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    cc_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Statistics (informational)
    order_count: Mapped[int] = mapped_column(Integer, default=0)
    last_order_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    products: Mapped[List["Product"]] = relationship(
        "Product",
        back_populates="manufacturer"
    )
    option_mappings: Mapped[List["OptionMapping"]] = relationship(
        "OptionMapping",
        back_populates="manufacturer",
        cascade="all, delete-orphan"
    )
    orders: Mapped[List["Order"]] = relationship(
        "Order",
        back_populates="manufacturer"
    )

    def __repr__(self) -> str:
        return f"<Manufacturer(id={self.id}, name='{self.name}')>"


class Product(Base):
    """Canonical product code to manufacturer link (manufacturer_id NULL = unmapped)."""
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_code: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="Marketplace product code"
    )
    product_name: Mapped[str] = mapped_column(String(500), nullable=False)
    option_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    manufacturer_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("manufacturers.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    price: Mapped[int] = mapped_column(Integer, default=0)
    cost: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    manufacturer: Mapped[Optional["Manufacturer"]] = relationship(
        "Manufacturer",
        back_populates="products"
    )

    def __repr__(self) -> str:
        return f"<Product(code='{self.product_code}', manufacturer_id={self.manufacturer_id})>"


class OptionMapping(Base):
    """
    (product code, normalized option name) to manufacturer link.
    More specific than Product and checked first during resolution.
    """
    __tablename__ = "option_mappings"
    __table_args__ = (
        UniqueConstraint('product_code', 'option_name', name='uq_option_mapping_code_option'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_code: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    option_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Stored normalized"
    )
    manufacturer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("manufacturers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    manufacturer: Mapped["Manufacturer"] = relationship(
        "Manufacturer",
        back_populates="option_mappings"
    )

    def __repr__(self) -> str:
        return (
            f"<OptionMapping(code='{self.product_code}', option='{self.option_name}', "
            f"manufacturer_id={self.manufacturer_id})>"
        )
