"""
Module: inspection_kernel.models.directory
Responsibility: ORM persistence for shop users and customers.
Architecture position: Kernel > Models.  May import from db/ only.

The workflow engine only reads these tables: user names for audit display,
customer phone numbers for the send-to-customer precondition.
"""

from uuid import UUID

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from inspection_kernel.db.base import TimestampedBase
from inspection_kernel.db.types import UUIDString


class UserModel(TimestampedBase):
    """A shop employee who can act on inspections."""

    __tablename__ = "users"

    __table_args__ = (Index("idx_users_shop", "shop_id"),)

    shop_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class CustomerModel(TimestampedBase):
    """A shop customer who receives inspection results."""

    __tablename__ = "customers"

    __table_args__ = (Index("idx_customers_shop", "shop_id"),)

    shop_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
