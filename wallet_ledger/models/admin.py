"""Admin account model."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from wallet_ledger.models.base import Base, JSONType, TimestampMixin, UUIDMixin


class AdminAccount(Base, UUIDMixin, TimestampMixin):
    """Admin panel user. Permissions are resolved from here on every request."""

    __tablename__ = "admin_accounts"

    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    permissions: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<AdminAccount {self.display_name}>"
