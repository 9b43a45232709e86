"""Idempotency records for client-retried mutations."""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from wallet_ledger.models.base import Base, TimestampMixin, UUIDMixin


class IdempotencyKey(Base, UUIDMixin, TimestampMixin):
    """Result pointer for a request already committed under a client key.

    ``scope`` combines the actor and the operation, so two admins (or two
    players) can use the same key without colliding.
    """

    __tablename__ = "idempotency_keys"
    __table_args__ = (
        UniqueConstraint("scope", "key", name="uq_idempotency_keys_scope_key"),
    )

    scope: Mapped[str] = mapped_column(String(120), nullable=False)
    key: Mapped[str] = mapped_column(String(128), nullable=False)
    fingerprint: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="SHA-256 of the canonical request body",
    )
    resource_type: Mapped[str] = mapped_column(String(30), nullable=False)
    resource_id: Mapped[str] = mapped_column(String(36), nullable=False)
