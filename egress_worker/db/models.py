"""
SQLAlchemy database models.
Defines the IP address registry table read by the worker.
"""

from datetime import datetime

from sqlalchemy import (
    DateTime,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class IPAddress(Base):
    """
    A registered egress address.

    Each row owns one outgoing queue, named after its id. A row with both
    ipv4 and ipv6 set describes a single dual-stack egress point: a host must
    hold both addresses before it may consume that queue.
    """

    __tablename__ = "ip_addresses"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    ipv4: Mapped[str] = mapped_column(
        String(45),
        nullable=False,
        unique=True,
    )
    ipv6: Mapped[str | None] = mapped_column(
        String(45),
        nullable=True,
        unique=True,
    )

    hostname: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=100,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"IPAddress(id={self.id}, ipv4={self.ipv4}, ipv6={self.ipv6})"
