"""
chaintrack.database.models - SQLAlchemy 2.0 Data Models
=========================================================

Tables:
- chains    - One row per faction chain: bounds, status, per-member hits,
              accumulated consumption, derived totals and the news dedup set
- settings  - Key-value runtime state (API key, last sync timestamp)
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all chaintrack ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ChainStatus(enum.StrEnum):
    """Lifecycle of a chain.  ACTIVE -> FINISHED only, never back."""
    ACTIVE = "active"
    FINISHED = "finished"


# ---------------------------------------------------------------------------
# Chains - one row per chain id
# ---------------------------------------------------------------------------
class Chain(Base):
    """Persisted ledger for a single chain.

    ``hits`` is replaced wholesale on every sync from the chain report.
    ``consumption`` only ever grows, guarded by ``processed_news_ids``.
    ``totals`` is derived and rewritten on every save.
    """
    __tablename__ = "chains"

    chain_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    start: Mapped[int] = mapped_column(Integer, nullable=False)
    end: Mapped[int | None] = mapped_column(Integer, default=None)
    status: Mapped[ChainStatus] = mapped_column(
        Enum(ChainStatus, name="chain_status", native_enum=False),
        nullable=False,
        default=ChainStatus.ACTIVE,
    )
    hits: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    consumption: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    totals: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    processed_news_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_chains_start", "start"),
    )

    def __repr__(self) -> str:
        return f"<Chain id={self.chain_id} status={self.status} start={self.start}>"


# ---------------------------------------------------------------------------
# Settings - key-value runtime state
# ---------------------------------------------------------------------------
class Setting(Base):
    """Key-value store for runtime state.

    Values are stored as JSON strings so ``None`` round-trips as ``null``;
    typed access lives in :mod:`chaintrack.services.chain_store`.
    """
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<Setting key={self.key!r}>"
