"""Database models for Solana blocks, transactions and the program registry."""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.helpers.constants import MAX_LABEL_LENGTH
from src.helpers.db import Base


class BlockDB(Base):
    """Solana block database model."""

    __tablename__ = "blocks"

    slot: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    blockhash: Mapped[str] = mapped_column(String(88), unique=True, nullable=False)
    parent_slot: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("blocks.slot", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )  # NULL when the parent was not stored at load time
    block_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    block_height: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True, index=True
    )
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class TransactionDB(Base):
    """Solana transaction database model with its classification."""

    __tablename__ = "transactions"
    __table_args__ = (UniqueConstraint("block_slot", "transaction_index"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    signature: Mapped[str] = mapped_column(String(88), unique=True, nullable=False)
    block_slot: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("blocks.slot", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    transaction_index: Mapped[int] = mapped_column(Integer, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, index=True)
    fee: Mapped[int] = mapped_column(BigInteger, nullable=False)
    transaction_type: Mapped[str | None] = mapped_column(
        String(50), nullable=True, index=True
    )
    transaction_label: Mapped[str | None] = mapped_column(
        String(MAX_LABEL_LENGTH), nullable=True
    )
    signer: Mapped[str | None] = mapped_column(String(44), nullable=True, index=True)
    num_accounts: Mapped[int | None] = mapped_column(Integer, nullable=True)
    raw_data: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class ProgramRegistryDB(Base):
    """Known on-chain programs and their categories."""

    __tablename__ = "program_registry"

    program_id: Mapped[str] = mapped_column(String(44), primary_key=True)
    program_name: Mapped[str] = mapped_column(String(100), nullable=False)
    program_type: Mapped[str | None] = mapped_column(
        String(50), nullable=True
    )  # DEX, NFT, Token, System, ...
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    website: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


__all__ = [
    "BlockDB",
    "ProgramRegistryDB",
    "TransactionDB",
]
