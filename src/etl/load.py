"""Atomic persistence of extracted blocks and their classified transactions."""

from collections.abc import Sequence
from typing import Any

from sqlalchemy import exists, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.etl.classifier import analyze
from src.etl.db import BlockDB, ProgramRegistryDB, TransactionDB
from src.etl.instructions import resolve_account_key
from src.etl.models import Block, ProgramRecord, Transaction
from src.etl.normalizer import account_keys
from src.etl.registry import DEFAULT_PROGRAMS, ProgramRegistry
from src.helpers.constants import DB_POOL_SIZE, MAX_LABEL_LENGTH
from src.helpers.db import (
    Base,
    create_engine,
    create_session_factory,
    upsert_statement,
)
from src.helpers.logging import get_logger
from src.helpers.parsers import parse_block_time


logger = get_logger(__name__)

TRANSACTION_CHUNK_SIZE = 1000
"""Rows per INSERT statement, keeps bind parameters under the PostgreSQL limit"""


def signer_of(raw: dict[str, Any]) -> str | None:
    """First account key of a transaction payload (the fee payer)."""
    keys = account_keys(raw)
    if not keys:
        return None
    return resolve_account_key(keys[0])


def build_block_row(block: Block, parent_slot: int | None) -> dict[str, Any]:
    """Row for the blocks table.

    Args:
        block: Extracted block
        parent_slot: Parent slot to store, None when the parent is not stored
    """
    return {
        "slot": block.slot,
        "blockhash": block.blockhash,
        "parent_slot": parent_slot,
        "block_time": parse_block_time(block.block_time),
        "block_height": block.block_height,
    }


def build_transaction_row(
    block_slot: int, transaction: Transaction, registry: ProgramRegistry
) -> dict[str, Any]:
    """Row for the transactions table, classified with the given registry.

    Category and label are always recomputed here so stored values follow
    the registry in effect at load time.
    """
    details = analyze(transaction.program_ids, registry, transaction.raw)
    return {
        "signature": transaction.signature,
        "block_slot": block_slot,
        "transaction_index": transaction.index,
        "success": transaction.success,
        "fee": transaction.fee,
        "transaction_type": details.category.value,
        "transaction_label": details.label[:MAX_LABEL_LENGTH],
        "signer": signer_of(transaction.raw),
        "num_accounts": transaction.num_accounts,
        "raw_data": transaction.raw,
    }


async def _stored_parent(session: AsyncSession, parent_slot: int) -> int | None:
    """Parent slot if that block is already stored, else None (genesis: None)."""
    if parent_slot == 0:
        return None
    found = await session.scalar(select(exists().where(BlockDB.slot == parent_slot)))
    return parent_slot if found else None


async def batch_upsert(
    session_factory: async_sessionmaker[AsyncSession],
    blocks: Sequence[Block],
    registry: ProgramRegistry,
) -> tuple[int, int]:
    """Upsert blocks and all their transactions in one database transaction.

    Either everything in the batch is committed or nothing is: any error
    rolls the whole batch back and is re-raised.

    Args:
        session_factory: Factory for the unit-of-work session
        blocks: Blocks to persist, in slot order
        registry: Registry used to classify transactions

    Returns:
        Tuple of (blocks written, transactions written)

    Example:
        ```python
        written_blocks, written_txs = await batch_upsert(
            session_factory, blocks, registry
        )
        ```
    """
    blocks_written = 0
    transactions_written = 0

    async with session_factory() as session, session.begin():
        for block in blocks:
            parent_slot = await _stored_parent(session, block.parent_slot)
            await session.execute(
                upsert_statement(
                    BlockDB,
                    [build_block_row(block, parent_slot)],
                    touch_columns=["processed_at"],
                )
            )
            blocks_written += 1

            rows = [
                build_transaction_row(block.slot, transaction, registry)
                for transaction in block.transactions
            ]
            for i in range(0, len(rows), TRANSACTION_CHUNK_SIZE):
                chunk = rows[i : i + TRANSACTION_CHUNK_SIZE]
                await session.execute(
                    upsert_statement(
                        TransactionDB,
                        chunk,
                        index_elements=["signature"],
                        touch_columns=["processed_at"],
                    )
                )
                transactions_written += len(chunk)

    logger.debug(
        "Committed %d blocks and %d transactions", blocks_written, transactions_written
    )
    return blocks_written, transactions_written


class Database:
    """PostgreSQL persistence for the ETL pipeline.

    Example:
        ```python
        from src.etl.load import Database

        database = Database(get_database_url())
        await database.test_connectivity()
        await database.migrate()
        registry = await database.load_registry()
        await database.batch_upsert(blocks, registry)
        await database.dispose()
        ```
    """

    def __init__(self, database_url: str, pool_size: int = DB_POOL_SIZE) -> None:
        self.engine = create_engine(database_url, pool_size=pool_size)
        self.session_factory = create_session_factory(self.engine)

    async def test_connectivity(self) -> None:
        """Run SELECT 1; raises if the database is unreachable."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def migrate(self) -> None:
        """Create missing tables and seed the program registry.

        Seeding never overwrites registry rows that already exist.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            stmt = pg_insert(ProgramRegistryDB).values([
                program.model_dump() for program in DEFAULT_PROGRAMS
            ])
            await conn.execute(
                stmt.on_conflict_do_nothing(index_elements=["program_id"])
            )

    async def load_program_registry_records(self) -> list[ProgramRecord]:
        """All program registry rows ordered by name."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProgramRegistryDB).order_by(ProgramRegistryDB.program_name)
            )
            return [
                ProgramRecord(
                    program_id=row.program_id,
                    program_name=row.program_name,
                    program_type=row.program_type,
                    description=row.description,
                    website=row.website,
                )
                for row in result.scalars()
            ]

    async def load_registry(self) -> ProgramRegistry:
        """Registry built from the program_registry table."""
        return ProgramRegistry.from_records(await self.load_program_registry_records())

    async def batch_upsert(
        self, blocks: Sequence[Block], registry: ProgramRegistry
    ) -> tuple[int, int]:
        """Atomically upsert a batch; see batch_upsert()."""
        return await batch_upsert(self.session_factory, blocks, registry)

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()


__all__ = [
    "Database",
    "batch_upsert",
    "build_block_row",
    "build_transaction_row",
    "signer_of",
]
