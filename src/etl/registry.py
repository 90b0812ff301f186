"""In-memory program registry used for transaction classification."""

from collections.abc import Iterable, Mapping

from src.etl.models import ProgramCategory, ProgramRecord


SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"

DEFAULT_PROGRAMS: tuple[ProgramRecord, ...] = (
    # System and core programs
    ProgramRecord(
        program_id=SYSTEM_PROGRAM_ID,
        program_name="System Program",
        program_type="System",
        description="Native Solana system program for account management and transfers",
    ),
    ProgramRecord(
        program_id=TOKEN_PROGRAM_ID,
        program_name="Token Program",
        program_type="Token",
        description="SPL Token program for fungible tokens",
    ),
    ProgramRecord(
        program_id="ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL",
        program_name="Associated Token Program",
        program_type="Token",
        description="Creates associated token accounts",
    ),
    ProgramRecord(
        program_id=TOKEN_2022_PROGRAM_ID,
        program_name="Token-2022 Program",
        program_type="Token",
        description="SPL Token-2022 program with extensions",
    ),
    # DEX programs
    ProgramRecord(
        program_id="JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4",
        program_name="Jupiter Aggregator v6",
        program_type="DEX",
        description="Jupiter DEX aggregator for best swap rates",
    ),
    ProgramRecord(
        program_id="whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc",
        program_name="Orca Whirlpool",
        program_type="DEX",
        description="Orca concentrated liquidity pools",
    ),
    ProgramRecord(
        program_id="9W959DqEETiGZocYWCQPaJ6sBmUzgfxXfqGeTEdp3aQP",
        program_name="Orca v2",
        program_type="DEX",
        description="Orca v2 liquidity pools",
    ),
    ProgramRecord(
        program_id="675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8",
        program_name="Raydium AMM v4",
        program_type="DEX",
        description="Raydium automated market maker",
    ),
    ProgramRecord(
        program_id="CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK",
        program_name="Raydium CLMM",
        program_type="DEX",
        description="Raydium concentrated liquidity market maker",
    ),
    # NFT programs
    ProgramRecord(
        program_id="M2mx93ekt1fmXSVkTrUL9xVFHkmME8HTUi5Cyc5aF7K",
        program_name="Magic Eden v2",
        program_type="NFT",
        description="Magic Eden NFT marketplace",
    ),
    ProgramRecord(
        program_id="CJsLwbP1iu5DuUikHEJnLfANgKy6stB2uFgvBBHoyxwz",
        program_name="Solanart",
        program_type="NFT",
        description="Solanart NFT marketplace",
    ),
    ProgramRecord(
        program_id="metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s",
        program_name="Metaplex Token Metadata",
        program_type="NFT",
        description="Metaplex token metadata program",
    ),
    ProgramRecord(
        program_id="p1exdMJcjVao65QdewkaZRUnU6VPSXhus9n2GzWfh98",
        program_name="Metaplex Auction House",
        program_type="NFT",
        description="Metaplex auction house for NFT sales",
    ),
    # Lending programs
    ProgramRecord(
        program_id="So1endDq2YkqhipRh3WViPa8hdiSpxWy6z3Z6tMCpAo",
        program_name="Solend",
        program_type="Lending",
        description="Solend lending protocol",
    ),
    ProgramRecord(
        program_id="MarBmsSgKXdrN1egZf5sqe1TMai9K1rChYNDJgjq7aD",
        program_name="Marginfi",
        program_type="Lending",
        description="Marginfi lending protocol",
    ),
    ProgramRecord(
        program_id="KLend2g3cP87fffoy8q1mQqGKjrxjC8boSyAYavgmjD",
        program_name="Kamino Lend",
        program_type="Lending",
        description="Kamino lending protocol",
    ),
    # Staking programs
    ProgramRecord(
        program_id="CRaTQLhLmP93f5YeEdoVvfDwHp2FyokBME6MpF9pxLx9",
        program_name="Marinade Finance",
        program_type="Staking",
        description="Marinade liquid staking",
    ),
    ProgramRecord(
        program_id="J1toso1uCk3RLmjorhTtrVwY9HJ7X8V9yYac6Y7kGCPn",
        program_name="Jito Stake Pool",
        program_type="Staking",
        description="Jito MEV liquid staking",
    ),
    # Derivatives
    ProgramRecord(
        program_id="dRiftyHA39MWEi3m9aunc5MzRF1JYuBsbn6VPcn33UH",
        program_name="Drift Protocol",
        program_type="Derivatives",
        description="Drift perpetuals and derivatives exchange",
    ),
    # Other programs
    ProgramRecord(
        program_id="MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr",
        program_name="Memo Program",
        program_type="Utility",
        description="On-chain memo/message program",
    ),
    ProgramRecord(
        program_id="ComputeBudget111111111111111111111111111111",
        program_name="Compute Budget Program",
        program_type="System",
        description="Adjust compute unit price and limits",
    ),
)
"""Well-known programs: the offline registry and the program_registry seed"""


class ProgramRegistry:
    """Read-only mapping from program id to (name, category).

    Lookups never raise: unknown ids yield None or False.

    Example:
        ```python
        from src.etl.registry import ProgramRegistry

        registry = ProgramRegistry.from_records(await db.load_program_registry_records())
        registry.is_dex("JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4")  # True
        registry.name("unknown-id")  # None
        ```
    """

    def __init__(self, programs: Mapping[str, tuple[str, str]]) -> None:
        self._programs = dict(programs)

    @classmethod
    def from_records(cls, records: Iterable[ProgramRecord]) -> "ProgramRegistry":
        """Build a registry from program records.

        A record without a category is stored as Unknown. Later records for
        the same id replace earlier ones.
        """
        return cls({
            record.program_id: (
                record.program_name,
                record.program_type or ProgramCategory.UNKNOWN.value,
            )
            for record in records
        })

    @classmethod
    def default(cls) -> "ProgramRegistry":
        """Registry backed by the built-in DEFAULT_PROGRAMS table."""
        return cls.from_records(DEFAULT_PROGRAMS)

    def __len__(self) -> int:
        return len(self._programs)

    def __contains__(self, program_id: object) -> bool:
        return program_id in self._programs

    def name(self, program_id: str) -> str | None:
        entry = self._programs.get(program_id)
        return entry[0] if entry else None

    def category(self, program_id: str) -> str | None:
        entry = self._programs.get(program_id)
        return entry[1] if entry else None

    def has_category(self, program_id: str, tag: str) -> bool:
        return self.category(program_id) == tag

    def is_dex(self, program_id: str) -> bool:
        return self.has_category(program_id, ProgramCategory.DEX)

    def is_nft(self, program_id: str) -> bool:
        return self.has_category(program_id, ProgramCategory.NFT)

    def is_token(self, program_id: str) -> bool:
        return self.has_category(program_id, ProgramCategory.TOKEN)

    def is_system(self, program_id: str) -> bool:
        return self.has_category(program_id, ProgramCategory.SYSTEM)

    def names_for(self, program_ids: Iterable[str]) -> list[str]:
        """Registry names of the given ids, in order, skipping unknown ids."""
        return [
            name for name in (self.name(pid) for pid in program_ids) if name is not None
        ]


__all__ = [
    "DEFAULT_PROGRAMS",
    "SYSTEM_PROGRAM_ID",
    "TOKEN_2022_PROGRAM_ID",
    "TOKEN_PROGRAM_ID",
    "ProgramRegistry",
]
