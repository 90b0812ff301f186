"""Pydantic models for extracted Solana blocks and transactions."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class TransactionCategory(StrEnum):
    """Closed set of transaction categories derived by the classifier.

    Values are the display labels stored in transactions.transaction_type.
    """

    SOL_TRANSFER = "SOL Transfer"
    SPL_TOKEN_TRANSFER = "SPL Token Transfer"
    NFT_MINT = "NFT Mint"
    NFT_TRANSFER = "NFT Transfer"
    DEX_SWAP = "DEX Swap"
    PROGRAM_INTERACTION = "Program Interaction"
    UNKNOWN = "Unknown"

    @property
    def label(self) -> str:
        return self.value


class ProgramCategory(StrEnum):
    """Category tags used in the program registry."""

    SYSTEM = "System"
    TOKEN = "Token"
    DEX = "DEX"
    NFT = "NFT"
    LENDING = "Lending"
    STAKING = "Staking"
    UTILITY = "Utility"
    DERIVATIVES = "Derivatives"
    UNKNOWN = "Unknown"


class ProgramRecord(BaseModel):
    """One row of the program registry."""

    program_id: str
    program_name: str
    program_type: str | None = None
    description: str | None = None
    website: str | None = None


class Transaction(BaseModel):
    """Transaction normalized from any supported wire encoding."""

    signature: str
    index: int = Field(default=0, ge=0, description="Position in the block")
    success: bool
    fee: int = Field(ge=0, description="Fee in lamports")
    program_ids: list[str] = Field(
        default_factory=list,
        description="De-duplicated program ids in first-seen order",
    )
    num_accounts: int = 0
    num_instructions: int = 0
    unrecognized_instructions: int = Field(
        default=0, description="Instructions whose shape could not be decoded"
    )
    raw: dict[str, Any] = Field(
        default_factory=dict, description="Full wire record (transaction + meta)"
    )


class Block(BaseModel):
    """Block with its normalized transactions."""

    slot: int = Field(ge=0)
    blockhash: str
    parent_slot: int = Field(default=0, ge=0, description="0 denotes genesis")
    block_time: int | None = None
    block_height: int | None = None
    transactions: list[Transaction] = Field(default_factory=list)


class TransactionDetails(BaseModel):
    """Classification plus the first decodable transfer of a transaction."""

    category: TransactionCategory
    label: str
    amount: int | None = None
    token_address: str | None = None
    from_account: str | None = None
    to_account: str | None = None
    program_names: list[str] = Field(default_factory=list)


class ExtractionStats(BaseModel):
    """Aggregates collected while extracting a slot range."""

    blocks_fetched: int = 0
    blocks_failed: int = 0
    total_transactions: int = 0
    successful_transactions: int = 0
    failed_transactions: int = 0
    total_fees: int = 0

    sol_transfers: int = 0
    spl_token_transfers: int = 0
    dex_swaps: int = 0
    nft_operations: int = 0
    program_interactions: int = 0
    unknown_transactions: int = 0

    def count_category(self, category: TransactionCategory) -> None:
        """Add one transaction of the given category to the tally."""
        match category:
            case TransactionCategory.SOL_TRANSFER:
                self.sol_transfers += 1
            case TransactionCategory.SPL_TOKEN_TRANSFER:
                self.spl_token_transfers += 1
            case TransactionCategory.DEX_SWAP:
                self.dex_swaps += 1
            case TransactionCategory.NFT_MINT | TransactionCategory.NFT_TRANSFER:
                self.nft_operations += 1
            case TransactionCategory.PROGRAM_INTERACTION:
                self.program_interactions += 1
            case TransactionCategory.UNKNOWN:
                self.unknown_transactions += 1

    def category_tally(self) -> dict[str, int]:
        """Per-category counts keyed by field name."""
        return {
            "sol_transfers": self.sol_transfers,
            "spl_token_transfers": self.spl_token_transfers,
            "dex_swaps": self.dex_swaps,
            "nft_operations": self.nft_operations,
            "program_interactions": self.program_interactions,
            "unknown_transactions": self.unknown_transactions,
        }


__all__ = [
    "Block",
    "ExtractionStats",
    "ProgramCategory",
    "ProgramRecord",
    "Transaction",
    "TransactionCategory",
    "TransactionDetails",
]
