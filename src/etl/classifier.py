"""Program-based transaction classification."""

from collections.abc import Sequence
from typing import Any

from src.etl.instructions import (
    ParsedProgramIdInstruction,
    ParsedProgramNameInstruction,
    decode_instruction,
)
from src.etl.models import TransactionCategory, TransactionDetails
from src.etl.normalizer import account_keys, transaction_message
from src.etl.parsers.system import parse_system_transfer
from src.etl.parsers.token import parse_token_transfer
from src.etl.registry import ProgramRegistry


SYSTEM_PROGRAM_NAMES = frozenset({"system"})
TOKEN_PROGRAM_NAMES = frozenset({"spl-token", "spl-token-2022"})


def classify(
    program_ids: Sequence[str], registry: ProgramRegistry
) -> TransactionCategory:
    """Classify a transaction from the programs it invoked.

    The first matching rule wins:

    1. any DEX program -> DEX Swap
    2. any NFT program -> NFT Mint (mint and transfer are not told apart)
    3. any Token program -> SPL Token Transfer, even alongside System
    4. a single System program -> SOL Transfer
    5. System with other programs -> Program Interaction
    6. otherwise -> Unknown

    Args:
        program_ids: Program ids touched by the transaction
        registry: Registry supplying program categories

    Returns:
        TransactionCategory
    """
    if any(registry.is_dex(pid) for pid in program_ids):
        return TransactionCategory.DEX_SWAP

    if any(registry.is_nft(pid) for pid in program_ids):
        return TransactionCategory.NFT_MINT

    if any(registry.is_token(pid) for pid in program_ids):
        return TransactionCategory.SPL_TOKEN_TRANSFER

    if len(program_ids) == 1 and registry.is_system(program_ids[0]):
        return TransactionCategory.SOL_TRANSFER

    if any(registry.is_system(pid) for pid in program_ids):
        return TransactionCategory.PROGRAM_INTERACTION

    return TransactionCategory.UNKNOWN


def label(
    category: TransactionCategory,
    program_ids: Sequence[str],
    registry: ProgramRegistry,
) -> str:
    """Display label with the registry names of the invoked programs.

    Example:
        >>> label(TransactionCategory.DEX_SWAP, [jupiter_id, unknown_id], registry)
        'DEX Swap (Jupiter Aggregator v6)'
    """
    names = registry.names_for(program_ids)
    if not names:
        return category.label
    return f"{category.label} ({', '.join(names)})"


def _is_system_instruction(
    instruction: ParsedProgramIdInstruction | ParsedProgramNameInstruction,
    registry: ProgramRegistry,
) -> bool:
    if isinstance(instruction, ParsedProgramIdInstruction) and registry.is_system(
        instruction.program_id
    ):
        return True
    return instruction.program in SYSTEM_PROGRAM_NAMES


def _is_token_instruction(
    instruction: ParsedProgramIdInstruction | ParsedProgramNameInstruction,
    registry: ProgramRegistry,
) -> bool:
    if isinstance(instruction, ParsedProgramIdInstruction) and registry.is_token(
        instruction.program_id
    ):
        return True
    return instruction.program in TOKEN_PROGRAM_NAMES


def analyze(
    program_ids: Sequence[str],
    registry: ProgramRegistry,
    raw_payload: dict[str, Any] | None = None,
) -> TransactionDetails:
    """Classify a transaction and extract its first decodable transfer.

    Top-level instructions are scanned in order. System instructions go
    through the SOL transfer parser and Token instructions through the token
    transfer parser; the scan stops at the first instruction that decodes.

    Args:
        program_ids: Program ids touched by the transaction
        registry: Registry supplying program categories and names
        raw_payload: Wire record of the transaction, if available

    Returns:
        TransactionDetails with amount and counterparties when found
    """
    category = classify(program_ids, registry)
    details = TransactionDetails(
        category=category,
        label=label(category, program_ids, registry),
        program_names=registry.names_for(program_ids),
    )

    message = transaction_message(raw_payload) if raw_payload else None
    if message is None:
        return details

    keys = account_keys(raw_payload)
    raw_instructions = message.get("instructions")
    if not isinstance(raw_instructions, list):
        return details
    for raw_instruction in raw_instructions:
        instruction = decode_instruction(raw_instruction, keys)
        if not isinstance(
            instruction, ParsedProgramIdInstruction | ParsedProgramNameInstruction
        ):
            continue

        if _is_system_instruction(instruction, registry):
            transfer = parse_system_transfer(raw_instruction)
            if transfer is not None:
                details.amount = transfer.lamports
                details.from_account = transfer.source
                details.to_account = transfer.destination
                break
        elif _is_token_instruction(instruction, registry):
            token_transfer = parse_token_transfer(raw_instruction)
            if token_transfer is not None:
                details.amount = token_transfer.amount
                details.token_address = token_transfer.mint
                details.from_account = token_transfer.source
                details.to_account = token_transfer.destination
                break

    return details


__all__ = [
    "SYSTEM_PROGRAM_NAMES",
    "TOKEN_PROGRAM_NAMES",
    "analyze",
    "classify",
    "label",
]
