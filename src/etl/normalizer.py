"""Normalize getBlock records into Block and Transaction models."""

from typing import Any

from pydantic import ValidationError

from src.etl.instructions import (
    UnrecognizedInstruction,
    decode_instruction,
    unique_program_ids,
)
from src.etl.models import Block, Transaction
from src.helpers.http_models import JsonObject
from src.helpers.logging import get_logger


logger = get_logger(__name__)


class DecodeError(ValueError):
    """A block or transaction record could not be decoded."""


class TransactionDecodeError(DecodeError):
    """A single transaction record could not be decoded."""


class BlockDecodeError(DecodeError):
    """A block record could not be decoded."""


def transaction_message(raw: JsonObject) -> JsonObject | None:
    """Locate the message object of a transaction payload.

    Accepts a full wire record (``{"transaction": {...}, "meta": {...}}``)
    or the bare transaction body (``{"signatures": [...], "message": {...}}``).
    """
    body = raw.get("transaction", raw)
    if not isinstance(body, dict):
        return None
    message = body.get("message")
    return message if isinstance(message, dict) else None


def account_keys(raw: JsonObject) -> list[Any]:
    """Account-key entries of a transaction payload, or an empty list."""
    message = transaction_message(raw)
    if message is None:
        return []
    keys = message.get("accountKeys")
    return keys if isinstance(keys, list) else []


def _list_field(message: JsonObject, field: str, signature: str) -> list[Any]:
    value = message.get(field)
    if value is None:
        return []
    if not isinstance(value, list):
        msg = f"Transaction {signature} has malformed {field}"
        raise TransactionDecodeError(msg)
    return value


def normalize_transaction(record: Any, index: int = 0) -> Transaction:
    """Decode one transaction record from a jsonParsed block.

    Args:
        record: Element of the block's ``transactions`` list
        index: Position of the record within its block

    Returns:
        Normalized Transaction with the record kept as its raw payload

    Raises:
        TransactionDecodeError: If metadata, signature or message is missing,
            accountKeys or instructions is not a list, or the transaction is
            binary-encoded
    """
    if not isinstance(record, dict):
        msg = "Transaction record is not an object"
        raise TransactionDecodeError(msg)

    meta = record.get("meta")
    if not isinstance(meta, dict):
        msg = "Transaction has no metadata"
        raise TransactionDecodeError(msg)

    body = record.get("transaction")
    if isinstance(body, list):
        msg = "Binary-encoded transactions are not supported"
        raise TransactionDecodeError(msg)
    if not isinstance(body, dict):
        msg = "Transaction has no body"
        raise TransactionDecodeError(msg)

    signatures = body.get("signatures")
    if not isinstance(signatures, list) or not signatures or not isinstance(signatures[0], str):
        msg = "Transaction has no signature"
        raise TransactionDecodeError(msg)
    signature = signatures[0]

    message = body.get("message")
    if not isinstance(message, dict):
        msg = f"Transaction {signature} has no message"
        raise TransactionDecodeError(msg)

    keys = _list_field(message, "accountKeys", signature)
    raw_instructions = _list_field(message, "instructions", signature)
    instructions = [decode_instruction(raw, keys) for raw in raw_instructions]

    unrecognized = [i for i in instructions if isinstance(i, UnrecognizedInstruction)]
    for instruction in unrecognized:
        logger.debug(
            "Unrecognized instruction in %s: %s", signature, instruction.reason
        )

    try:
        return Transaction(
            signature=signature,
            index=index,
            success=meta.get("err") is None,
            fee=meta.get("fee", 0),
            program_ids=unique_program_ids(instructions),
            num_accounts=len(keys),
            num_instructions=len(raw_instructions),
            unrecognized_instructions=len(unrecognized),
            raw=record,
        )
    except ValidationError as e:
        msg = f"Transaction {signature} is invalid: {e}"
        raise TransactionDecodeError(msg) from e


def normalize_block(slot: int, record: Any) -> Block:
    """Decode a getBlock result.

    Malformed transactions are logged and skipped; they never fail the block.

    Args:
        slot: Slot the block was fetched for
        record: getBlock result

    Returns:
        Block with its decodable transactions

    Raises:
        BlockDecodeError: If the block itself is malformed or has no
            transactions field
    """
    if not isinstance(record, dict):
        msg = f"Block at slot {slot} is not an object"
        raise BlockDecodeError(msg)

    raw_transactions = record.get("transactions")
    if not isinstance(raw_transactions, list):
        msg = f"Block at slot {slot} has no transactions"
        raise BlockDecodeError(msg)

    transactions: list[Transaction] = []
    for index, raw_transaction in enumerate(raw_transactions):
        try:
            transactions.append(normalize_transaction(raw_transaction, index))
        except DecodeError as e:
            logger.warning(
                "Failed to parse transaction %d in slot %d: %s", index, slot, e
            )

    try:
        return Block(
            slot=slot,
            blockhash=record.get("blockhash"),
            parent_slot=record.get("parentSlot") or 0,
            block_time=record.get("blockTime"),
            block_height=record.get("blockHeight"),
            transactions=transactions,
        )
    except ValidationError as e:
        msg = f"Block at slot {slot} is invalid: {e}"
        raise BlockDecodeError(msg) from e


__all__ = [
    "BlockDecodeError",
    "DecodeError",
    "TransactionDecodeError",
    "account_keys",
    "normalize_block",
    "normalize_transaction",
    "transaction_message",
]
