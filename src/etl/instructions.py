"""Decoding of the instruction shapes found in getBlock transaction records.

A jsonParsed block mixes three instruction encodings:

- parsed instructions carrying a ``programId`` (and usually a ``program`` name)
- parsed instructions carrying only a ``program`` name
- compiled instructions carrying a ``programIdIndex`` into the message's
  ``accountKeys`` table, whose entries are bare strings or ``{"pubkey": ...}``
  records

Every raw instruction decodes to exactly one variant of ``Instruction``.
Shapes that match none of the above become ``UnrecognizedInstruction`` so
callers can count and log them.
"""

from collections.abc import Iterable, Sequence
from typing import Any, Literal

from pydantic import BaseModel


class ParsedProgramIdInstruction(BaseModel):
    """Parsed instruction with an explicit program id."""

    kind: Literal["parsed_program_id"] = "parsed_program_id"
    program_id: str
    program: str | None = None
    parsed: Any = None


class ParsedProgramNameInstruction(BaseModel):
    """Parsed instruction that only names its program (e.g. "system")."""

    kind: Literal["parsed_program_name"] = "parsed_program_name"
    program: str
    parsed: Any = None


class CompiledInstruction(BaseModel):
    """Compiled instruction resolved through the account-key table."""

    kind: Literal["compiled"] = "compiled"
    program_id_index: int
    program_id: str


class UnrecognizedInstruction(BaseModel):
    """Instruction whose shape could not be decoded."""

    kind: Literal["unrecognized"] = "unrecognized"
    reason: str
    raw: Any = None


type Instruction = (
    ParsedProgramIdInstruction
    | ParsedProgramNameInstruction
    | CompiledInstruction
    | UnrecognizedInstruction
)


def resolve_account_key(entry: Any) -> str | None:
    """Return the address of an account-key entry.

    Accepts a bare key string or a record with an embedded ``pubkey``.
    """
    if isinstance(entry, str):
        return entry
    if isinstance(entry, dict):
        pubkey = entry.get("pubkey")
        if isinstance(pubkey, str):
            return pubkey
    return None


def decode_instruction(raw: Any, account_keys: Sequence[Any]) -> Instruction:
    """Decode one raw instruction into its tagged variant.

    Args:
        raw: Instruction object from ``message.instructions``
        account_keys: The message's ``accountKeys`` list

    Returns:
        The matching Instruction variant, or UnrecognizedInstruction
    """
    if not isinstance(raw, dict):
        return UnrecognizedInstruction(reason="instruction is not an object", raw=raw)

    program_id = raw.get("programId")
    program = raw.get("program")
    if isinstance(program_id, str):
        return ParsedProgramIdInstruction(
            program_id=program_id,
            program=program if isinstance(program, str) else None,
            parsed=raw.get("parsed"),
        )

    if isinstance(program, str):
        return ParsedProgramNameInstruction(program=program, parsed=raw.get("parsed"))

    index = raw.get("programIdIndex")
    if isinstance(index, int) and not isinstance(index, bool):
        if not 0 <= index < len(account_keys):
            return UnrecognizedInstruction(
                reason=f"programIdIndex {index} out of range", raw=raw
            )
        resolved = resolve_account_key(account_keys[index])
        if resolved is None:
            return UnrecognizedInstruction(
                reason=f"account key {index} has no address", raw=raw
            )
        return CompiledInstruction(program_id_index=index, program_id=resolved)

    return UnrecognizedInstruction(reason="no program reference", raw=raw)


def program_id_of(instruction: Instruction) -> str | None:
    """Identifier an instruction contributes to the program id list.

    A program name stands in for the id when no id is present.
    """
    match instruction:
        case ParsedProgramIdInstruction(program_id=program_id):
            return program_id
        case ParsedProgramNameInstruction(program=program):
            return program
        case CompiledInstruction(program_id=program_id):
            return program_id
        case _:
            return None


def unique_program_ids(instructions: Iterable[Instruction]) -> list[str]:
    """Program ids of the instructions, de-duplicated in first-seen order."""
    seen: dict[str, None] = {}
    for instruction in instructions:
        program_id = program_id_of(instruction)
        if program_id is not None:
            seen.setdefault(program_id, None)
    return list(seen)


__all__ = [
    "CompiledInstruction",
    "Instruction",
    "ParsedProgramIdInstruction",
    "ParsedProgramNameInstruction",
    "UnrecognizedInstruction",
    "decode_instruction",
    "program_id_of",
    "resolve_account_key",
    "unique_program_ids",
]
