"""Compiles instructions into a versioned transaction message."""

from typing import List, NamedTuple, Sequence

from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import MessageV0, to_bytes_versioned
from solders.pubkey import Pubkey

from transaction.errors import EmptyTransaction


class FreshnessToken(NamedTuple):
    """Recent blockhash and the last block height at which it is still accepted."""

    blockhash: Hash
    last_valid_block_height: int


class BuiltMessage(NamedTuple):
    """Unsigned, compiled message plus the freshness token it was built against."""

    message: MessageV0
    freshness: FreshnessToken

    @property
    def required_signers(self) -> List[Pubkey]:
        num_signers = self.message.header.num_required_signatures
        return list(self.message.account_keys[:num_signers])

    def serialize(self) -> bytes:
        """Bytes covered by every signature."""
        return to_bytes_versioned(self.message)


def build(instructions: Sequence[Instruction], payer: Pubkey, freshness: FreshnessToken) -> BuiltMessage:
    """Compiles the instructions, in the given order, into one atomic message paid by `payer`.

    Identical inputs always produce byte-identical messages. The freshness
    token is embedded as is; whether it is still valid is only checked at
    submission.
    """
    if not instructions:
        raise EmptyTransaction("Cannot build a transaction without instructions")
    message = MessageV0.try_compile(
        payer=payer,
        instructions=list(instructions),
        address_lookup_table_accounts=[],
        recent_blockhash=freshness.blockhash,
    )
    return BuiltMessage(message=message, freshness=freshness)
