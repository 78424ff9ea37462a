"""Attaches the required signatures to a built message."""

from typing import Dict, Iterable, NamedTuple

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from transaction.builder import BuiltMessage, FreshnessToken
from transaction.errors import MissingSignature


class SignedTransaction(NamedTuple):
    """Fully signed transaction, immutable once produced."""

    transaction: VersionedTransaction
    freshness: FreshnessToken

    @property
    def signature(self) -> Signature:
        """Fee payer signature, which identifies the transaction on the ledger."""
        return self.transaction.signatures[0]


def sign(built: BuiltMessage, signers: Iterable[Keypair]) -> SignedTransaction:
    """Signs `built` with every required signer, or raises before producing anything.

    Keypairs that the message does not require are ignored.
    """
    keypairs: Dict[Pubkey, Keypair] = {keypair.pubkey(): keypair for keypair in signers}
    required = built.required_signers
    for address in required:
        if address not in keypairs:
            raise MissingSignature(address)
    message_bytes = built.serialize()
    signatures = [keypairs[address].sign_message(message_bytes) for address in required]
    return SignedTransaction(
        transaction=VersionedTransaction.populate(built.message, signatures),
        freshness=built.freshness,
    )
