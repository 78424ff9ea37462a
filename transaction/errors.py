"""Transaction pipeline errors."""

from typing import List, Optional

from solders.pubkey import Pubkey
from solders.signature import Signature


class TransactionError(Exception):
    """Base class for every failure raised by the transaction pipeline."""


class AddressDerivationFailure(TransactionError):
    """No off-curve program address could be found for the given seeds."""


class EmptyTransaction(TransactionError):
    """A transaction must carry at least one instruction."""


class MissingSignature(TransactionError):
    def __init__(self, address: Pubkey):
        super().__init__(f"Missing signature for required signer {address}")
        self.address = address


class StaleFreshnessToken(TransactionError):
    """The blockhash the transaction was built against is no longer valid."""


class SubmissionRejected(TransactionError):
    """The ledger refused the transaction; retrying the same bytes will not help."""

    def __init__(
        self,
        code: Optional[int],
        message: str = "",
        logs: Optional[List[str]] = None,
        signature: Optional[Signature] = None,
    ):
        super().__init__(f"Transaction rejected (code {code}): {message}")
        self.code = code
        self.message = message
        self.logs = logs or []
        self.signature = signature


class SubmissionTimeout(TransactionError):
    """Outcome unknown, reconcile through a signature status lookup."""

    def __init__(self, possible_signature: Optional[Signature], message: str = ""):
        super().__init__(f"Transaction outcome unknown, possible signature {possible_signature}: {message}")
        self.possible_signature = possible_signature
