"""Submits signed transactions and classifies the outcome."""

import asyncio
import re
from typing import Iterable, Optional, Sequence

import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.core import RPCException, TransactionExpiredBlockheightExceededError, UnconfirmedTxError
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.signature import Signature

from transaction.builder import build
from transaction.client import LedgerClient, LedgerRejection
from transaction.errors import StaleFreshnessToken, SubmissionRejected, SubmissionTimeout
from transaction.signing import SignedTransaction, sign

CUSTOM_ERROR_PATTERNS = [
    (re.compile(r"custom program error: 0x([0-9a-fA-F]+)"), 16),
    (re.compile(r"Error Number: (\d+)"), 10),
    (re.compile(r"Custom\(\s*(\d+)"), 10),
]

SIGNATURE_PATTERN = re.compile(r"(?:Transaction|Signature) ([1-9A-HJ-NP-Za-km-z]{64,88})")

STALE_BLOCKHASH_MARKERS = ("blockhash not found", "blockhashnotfound")


def parse_error_code(texts: Iterable[str]) -> Optional[int]:
    """Finds the first custom program error code mentioned in an error message or log."""
    for text in texts:
        for (pattern, base) in CUSTOM_ERROR_PATTERNS:
            match = pattern.search(text)
            if match:
                return int(match.group(1), base)
    return None


def extract_signature(error: BaseException) -> Optional[Signature]:
    """Best effort: a failed send may still name the signature the ledger logged."""
    signature = getattr(error, 'signature', None)
    if isinstance(signature, Signature):
        return signature
    match = SIGNATURE_PATTERN.search(str(error))
    if match:
        try:
            return Signature.from_string(match.group(1))
        except ValueError:
            return None
    return None


def _rejection_details(error: Exception):
    if isinstance(error, LedgerRejection):
        return error.message, error.logs, error.code
    payload = error.args[0] if error.args else None
    message = getattr(payload, 'message', None) or str(error)
    data = getattr(payload, 'data', None)
    logs = [str(log) for log in (getattr(data, 'logs', None) or [])]
    err = getattr(data, 'err', None)
    texts = [message, *logs] + ([str(err)] if err is not None else [])
    return message, logs, parse_error_code(texts)


def classify_rejection(error: Exception) -> Exception:
    (message, logs, code) = _rejection_details(error)
    if any(marker in message.lower() for marker in STALE_BLOCKHASH_MARKERS):
        return StaleFreshnessToken(message)
    return SubmissionRejected(code, message, logs, extract_signature(error))


class SubmissionClient:
    def __init__(self, ledger: LedgerClient):
        self.ledger = ledger

    async def submit(self, signed: SignedTransaction) -> Signature:
        """Hands `signed` to the ledger once.

        A `SubmissionTimeout` does not mean the transaction was dropped: look
        up `possible_signature` before building a replacement.
        """
        block_height = await self.ledger.get_block_height()
        if block_height > signed.freshness.last_valid_block_height:
            raise StaleFreshnessToken(
                f"Blockhash {signed.freshness.blockhash} expired at height "
                f"{signed.freshness.last_valid_block_height}, ledger is at {block_height}"
            )
        try:
            return await self.ledger.submit(signed)
        except (LedgerRejection, RPCException) as error:
            raise classify_rejection(error) from error
        except TransactionExpiredBlockheightExceededError as error:
            raise StaleFreshnessToken(str(error)) from error
        except (UnconfirmedTxError, SolanaRpcException, httpx.TransportError, asyncio.TimeoutError) as error:
            raise SubmissionTimeout(extract_signature(error) or signed.signature, str(error)) from error

    async def confirm(self, signature: Signature) -> Optional[bool]:
        return await self.ledger.get_signature_status(signature)

    async def send(self, instructions: Sequence[Instruction], payer: Keypair, *signers: Keypair) -> Signature:
        """Builds against a fresh blockhash, signs with the payer and `signers`, and submits."""
        freshness = await self.ledger.get_freshness_token()
        built = build(instructions, payer.pubkey(), freshness)
        signed = sign(built, [payer, *signers])
        return await self.submit(signed)
