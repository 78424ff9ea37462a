"""Ledger boundary.

`LedgerClient` is the only capability the pipeline needs from a ledger.
`RpcLedgerClient` provides it over JSON RPC; `bank.local.LocalBank`
provides it in process.
"""

import asyncio
from typing import List, Optional, Protocol

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.pubkey import Pubkey
from solders.signature import Signature

from transaction.builder import FreshnessToken
from transaction.signing import SignedTransaction

OPTS = TxOpts(skip_confirmation=False, preflight_commitment=Confirmed)

DEFAULT_ENDPOINT = "http://127.0.0.1:8899"
"""Local test validator."""


class LedgerRejection(Exception):
    """Raised by an in-process ledger when it refuses a transaction."""

    def __init__(self, message: str, code: Optional[int] = None, logs: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.logs = logs or []


class LedgerClient(Protocol):
    async def get_account_info(self, address: Pubkey) -> Optional[bytes]:
        ...

    async def get_balance(self, address: Pubkey) -> int:
        ...

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        ...

    async def get_freshness_token(self) -> FreshnessToken:
        ...

    async def get_block_height(self) -> int:
        ...

    async def get_signature_status(self, signature: Signature) -> Optional[bool]:
        """True if applied, False if applied with an error, None if unknown."""
        ...

    async def request_airdrop(self, address: Pubkey, lamports: int) -> Signature:
        ...

    async def submit(self, signed: SignedTransaction) -> Signature:
        ...


class RpcLedgerClient:
    def __init__(self, client: AsyncClient, opts: TxOpts = OPTS):
        self.client = client
        self.opts = opts

    @classmethod
    async def connect(cls, endpoint: str = DEFAULT_ENDPOINT, total_attempts: int = 20) -> "RpcLedgerClient":
        print(f'Connecting to network at {endpoint}')
        async_client = AsyncClient(endpoint=endpoint, commitment=Confirmed)
        current_attempt = 0
        while not await async_client.is_connected():
            if current_attempt == total_attempts:
                await async_client.close()
                raise ConnectionError(f"Could not connect to {endpoint}")
            else:
                current_attempt += 1
            await asyncio.sleep(1.0)
        return cls(async_client)

    async def close(self):
        await self.client.close()

    async def get_account_info(self, address: Pubkey) -> Optional[bytes]:
        resp = await self.client.get_account_info(address, commitment=Confirmed)
        return resp.value.data if resp.value else None

    async def get_balance(self, address: Pubkey) -> int:
        resp = await self.client.get_balance(address, commitment=Confirmed)
        return resp.value

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        resp = await self.client.get_minimum_balance_for_rent_exemption(size)
        return resp.value

    async def get_freshness_token(self) -> FreshnessToken:
        resp = await self.client.get_latest_blockhash(commitment=Confirmed)
        return FreshnessToken(
            blockhash=resp.value.blockhash,
            last_valid_block_height=resp.value.last_valid_block_height,
        )

    async def get_block_height(self) -> int:
        resp = await self.client.get_block_height(commitment=Confirmed)
        return resp.value

    async def get_signature_status(self, signature: Signature) -> Optional[bool]:
        resp = await self.client.get_signature_statuses([signature], search_transaction_history=True)
        status = resp.value[0]
        if status is None:
            return None
        return status.err is None

    async def request_airdrop(self, address: Pubkey, lamports: int) -> Signature:
        resp = await self.client.request_airdrop(address, lamports)
        await self.client.confirm_transaction(resp.value)
        return resp.value

    async def submit(self, signed: SignedTransaction) -> Signature:
        opts = self.opts._replace(last_valid_block_height=signed.freshness.last_valid_block_height)
        resp = await self.client.send_raw_transaction(bytes(signed.transaction), opts=opts)
        return resp.value
