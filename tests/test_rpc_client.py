from types import SimpleNamespace

import pytest
from solana.rpc.commitment import Confirmed
from solders.hash import Hash
from solders.keypair import Keypair
from solders.signature import Signature
import solders.system_program as sys

from transaction.builder import FreshnessToken, build
from transaction.client import OPTS, RpcLedgerClient
from transaction.signing import sign


def response(value):
    return SimpleNamespace(value=value)


class FakeAsyncClient:
    """Answers the RPC calls `RpcLedgerClient` makes, and records what it sent."""

    def __init__(self):
        self.sent = []
        self.closed = False
        self.signature = Signature.new_unique()
        self.blockhash = Hash.new_unique()
        self.statuses = {}
        self.accounts = {}

    async def get_account_info(self, address, commitment=None):
        assert commitment == Confirmed
        data = self.accounts.get(address)
        return response(SimpleNamespace(data=data) if data is not None else None)

    async def get_balance(self, address, commitment=None):
        return response(42)

    async def get_minimum_balance_for_rent_exemption(self, size):
        return response(size * 10)

    async def get_latest_blockhash(self, commitment=None):
        return response(SimpleNamespace(blockhash=self.blockhash, last_valid_block_height=321))

    async def get_block_height(self, commitment=None):
        return response(170)

    async def get_signature_statuses(self, signatures, search_transaction_history=False):
        return response([self.statuses.get(signature) for signature in signatures])

    async def request_airdrop(self, address, lamports):
        return response(self.signature)

    async def confirm_transaction(self, signature):
        self.statuses[signature] = SimpleNamespace(err=None)

    async def send_raw_transaction(self, txn, opts=None):
        self.sent.append((txn, opts))
        return response(self.signature)

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_queries():
    fake = FakeAsyncClient()
    client = RpcLedgerClient(fake)
    account = Keypair().pubkey()
    fake.accounts[account] = b"\x01\x02"
    assert await client.get_account_info(account) == b"\x01\x02"
    assert await client.get_account_info(Keypair().pubkey()) is None
    assert await client.get_balance(Keypair().pubkey()) == 42
    assert await client.get_minimum_balance_for_rent_exemption(10) == 100
    assert await client.get_freshness_token() == FreshnessToken(fake.blockhash, 321)
    assert await client.get_block_height() == 170
    await client.close()
    assert fake.closed


@pytest.mark.asyncio
async def test_signature_status():
    fake = FakeAsyncClient()
    client = RpcLedgerClient(fake)
    assert await client.get_signature_status(fake.signature) is None
    signature = await client.request_airdrop(Keypair().pubkey(), 1_000)
    assert await client.get_signature_status(signature) is True
    fake.statuses[signature] = SimpleNamespace(err="InstructionError")
    assert await client.get_signature_status(signature) is False


@pytest.mark.asyncio
async def test_submit_sends_raw_bytes_with_block_height():
    fake = FakeAsyncClient()
    client = RpcLedgerClient(fake)
    payer = Keypair()
    instruction = sys.transfer(
        sys.TransferParams(from_pubkey=payer.pubkey(), to_pubkey=Keypair().pubkey(), lamports=1))
    signed = sign(build([instruction], payer.pubkey(), await client.get_freshness_token()), [payer])

    assert await client.submit(signed) == fake.signature
    (txn, opts) = fake.sent[0]
    assert txn == bytes(signed.transaction)
    assert opts.last_valid_block_height == 321
    assert opts.preflight_commitment == OPTS.preflight_commitment
