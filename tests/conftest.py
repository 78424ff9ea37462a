import pytest
import pytest_asyncio
from typing import Tuple

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from spl.token.instructions import get_associated_token_address

from bank.local import LocalBank
from system.actions import airdrop
from spl_token.actions import create_mint, create_associated_token_account, mint_to
from transaction.submission import SubmissionClient
from vault.actions import initialize
from vault.constants import VAULT_MINT_DECIMALS

AIRDROP_LAMPORTS: int = 30_000_000_000
WALLET_LAMPORTS: int = 1_000_000_000
WALLET_TOKENS: int = 1_000_000_000


@pytest.fixture
def bank() -> LocalBank:
    return LocalBank()


@pytest.fixture
def client(bank) -> SubmissionClient:
    return SubmissionClient(bank)


@pytest_asyncio.fixture
async def payer(bank) -> Keypair:
    payer = Keypair()
    await airdrop(bank, payer.pubkey(), AIRDROP_LAMPORTS)
    return payer


@pytest_asyncio.fixture
async def mint(client, payer) -> Pubkey:
    mint = Keypair()
    await create_mint(client, payer, mint, payer.pubkey(), VAULT_MINT_DECIMALS)
    return mint.pubkey()


async def fund_wallet(client: SubmissionClient, payer: Keypair, mint: Pubkey, tokens: int) -> Tuple[Keypair, Pubkey]:
    wallet = Keypair()
    await airdrop(client.ledger, wallet.pubkey(), WALLET_LAMPORTS)
    token_account = await create_associated_token_account(client, payer, wallet.pubkey(), mint)
    await mint_to(client, payer, mint, token_account, payer, tokens)
    return wallet, token_account


@pytest_asyncio.fixture
async def wallet(client, payer, mint) -> Keypair:
    (wallet, _) = await fund_wallet(client, payer, mint, WALLET_TOKENS)
    return wallet


@pytest.fixture
def wallet_token_account(wallet, mint) -> Pubkey:
    return get_associated_token_address(wallet.pubkey(), mint)


@pytest_asyncio.fixture
async def vault(client, payer, mint) -> Pubkey:
    return await initialize(client, payer, mint)
