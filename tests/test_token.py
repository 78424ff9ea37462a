import pytest
from solders.keypair import Keypair
from spl.token.constants import TOKEN_PROGRAM_ID
import spl.token.instructions as spl_token
from spl.token.instructions import get_associated_token_address

from spl_token.actions import create_mint, create_associated_token_account, mint_to
from spl_token.state import Mint, TokenAccount
from transaction.errors import SubmissionRejected
from bank.local import TokenError


@pytest.mark.asyncio
async def test_create_mint(bank, client, payer):
    pool_mint = Keypair()
    await create_mint(client, payer, pool_mint, payer.pubkey())
    token_account = await create_associated_token_account(
        client,
        payer,
        payer.pubkey(),
        pool_mint.pubkey(),
    )
    assert token_account == get_associated_token_address(payer.pubkey(), pool_mint.pubkey())

    mint = Mint.decode(await bank.get_account_info(pool_mint.pubkey()))
    assert mint.mint_authority == payer.pubkey()
    assert mint.freeze_authority == payer.pubkey()
    assert mint.decimals == 9
    assert mint.supply == 0

    account = TokenAccount.decode(await bank.get_account_info(token_account))
    assert account.mint == pool_mint.pubkey()
    assert account.owner == payer.pubkey()
    assert account.amount == 0


@pytest.mark.asyncio
async def test_mint_to(bank, client, payer, mint):
    owner = Keypair()
    token_account = await create_associated_token_account(client, payer, owner.pubkey(), mint)
    await mint_to(client, payer, mint, token_account, payer, 1_000)
    assert TokenAccount.decode(await bank.get_account_info(token_account)).amount == 1_000
    assert Mint.decode(await bank.get_account_info(mint)).supply == 1_000


@pytest.mark.asyncio
async def test_mint_to_wrong_authority(bank, client, payer, mint):
    token_account = await create_associated_token_account(client, payer, payer.pubkey(), mint)
    with pytest.raises(SubmissionRejected) as excinfo:
        await mint_to(client, payer, mint, token_account, Keypair(), 1)
    assert excinfo.value.code == TokenError.OWNER_MISMATCH
    assert TokenAccount.decode(await bank.get_account_info(token_account)).amount == 0


@pytest.mark.asyncio
async def test_create_associated_token_account_twice(client, payer, mint):
    await create_associated_token_account(client, payer, payer.pubkey(), mint)
    with pytest.raises(SubmissionRejected):
        await create_associated_token_account(client, payer, payer.pubkey(), mint)


def transfer_checked(source, mint, dest, owner, amount, decimals):
    return spl_token.transfer_checked(
        spl_token.TransferCheckedParams(
            program_id=TOKEN_PROGRAM_ID,
            source=source,
            mint=mint,
            dest=dest,
            owner=owner,
            amount=amount,
            decimals=decimals,
        )
    )


@pytest.mark.asyncio
async def test_transfer_checked(bank, client, payer, mint):
    owner = Keypair()
    source = await create_associated_token_account(client, payer, owner.pubkey(), mint)
    dest = await create_associated_token_account(client, payer, payer.pubkey(), mint)
    await mint_to(client, payer, mint, source, payer, 100)

    await client.send([transfer_checked(source, mint, dest, owner.pubkey(), 40, 9)], payer, owner)
    assert TokenAccount.decode(await bank.get_account_info(source)).amount == 60
    assert TokenAccount.decode(await bank.get_account_info(dest)).amount == 40

    with pytest.raises(SubmissionRejected) as excinfo:
        await client.send([transfer_checked(source, mint, dest, owner.pubkey(), 1, 6)], payer, owner)
    assert excinfo.value.code == TokenError.MINT_MISMATCH
    assert TokenAccount.decode(await bank.get_account_info(source)).amount == 60
