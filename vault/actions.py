from typing import Optional

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from spl.token.instructions import get_associated_token_address

from spl_token.state import TokenAccount
from transaction.client import LedgerClient
from transaction.submission import SubmissionClient
from vault.constants import VAULT_PROGRAM_ID, \
    find_vault_address, \
    find_stake_info_address, \
    find_stake_account_address
from vault.errors import InsufficientFunds, InvalidAmount
from vault.state import StakeInfo
import vault.instructions as vi


async def get_stake_info(
    client: LedgerClient, wallet: Pubkey, program_id: Pubkey = VAULT_PROGRAM_ID
) -> Optional[StakeInfo]:
    (stake_info_address, _) = find_stake_info_address(program_id, wallet)
    data = await client.get_account_info(stake_info_address)
    return StakeInfo.decode(data) if data else None


async def get_token_balance(client: LedgerClient, token_account: Pubkey) -> Optional[int]:
    data = await client.get_account_info(token_account)
    return TokenAccount.decode(data).amount if data else None


async def initialize(
    client: SubmissionClient, payer: Keypair, mint: Pubkey, program_id: Pubkey = VAULT_PROGRAM_ID
) -> Pubkey:
    (vault_address, _) = find_vault_address(program_id)
    print(f"Initializing vault {vault_address} for mint {mint}")
    txn = vi.initialize(
        vi.InitializeParams(
            program_id=program_id,
            signer=payer.pubkey(),
            token_vault_account=vault_address,
            mint=mint,
        )
    )
    await client.send([txn], payer)
    return vault_address


async def stake(
    client: SubmissionClient, wallet: Keypair, mint: Pubkey, amount: int,
    program_id: Pubkey = VAULT_PROGRAM_ID, precheck: bool = True,
) -> Signature:
    """Stakes `amount` from the wallet's associated token account.

    With `precheck`, a balance the ledger already reports as too low fails
    here without a round trip. The program enforces the same rule either way.
    """
    if amount <= 0:
        raise InvalidAmount(f"Stake amount must be positive, got {amount}")
    user_token_account = get_associated_token_address(wallet.pubkey(), mint)
    if precheck:
        balance = await get_token_balance(client.ledger, user_token_account)
        if balance is not None and balance < amount:
            raise InsufficientFunds(f"{user_token_account} holds {balance}, needs {amount}")
    (stake_info_address, _) = find_stake_info_address(program_id, wallet.pubkey())
    (stake_account_address, _) = find_stake_account_address(program_id, wallet.pubkey())
    print(f"Staking {amount} from {user_token_account}")
    txn = vi.stake(
        vi.StakeParams(
            program_id=program_id,
            signer=wallet.pubkey(),
            stake_info_account=stake_info_address,
            stake_account=stake_account_address,
            user_token_account=user_token_account,
            mint=mint,
            amount=amount,
        )
    )
    return await client.send([txn], wallet)


async def destake(
    client: SubmissionClient, wallet: Keypair, mint: Pubkey, program_id: Pubkey = VAULT_PROGRAM_ID
) -> Signature:
    user_token_account = get_associated_token_address(wallet.pubkey(), mint)
    (vault_address, _) = find_vault_address(program_id)
    (stake_info_address, _) = find_stake_info_address(program_id, wallet.pubkey())
    (stake_account_address, _) = find_stake_account_address(program_id, wallet.pubkey())
    print(f"Destaking everything back to {user_token_account}")
    txn = vi.destake(
        vi.DestakeParams(
            program_id=program_id,
            signer=wallet.pubkey(),
            token_vault_account=vault_address,
            stake_info_account=stake_info_address,
            stake_account=stake_account_address,
            user_token_account=user_token_account,
            mint=mint,
        )
    )
    return await client.send([txn], wallet)
