from typing import List, Optional

from solders.pubkey import Pubkey
from solders.keypair import Keypair
from solders.instruction import Instruction
from solders.signature import Signature
import solders.system_program as sys

from spl.token.constants import TOKEN_PROGRAM_ID
import spl.token.instructions as spl_token

from spl_token.state import MINT_LAYOUT
from transaction.submission import SubmissionClient


def create_mint_instructions(
    payer: Pubkey, mint: Pubkey, mint_authority: Pubkey, decimals: int,
    lamports: int, freeze_authority: Optional[Pubkey] = None,
) -> List[Instruction]:
    """Allocates the mint account, then initializes it. The order matters."""
    return [
        sys.create_account(
            sys.CreateAccountParams(
                from_pubkey=payer,
                to_pubkey=mint,
                lamports=lamports,
                space=MINT_LAYOUT.sizeof(),
                owner=TOKEN_PROGRAM_ID,
            )
        ),
        spl_token.initialize_mint2(
            spl_token.InitializeMint2Params(
                program_id=TOKEN_PROGRAM_ID,
                mint=mint,
                decimals=decimals,
                mint_authority=mint_authority,
                freeze_authority=freeze_authority,
            )
        ),
    ]


async def create_associated_token_account(
    client: SubmissionClient,
    payer: Keypair,
    owner: Pubkey,
    mint: Pubkey
) -> Pubkey:
    create_txn = spl_token.create_associated_token_account(
        payer=payer.pubkey(), owner=owner, mint=mint
    )
    await client.send([create_txn], payer)
    return create_txn.accounts[1].pubkey


async def create_mint(
    client: SubmissionClient, payer: Keypair, mint: Keypair, mint_authority: Pubkey, decimals: int = 9
) -> Signature:
    mint_balance = await client.ledger.get_minimum_balance_for_rent_exemption(MINT_LAYOUT.sizeof())
    print(f"Creating token mint {mint.pubkey()}")
    instructions = create_mint_instructions(
        payer.pubkey(), mint.pubkey(), mint_authority, decimals, mint_balance, freeze_authority=mint_authority)
    return await client.send(instructions, payer, mint)


async def mint_to(
    client: SubmissionClient, payer: Keypair, mint: Pubkey,
    destination: Pubkey, mint_authority: Keypair, amount: int
) -> Signature:
    print(f"Minting {amount} of {mint} to {destination}")
    txn = spl_token.mint_to(
        spl_token.MintToParams(
            program_id=TOKEN_PROGRAM_ID,
            mint=mint,
            dest=destination,
            mint_authority=mint_authority.pubkey(),
            amount=amount,
        )
    )
    return await client.send([txn], payer, mint_authority)
