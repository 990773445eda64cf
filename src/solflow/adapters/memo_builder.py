"""
Bundle member transactions: a memo per transaction, plus the tip transfer on
whichever transaction the coordinator hands a tip account to.
"""

from __future__ import annotations

from typing import Optional

from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from ..ports import BundleTransactionBuilder

MEMO_PROGRAM_ID = Pubkey.from_string("MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr")
MINIMUM_JITO_TIP = 1_000  # lamports


def memo_instruction(message: str, signer: Pubkey) -> Instruction:
    return Instruction(
        MEMO_PROGRAM_ID,
        message.encode("utf-8"),
        [AccountMeta(signer, is_signer=True, is_writable=False)],
    )


class MemoTipTransactionBuilder(BundleTransactionBuilder):
    def __init__(self, tip_lamports: int = MINIMUM_JITO_TIP, memo_prefix: str = "solflow bundle transaction"):
        self.tip_lamports = tip_lamports
        self.memo_prefix = memo_prefix

    async def build(
        self,
        index: int,
        blockhash: Hash,
        payer: Keypair,
        tip_account: Optional[Pubkey] = None,
    ) -> VersionedTransaction:
        instructions = [memo_instruction(f"{self.memo_prefix} # {index}", payer.pubkey())]
        if tip_account is not None:
            instructions.append(
                transfer(
                    TransferParams(from_pubkey=payer.pubkey(), to_pubkey=tip_account, lamports=self.tip_lamports)
                )
            )

        message = MessageV0.try_compile(payer.pubkey(), instructions, [], blockhash)
        return VersionedTransaction(message, [payer])
