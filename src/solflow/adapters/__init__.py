from .file_artifact_store import FileArtifactStore
from .jito_relay import JitoBundleRelay, encode_wire_transaction
from .memo_builder import MEMO_PROGRAM_ID, MINIMUM_JITO_TIP, MemoTipTransactionBuilder
from .solana_rpc import SolanaRpcLedger

__all__ = [
    "FileArtifactStore",
    "JitoBundleRelay",
    "encode_wire_transaction",
    "MEMO_PROGRAM_ID",
    "MINIMUM_JITO_TIP",
    "MemoTipTransactionBuilder",
    "SolanaRpcLedger",
]
