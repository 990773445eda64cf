from dataclasses import dataclass

from solders.hash import Hash


@dataclass(frozen=True)
class BlockhashInfo:
    """Recent blockhash and the last block height at which it is still accepted."""

    blockhash: Hash
    last_valid_block_height: int
