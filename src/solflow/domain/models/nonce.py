"""
Durable nonce account layout.

System-program nonce accounts are 80 bytes:

    u32 version | u32 state | 32B authority | 32B nonce (blockhash) | u64 lamports_per_signature

state == 1 means initialized. The nonce value changes every time a
transaction carrying an advance-nonce instruction lands, so a decoded state is
only good until the next consuming transaction.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from solders.hash import Hash
from solders.pubkey import Pubkey

from ..errors import ValidationError

NONCE_ACCOUNT_LENGTH = 80
_LAYOUT = struct.Struct("<II32s32sQ")

NONCE_STATE_UNINITIALIZED = 0
NONCE_STATE_INITIALIZED = 1


@dataclass(frozen=True)
class NonceAccountState:
    authorized_signer: Pubkey
    nonce: Hash
    lamports_per_signature: int = 5000
    version: int = 1
    state: int = NONCE_STATE_INITIALIZED

    @property
    def nonce_value(self) -> str:
        return str(self.nonce)

    @classmethod
    def from_account_data(cls, data: bytes) -> "NonceAccountState":
        if len(data) < NONCE_ACCOUNT_LENGTH:
            raise ValidationError(
                f"nonce account data is {len(data)} bytes, expected {NONCE_ACCOUNT_LENGTH}"
            )
        version, state, authority, nonce, fee = _LAYOUT.unpack_from(bytes(data))
        if state != NONCE_STATE_INITIALIZED:
            raise ValidationError(f"nonce account not initialized (state={state})")
        return cls(
            authorized_signer=Pubkey.from_bytes(authority),
            nonce=Hash(nonce),
            lamports_per_signature=fee,
            version=version,
            state=state,
        )

    def to_account_data(self) -> bytes:
        return _LAYOUT.pack(
            self.version,
            self.state,
            bytes(self.authorized_signer),
            bytes(self.nonce),
            self.lamports_per_signature,
        )
