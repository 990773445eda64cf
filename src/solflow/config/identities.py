"""
Signing identities for the offline signing workflow.

Every stage receives these explicitly instead of reaching for module-level
keypairs, so stages can run in separate processes that load the same keys
directory.

Keypair files are JSON arrays of the full 64-byte keypair (seed + pubkey),
the format solana-keygen writes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Union

from loguru import logger
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from ..domain.errors import ConfigurationError

_FILES = {
    "nonce_authority": "nonce_authority.json",
    "nonce_account": "nonce_account.json",
    "sender": "sender.json",
    "destination": "destination.json",
}


def load_keypair(path: Union[str, Path]) -> Keypair:
    """Load a keypair from a 64-byte JSON array file."""
    path = Path(path).expanduser()
    if not path.exists():
        raise ConfigurationError(f"Keypair not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            secret = json.load(f)
        return Keypair.from_bytes(bytes(secret))
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"Keypair file {path} is not a 64-byte JSON array: {e}") from e


def save_keypair(keypair: Keypair, path: Union[str, Path]) -> Path:
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    # bytes(kp) is the full 64-byte keypair
    with open(path, "w", encoding="utf-8") as f:
        json.dump(list(bytes(keypair)), f)
    return path


@dataclass(frozen=True)
class SigningIdentities:
    nonce_authority: Keypair
    nonce_account: Keypair
    sender: Keypair
    destination: Keypair

    @property
    def destination_pubkey(self) -> Pubkey:
        return self.destination.pubkey()

    @classmethod
    def generate(cls) -> "SigningIdentities":
        return cls(
            nonce_authority=Keypair(),
            nonce_account=Keypair(),
            sender=Keypair(),
            destination=Keypair(),
        )

    def save(self, directory: Union[str, Path]) -> Path:
        directory = Path(directory).expanduser()
        for attr, filename in _FILES.items():
            save_keypair(getattr(self, attr), directory / filename)
        logger.info(f"IDENTITIES_SAVED | dir={directory} | {self.describe()}")
        return directory

    @classmethod
    def load(cls, directory: Union[str, Path]) -> "SigningIdentities":
        directory = Path(directory).expanduser()
        keys = {attr: load_keypair(directory / filename) for attr, filename in _FILES.items()}
        return cls(**keys)

    def describe(self) -> Dict[str, str]:
        return {attr: str(getattr(self, attr).pubkey()) for attr in _FILES}
