"""Solana transaction lifecycle coordination: confirmation, offline nonce signing, bundles."""

__version__ = "0.1.0"
