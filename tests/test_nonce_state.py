import pytest
from solders.hash import Hash
from solders.pubkey import Pubkey

from solflow.domain.errors import ValidationError
from solflow.domain.models import NONCE_ACCOUNT_LENGTH, NonceAccountState


def test_account_data_layout():
    authority = Pubkey.new_unique()
    nonce = Hash.new_unique()
    data = NonceAccountState(authority, nonce, lamports_per_signature=5000).to_account_data()

    assert len(data) == NONCE_ACCOUNT_LENGTH
    assert data[0:4] == (1).to_bytes(4, "little")
    assert data[4:8] == (1).to_bytes(4, "little")
    assert data[8:40] == bytes(authority)
    assert data[40:72] == bytes(nonce)
    assert data[72:80] == (5000).to_bytes(8, "little")


def test_decode_reads_authority_and_nonce():
    authority = Pubkey.new_unique()
    nonce = Hash.new_unique()
    state = NonceAccountState.from_account_data(NonceAccountState(authority, nonce).to_account_data())

    assert state.authorized_signer == authority
    assert state.nonce == nonce
    assert state.nonce_value == str(nonce)


def test_decode_rejects_short_data():
    with pytest.raises(ValidationError):
        NonceAccountState.from_account_data(b"\x00" * 40)


def test_decode_rejects_uninitialized_account():
    data = bytearray(NonceAccountState(Pubkey.new_unique(), Hash.new_unique()).to_account_data())
    data[4:8] = (0).to_bytes(4, "little")

    with pytest.raises(ValidationError):
        NonceAccountState.from_account_data(bytes(data))
