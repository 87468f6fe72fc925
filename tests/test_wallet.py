"""
Tests for registry lookup and the transfer/withdraw flows — registry.py + wallet.py.

All tests use a mock ledger — no RPC node required.
"""

from __future__ import annotations

import hashlib
from unittest.mock import MagicMock

import pytest

from adls import FEE_BUFFER_LAMPORTS
from adls.memo import decode_memo
from adls.registry import RegistryAccount, lookup_registry
from adls.rpc import SolanaRPC
from adls.scanner import WithdrawableTransaction
from adls.signer import verify_signature
from adls.stealth import (
    MetaKeypair,
    compute_shared_secret_as_recipient,
    decode_address,
    encode_address,
    generate_stealth_address,
    is_stealth_match,
    recover_stealth_secret_key,
)
from adls.wallet import (
    InsufficientFundsError,
    RecipientNotRegisteredError,
    StealthTransfer,
    WalletError,
    WithdrawalReceipt,
    create_stealth_transfer,
    withdraw,
)

DESTINATION = encode_address(hashlib.sha256(b"destination").digest())
IDENTITY = b"\x01" + b"\x00" * 31


def _registry_bytes(owner, meta_pk, bump=254, discriminator=b"\xaa" * 8):
    return discriminator + owner + meta_pk + bytes([bump])


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def meta():
    return MetaKeypair.from_secret(hashlib.sha256(b"recipient").digest())


@pytest.fixture
def owner():
    return hashlib.sha256(b"owner wallet").digest()


@pytest.fixture
def registry(owner, meta):
    return RegistryAccount.from_bytes(_registry_bytes(owner, meta.public_key))


@pytest.fixture
def mock_ledger():
    """A mock SolanaRPC that accepts and confirms everything."""
    ledger = MagicMock(spec=SolanaRPC)
    ledger.get_balance.return_value = 1_000_000
    ledger.send_raw_transaction.return_value = "withdrawSig"
    ledger.confirm_transaction.return_value = True
    return ledger


@pytest.fixture
def withdrawable(meta):
    """A detected transfer with its recovered one-time key."""
    stealth = generate_stealth_address(meta.public_key)
    shared = compute_shared_secret_as_recipient(meta.secret_key, stealth.ephemeral.public_key)
    return WithdrawableTransaction(
        signature="depositSig",
        block_time=None,
        stealth_address=stealth.address,
        amount=1_000_000,
        ephemeral_pk=stealth.ephemeral.public_key,
        stealth_secret_key=recover_stealth_secret_key(meta.secret_key, shared),
    )


@pytest.fixture
def compile_message():
    return MagicMock(return_value=b"compiled transfer message")


# ---------------------------------------------------------------------------
# TestRegistryAccount
# ---------------------------------------------------------------------------

class TestRegistryAccount:
    """Decoding the 73-byte registry account layout."""

    def test_from_bytes(self, owner, meta):
        account = RegistryAccount.from_bytes(_registry_bytes(owner, meta.public_key, bump=7))
        assert account.owner == owner
        assert account.meta_pubkey == meta.public_key
        assert account.bump == 7
        assert account.owner_address == encode_address(owner)

    def test_trailing_bytes_ignored(self, owner, meta):
        data = _registry_bytes(owner, meta.public_key) + b"\x00" * 16
        assert RegistryAccount.from_bytes(data).meta_pubkey == meta.public_key

    def test_too_short(self, owner, meta):
        with pytest.raises(ValueError, match="too short"):
            RegistryAccount.from_bytes(_registry_bytes(owner, meta.public_key)[:72])

    def test_lookup(self, owner, meta):
        ledger = MagicMock(spec=SolanaRPC)
        ledger.get_account_data.return_value = _registry_bytes(owner, meta.public_key)
        account = lookup_registry(ledger, "Registry111")
        ledger.get_account_data.assert_called_once_with("Registry111")
        assert account.meta_pubkey == meta.public_key

    def test_lookup_missing(self):
        ledger = MagicMock(spec=SolanaRPC)
        ledger.get_account_data.return_value = None
        assert lookup_registry(ledger, "Registry111") is None


# ---------------------------------------------------------------------------
# TestCreateStealthTransfer
# ---------------------------------------------------------------------------

class TestCreateStealthTransfer:

    def test_plans_payment(self, registry, meta):
        transfer = create_stealth_transfer(registry, 2_000_000)
        assert isinstance(transfer, StealthTransfer)
        assert transfer.lamports == 2_000_000
        assert transfer.stealth_address == encode_address(transfer.stealth_pubkey)
        assert decode_memo(transfer.memo) == transfer.ephemeral_pk
        assert is_stealth_match(
            meta.secret_key, meta.public_key, transfer.ephemeral_pk, transfer.stealth_pubkey
        )

    def test_not_registered(self):
        with pytest.raises(RecipientNotRegisteredError):
            create_stealth_transfer(None, 1_000)

    def test_not_registered_is_wallet_error(self):
        with pytest.raises(WalletError):
            create_stealth_transfer(None, 1_000)

    @pytest.mark.parametrize("lamports", [0, -1])
    def test_non_positive_amount(self, registry, lamports):
        with pytest.raises(WalletError, match="positive"):
            create_stealth_transfer(registry, lamports)

    def test_zero_meta_pubkey(self, owner):
        account = RegistryAccount.from_bytes(_registry_bytes(owner, b"\x00" * 32))
        with pytest.raises(WalletError, match="empty or malformed"):
            create_stealth_transfer(account, 1_000)

    def test_meta_pubkey_not_a_point(self, owner):
        account = RegistryAccount.from_bytes(_registry_bytes(owner, IDENTITY))
        with pytest.raises(WalletError, match="not a valid point"):
            create_stealth_transfer(account, 1_000)


# ---------------------------------------------------------------------------
# TestWithdraw
# ---------------------------------------------------------------------------

class TestWithdraw:

    def test_full_balance(self, mock_ledger, withdrawable, compile_message):
        receipt = withdraw(mock_ledger, withdrawable, DESTINATION, compile_message)

        assert isinstance(receipt, WithdrawalReceipt)
        assert receipt.signature == "withdrawSig"
        assert receipt.source == withdrawable.stealth_address
        assert receipt.destination == DESTINATION
        assert receipt.lamports == 1_000_000 - FEE_BUFFER_LAMPORTS
        mock_ledger.get_balance.assert_called_once_with(withdrawable.stealth_address)
        compile_message.assert_called_once_with(
            withdrawable.stealth_address, DESTINATION, 995_000
        )
        mock_ledger.confirm_transaction.assert_called_once_with("withdrawSig")

    def test_broadcast_is_signed_by_stealth_key(self, mock_ledger, withdrawable, compile_message):
        withdraw(mock_ledger, withdrawable, DESTINATION, compile_message)

        raw = mock_ledger.send_raw_transaction.call_args.args[0]
        assert raw[0] == 1
        signature, message = raw[1:65], raw[65:]
        assert message == b"compiled transfer message"
        assert verify_signature(message, signature, decode_address(withdrawable.stealth_address))

    def test_explicit_amount(self, mock_ledger, withdrawable, compile_message):
        receipt = withdraw(mock_ledger, withdrawable, DESTINATION, compile_message, amount=1234)
        assert receipt.lamports == 1234
        mock_ledger.get_balance.assert_not_called()

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount(self, mock_ledger, withdrawable, compile_message, amount):
        with pytest.raises(WalletError, match="positive"):
            withdraw(mock_ledger, withdrawable, DESTINATION, compile_message, amount=amount)
        mock_ledger.send_raw_transaction.assert_not_called()

    @pytest.mark.parametrize("balance", [0, 4_999, 5_000])
    def test_insufficient_funds(self, mock_ledger, withdrawable, compile_message, balance):
        mock_ledger.get_balance.return_value = balance
        with pytest.raises(InsufficientFundsError) as exc_info:
            withdraw(mock_ledger, withdrawable, DESTINATION, compile_message)

        assert exc_info.value.balance == balance
        assert exc_info.value.fee == FEE_BUFFER_LAMPORTS
        assert exc_info.value.address == withdrawable.stealth_address
        compile_message.assert_not_called()
        mock_ledger.send_raw_transaction.assert_not_called()

    def test_one_lamport_over_fee(self, mock_ledger, withdrawable, compile_message):
        mock_ledger.get_balance.return_value = 5_001
        assert withdraw(mock_ledger, withdrawable, DESTINATION, compile_message).lamports == 1

    def test_custom_fee_buffer(self, mock_ledger, withdrawable, compile_message):
        receipt = withdraw(
            mock_ledger, withdrawable, DESTINATION, compile_message, fee_buffer=10_000
        )
        assert receipt.lamports == 990_000

    def test_wrong_key_never_broadcasts(self, mock_ledger, withdrawable, compile_message):
        wrong = WithdrawableTransaction(
            signature=withdrawable.signature,
            block_time=None,
            stealth_address=withdrawable.stealth_address,
            amount=withdrawable.amount,
            ephemeral_pk=withdrawable.ephemeral_pk,
            stealth_secret_key=hashlib.sha256(b"not the key").digest(),
        )
        with pytest.raises(WalletError, match="does not sign"):
            withdraw(mock_ledger, wrong, DESTINATION, compile_message)
        mock_ledger.send_raw_transaction.assert_not_called()

    def test_not_confirmed(self, mock_ledger, withdrawable, compile_message):
        mock_ledger.confirm_transaction.return_value = False
        with pytest.raises(WalletError, match="not confirmed"):
            withdraw(mock_ledger, withdrawable, DESTINATION, compile_message)
        mock_ledger.send_raw_transaction.assert_called_once()
