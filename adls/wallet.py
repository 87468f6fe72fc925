"""
Wallet flows — paying a stealth address and spending from one.

Transfer:  registry lookup -> fresh one-time address + memo -> caller builds
           a transfer to ``stealth_address`` with ``memo`` attached.
Withdraw:  balance check -> caller compiles the transfer message ->
           sign with the recovered scalar -> verify -> broadcast -> confirm.

Host-ledger message compilation is the caller's job (``compile_message``);
this module never moves funds before every check has passed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from adls import FEE_BUFFER_LAMPORTS
from adls.curve import CurveError
from adls.rpc import assemble_transaction
from adls.signer import sign_with_scalar, verify_signature
from adls.stealth import decode_address, generate_stealth_address, is_valid_meta_pubkey

log = logging.getLogger(__name__)


class WalletError(Exception):
    """A transfer or withdrawal that cannot proceed."""


class RecipientNotRegisteredError(WalletError):
    """The recipient has no registry account, so no meta key to pay."""


class InsufficientFundsError(WalletError):
    """The stealth address cannot cover the withdrawal fee."""

    def __init__(self, address: str, balance: int, fee: int) -> None:
        super().__init__(
            f"Insufficient funds at {address} (balance: {balance}, fee: {fee})"
        )
        self.address = address
        self.balance = balance
        self.fee = fee


@dataclass(frozen=True)
class StealthTransfer:
    """What a sender needs to build the payment transaction."""

    stealth_address: str
    stealth_pubkey: bytes
    memo: str
    lamports: int
    ephemeral_pk: bytes


@dataclass(frozen=True)
class WithdrawalReceipt:
    signature: str
    source: str
    destination: str
    lamports: int


def create_stealth_transfer(registry: Any, lamports: int) -> StealthTransfer:
    """Plan a private payment to a registered recipient.

    Args:
        registry: The recipient's RegistryAccount, or None if lookup found nothing.
        lamports: Amount to send.

    Raises:
        RecipientNotRegisteredError: registry is None.
        WalletError: invalid meta public key or non-positive amount.
    """
    if registry is None:
        raise RecipientNotRegisteredError("Recipient is not registered")
    if lamports <= 0:
        raise WalletError(f"Transfer amount must be positive, got {lamports}")
    if not is_valid_meta_pubkey(registry.meta_pubkey):
        raise WalletError("Recipient meta public key is empty or malformed")

    try:
        stealth = generate_stealth_address(registry.meta_pubkey)
    except CurveError as e:
        raise WalletError(f"Recipient meta public key is not a valid point: {e}") from e

    return StealthTransfer(
        stealth_address=stealth.address,
        stealth_pubkey=stealth.stealth_pubkey,
        memo=stealth.memo,
        lamports=lamports,
        ephemeral_pk=stealth.ephemeral.public_key,
    )


def withdraw(
    ledger: Any,
    withdrawable: Any,
    destination: str,
    compile_message: Callable[[str, str, int], bytes],
    amount: int | None = None,
    fee_buffer: int = FEE_BUFFER_LAMPORTS,
    logger: logging.Logger | None = None,
) -> WithdrawalReceipt:
    """Move funds out of a stealth address, signing with its recovered scalar.

    Without ``amount`` the whole balance minus ``fee_buffer`` is withdrawn,
    which empties the one-time account.

    Args:
        ledger: Collaborator with get_balance, send_raw_transaction, confirm_transaction.
        withdrawable: WithdrawableTransaction from StealthScanner.prepare_withdraw().
        destination: Base58 address to receive the funds.
        compile_message: (payer, destination, lamports) -> message bytes for the
            host ledger, with the stealth address as fee payer.
        amount: Lamports to send, or None for the full balance.
        fee_buffer: Lamports kept back for the fee in full-balance mode.

    Raises:
        InsufficientFundsError: balance does not exceed fee_buffer.
        WalletError: bad amount, signature mismatch, or failed confirmation.
    """
    _log = logger or log
    source = withdrawable.stealth_address

    if amount is None:
        balance = ledger.get_balance(source)
        if balance <= fee_buffer:
            raise InsufficientFundsError(source, balance, fee_buffer)
        amount = balance - fee_buffer
    elif amount <= 0:
        raise WalletError(f"Withdrawal amount must be positive, got {amount}")

    message = compile_message(source, destination, amount)
    signature = sign_with_scalar(message, withdrawable.stealth_secret_key)
    if not verify_signature(message, signature, decode_address(source)):
        raise WalletError(f"Recovered key does not sign for {source}")

    raw = assemble_transaction(message, [signature])
    tx_signature = ledger.send_raw_transaction(raw)
    _log.info("Withdrawal broadcast from %s: %s", source, tx_signature)

    if not ledger.confirm_transaction(tx_signature):
        raise WalletError(f"Withdrawal {tx_signature} was not confirmed")

    return WithdrawalReceipt(
        signature=tx_signature,
        source=source,
        destination=destination,
        lamports=amount,
    )
