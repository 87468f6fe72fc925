"""
StealthScanner — finds incoming stealth transfers by trial decryption.

Scan loop (one pass, newest first):
    1. Fetch up to ``limit`` signatures touching the memo program
    2. Fetch each transaction; skip if missing or the fetch fails
    3. Decode ADLS memos; skip traffic that is not ours
    4. Recompute the one-time address from the memo's ephemeral key and look
       for it among the transaction's account keys
    5. On a match, record post - pre balance (negative deltas clamp to 0)

Only the signature-list fetch is fatal. There is no cursor: every scan
re-reads the most recent ``limit`` signatures.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from adls import DEFAULT_SCAN_LIMIT, LAMPORTS_PER_SOL, MEMO_PROGRAM_ID
from adls.curve import CurveError
from adls.memo import decode_memo, is_stealth_memo
from adls.stealth import (
    compute_shared_secret_as_recipient,
    decode_address,
    derive_public_key,
    derive_stealth_pubkey,
    encode_address,
    recover_stealth_secret_key,
)

log = logging.getLogger(__name__)


class ScanError(Exception):
    """A scan or recovery step that cannot continue."""


@dataclass(frozen=True)
class StealthTransaction:
    """A transfer detected as addressed to the scanning identity.

    Attributes:
        signature: Ledger transaction signature.
        block_time: Unix timestamp, or None.
        stealth_address: One-time address that received the funds (base58).
        amount: Lamports received (never negative).
        ephemeral_pk: Sender's ephemeral key from the memo; needed to recover.
    """

    signature: str
    block_time: int | None
    stealth_address: str
    amount: int
    ephemeral_pk: bytes


@dataclass(frozen=True)
class WithdrawableTransaction(StealthTransaction):
    """A detected transfer plus the one-time secret that can spend it.

    Use the secret for a single signature, then drop this object.
    """

    stealth_secret_key: bytes = field(default=b"", repr=False)


class StealthScanner:
    """Scans memo-program traffic for transfers to a meta keypair.

    Usage:
        scanner = StealthScanner(rpc)
        found = scanner.scan(meta_sk, meta_pk, limit=50)
        spendable = scanner.prepare_withdraw(found[0], meta_sk, meta_pk)
    """

    def __init__(
        self,
        ledger: Any,
        memo_program_id: str = MEMO_PROGRAM_ID,
        logger: logging.Logger | None = None,
    ) -> None:
        self._ledger = ledger
        self._memo_program_id = memo_program_id
        self._log = logger or log

    def scan(
        self,
        meta_sk: bytes,
        meta_pk: bytes,
        limit: int = DEFAULT_SCAN_LIMIT,
    ) -> list[StealthTransaction]:
        """Scan the most recent ``limit`` memo transactions for stealth transfers."""
        self._log.info("Starting stealth scan (limit: %d)", limit)
        started = time.monotonic()

        try:
            signatures = self._ledger.get_signatures_for_address(
                self._memo_program_id, limit
            )
        except Exception as e:
            raise ScanError(
                f"Failed to fetch signatures for {self._memo_program_id}: {e}"
            ) from e
        self._log.info("Found %d memo transactions to check", len(signatures))

        results: list[StealthTransaction] = []
        protocol_memos = 0

        for position, signature in enumerate(signatures, start=1):
            self._log.debug(
                "Processing tx %d/%d: %s...", position, len(signatures), signature[:10]
            )

            try:
                tx = self._ledger.get_transaction(signature)
            except Exception as e:
                self._log.warning("Skipping %s: transaction fetch failed: %s", signature, e)
                continue
            if tx is None:
                self._log.warning("Skipping %s: transaction not found", signature)
                continue

            memos = tx.memos_for(self._memo_program_id)
            if not any(is_stealth_memo(m) for m in memos):
                self._log.debug("  not an ADLS memo")
                continue
            protocol_memos += 1

            detected = self.attempt_decryption(tx, meta_sk, meta_pk)
            if detected is None:
                self._log.debug("  not for this recipient")
                continue

            self._log.info(
                "Stealth transfer detected in %s: %.9f SOL",
                signature[:10], detected.amount / LAMPORTS_PER_SOL,
            )
            results.append(detected)

        self._log.info(
            "Scan complete in %.2fs: %d total, %d ADLS memos, %d matches",
            time.monotonic() - started, len(signatures), protocol_memos, len(results),
        )
        return results

    def attempt_decryption(
        self,
        tx: Any,
        meta_sk: bytes,
        meta_pk: bytes,
    ) -> StealthTransaction | None:
        """Trial decryption: does this transaction pay one of our one-time addresses?"""
        for memo in tx.memos_for(self._memo_program_id):
            ephemeral_pk = decode_memo(memo)
            if ephemeral_pk is None:
                continue

            try:
                shared = compute_shared_secret_as_recipient(meta_sk, ephemeral_pk)
                expected = encode_address(derive_stealth_pubkey(meta_pk, shared))
            except CurveError as e:
                self._log.debug("  unusable ephemeral key in %s: %s", tx.signature[:10], e)
                continue

            try:
                index = tx.account_keys.index(expected)
            except ValueError:
                continue

            return StealthTransaction(
                signature=tx.signature,
                block_time=tx.block_time,
                stealth_address=expected,
                amount=max(0, tx.balance_delta(index)),
                ephemeral_pk=ephemeral_pk,
            )
        return None

    def prepare_withdraw(
        self,
        stealth_tx: StealthTransaction,
        meta_sk: bytes,
        meta_pk: bytes,
    ) -> WithdrawableTransaction:
        """Recover the one-time secret key for a detected transfer.

        Raises ScanError if the recovered key does not control
        ``stealth_tx.stealth_address`` (wrong meta keypair).
        """
        try:
            shared = compute_shared_secret_as_recipient(meta_sk, stealth_tx.ephemeral_pk)
            stealth_sk = recover_stealth_secret_key(meta_sk, shared)
            expected = derive_stealth_pubkey(meta_pk, shared)
            recovered_pk = derive_public_key(stealth_sk)
        except CurveError as e:
            raise ScanError(f"Recovery failed for {stealth_tx.signature}: {e}") from e

        if recovered_pk != expected or recovered_pk != decode_address(stealth_tx.stealth_address):
            raise ScanError(
                f"Recovered key does not control {stealth_tx.stealth_address} "
                f"(tx {stealth_tx.signature}); wrong meta keypair?"
            )

        return WithdrawableTransaction(
            signature=stealth_tx.signature,
            block_time=stealth_tx.block_time,
            stealth_address=stealth_tx.stealth_address,
            amount=stealth_tx.amount,
            ephemeral_pk=stealth_tx.ephemeral_pk,
            stealth_secret_key=stealth_sk,
        )


def scan_for_stealth_transfers(
    ledger: Any,
    meta_sk: bytes,
    meta_pk: bytes,
    limit: int = DEFAULT_SCAN_LIMIT,
    logger: logging.Logger | None = None,
) -> list[StealthTransaction]:
    """One-shot scan with a throwaway StealthScanner."""
    return StealthScanner(ledger, logger=logger).scan(meta_sk, meta_pk, limit)
