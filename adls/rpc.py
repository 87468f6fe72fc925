"""
Ledger collaborator — minimal Solana JSON-RPC client.

The scanner and wallet flows only need five things from the ledger:
    get_signatures_for_address  recent signatures touching the memo program
    get_transaction             one transaction, normalized to LedgerTransaction
    get_balance                 lamport balance of an account
    send_raw_transaction        broadcast a signed transaction
    confirm_transaction         wait for a commitment level

Zero HTTP dependencies — uses stdlib urllib.request for JSON-RPC 2.0.
"""

from __future__ import annotations

import base64
import json
import os
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any

from adls import DEFAULT_COMMITMENT, RPC_TIMEOUT_SECS, SIGNATURE_SIZE

# Commitment levels in increasing order of finality
_COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}


class SolanaRPCError(Exception):
    """Error communicating with or returned by the ledger JSON-RPC endpoint."""


@dataclass(frozen=True)
class LedgerTransaction:
    """The parts of a confirmed transaction the scanner reads.

    Attributes:
        signature: Transaction signature (base58).
        block_time: Unix timestamp, or None if the node does not know it.
        account_keys: Base58 account addresses, in message order.
        pre_balances: Lamports per account before execution.
        post_balances: Lamports per account after execution.
        memos: (program_id, text) for every instruction parsed as plain text.
    """

    signature: str
    block_time: int | None
    account_keys: tuple[str, ...]
    pre_balances: tuple[int, ...]
    post_balances: tuple[int, ...]
    memos: tuple[tuple[str, str], ...] = ()

    def memos_for(self, program_id: str) -> list[str]:
        return [text for pid, text in self.memos if pid == program_id]

    def balance_delta(self, index: int) -> int:
        """post - pre for one account; missing entries count as 0."""
        pre = self.pre_balances[index] if index < len(self.pre_balances) else 0
        post = self.post_balances[index] if index < len(self.post_balances) else 0
        return int(post) - int(pre)


def parse_transaction(signature: str, result: dict[str, Any]) -> LedgerTransaction:
    """Normalize a ``getTransaction`` result in ``jsonParsed`` encoding."""
    message = result.get("transaction", {}).get("message", {})
    meta = result.get("meta") or {}

    account_keys = []
    for key in message.get("accountKeys", []):
        # jsonParsed gives {"pubkey": ..., "signer": ...}; json gives plain strings
        account_keys.append(key["pubkey"] if isinstance(key, dict) else str(key))

    memos = []
    for ix in message.get("instructions", []):
        parsed = ix.get("parsed")
        if isinstance(parsed, str):
            memos.append((ix.get("programId", ""), parsed))

    return LedgerTransaction(
        signature=signature,
        block_time=result.get("blockTime"),
        account_keys=tuple(account_keys),
        pre_balances=tuple(meta.get("preBalances", [])),
        post_balances=tuple(meta.get("postBalances", [])),
        memos=tuple(memos),
    )


def _encode_compact_u16(value: int) -> bytes:
    """Ledger "shortvec" length prefix: 7 bits per byte, high bit = continue."""
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"compact-u16 out of range: {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def assemble_transaction(message: bytes, signatures: list[bytes]) -> bytes:
    """Wire form of a signed transaction: shortvec(n) || signatures || message."""
    for sig in signatures:
        if len(sig) != SIGNATURE_SIZE:
            raise ValueError(f"Signature must be {SIGNATURE_SIZE} bytes")
    return _encode_compact_u16(len(signatures)) + b"".join(signatures) + bytes(message)


class SolanaRPC:
    """Minimal ledger JSON-RPC client using stdlib urllib.

    Usage:
        rpc = SolanaRPC.from_env()
        balance = rpc.get_balance(address)
    """

    def __init__(
        self,
        url: str,
        commitment: str = DEFAULT_COMMITMENT,
        timeout: float = RPC_TIMEOUT_SECS,
    ) -> None:
        if not url:
            raise ValueError("RPC URL cannot be empty")
        if commitment not in _COMMITMENT_RANK:
            raise ValueError(f"Unknown commitment level: {commitment!r}")
        self.url = url
        self.commitment = commitment
        self.timeout = timeout
        self._id_counter = 0

    @classmethod
    def from_env(cls) -> SolanaRPC:
        """Create RPC client from the ADLS_RPC_URL environment variable."""
        url = os.environ.get("ADLS_RPC_URL", "")
        if not url:
            raise SolanaRPCError(
                "ADLS_RPC_URL not set. "
                "Set it to your ledger RPC endpoint "
                "(e.g. https://api.devnet.solana.com)."
            )
        return cls(url)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> SolanaRPC:
        return cls(
            config["rpc_url"],
            commitment=config.get("commitment", DEFAULT_COMMITMENT),
            timeout=config.get("rpc_timeout", RPC_TIMEOUT_SECS),
        )

    def call(self, method: str, *params: Any) -> Any:
        """Execute a JSON-RPC call. Returns the 'result' field.

        Raises SolanaRPCError on transport or RPC-level errors.
        """
        self._id_counter += 1
        payload = json.dumps({
            "jsonrpc": "2.0",
            "id": self._id_counter,
            "method": method,
            "params": list(params),
        }).encode()

        req = urllib.request.Request(
            self.url,
            data=payload,
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = json.loads(resp.read().decode())
        except urllib.error.HTTPError as e:
            # Some providers return the JSON-RPC error with a 4xx/5xx status
            try:
                body = json.loads(e.read().decode())
            except Exception:
                raise SolanaRPCError(f"HTTP {e.code}: {e.reason}") from e
        except urllib.error.URLError as e:
            raise SolanaRPCError(f"Connection failed: {e.reason}") from e
        except Exception as e:
            raise SolanaRPCError(f"RPC call {method} failed: {e}") from e

        if not isinstance(body, dict):
            raise SolanaRPCError(f"Malformed RPC response for {method}")
        if body.get("error"):
            err = body["error"]
            msg = err.get("message", str(err)) if isinstance(err, dict) else str(err)
            raise SolanaRPCError(f"RPC error in {method}: {msg}")

        return body.get("result")

    # -- reads --------------------------------------------------------------

    def get_signatures_for_address(self, address: str, limit: int) -> list[str]:
        """Most recent transaction signatures for an address, newest first."""
        entries = self.call(
            "getSignaturesForAddress",
            address,
            {"limit": limit, "commitment": self.commitment},
        )
        return [entry["signature"] for entry in entries or []]

    def get_transaction(self, signature: str) -> LedgerTransaction | None:
        """Fetch and normalize one transaction. None if the node has no record."""
        result = self.call(
            "getTransaction",
            signature,
            {
                "encoding": "jsonParsed",
                "maxSupportedTransactionVersion": 0,
                "commitment": self.commitment,
            },
        )
        if result is None:
            return None
        return parse_transaction(signature, result)

    def get_balance(self, address: str) -> int:
        result = self.call("getBalance", address, {"commitment": self.commitment})
        return int(result["value"])

    def get_account_data(self, address: str) -> bytes | None:
        """Raw account data, or None if the account does not exist."""
        result = self.call(
            "getAccountInfo",
            address,
            {"encoding": "base64", "commitment": self.commitment},
        )
        value = (result or {}).get("value")
        if value is None:
            return None
        data, encoding = value["data"]
        if encoding != "base64":
            raise SolanaRPCError(f"Unexpected account data encoding: {encoding}")
        return base64.b64decode(data)

    # -- writes -------------------------------------------------------------

    def send_raw_transaction(self, raw: bytes) -> str:
        """Broadcast a signed transaction. Returns its signature."""
        return self.call(
            "sendTransaction",
            base64.b64encode(raw).decode("ascii"),
            {"encoding": "base64", "preflightCommitment": self.commitment},
        )

    def confirm_transaction(
        self,
        signature: str,
        attempts: int = 30,
        interval: float = 1.0,
    ) -> bool:
        """Poll until the transaction reaches this client's commitment level.

        Returns False if it failed on-chain or never got there within
        ``attempts`` polls.
        """
        wanted = _COMMITMENT_RANK[self.commitment]
        for attempt in range(attempts):
            result = self.call(
                "getSignatureStatuses", [signature], {"searchTransactionHistory": False}
            )
            status = ((result or {}).get("value") or [None])[0]
            if status is not None:
                if status.get("err") is not None:
                    return False
                level = status.get("confirmationStatus") or "processed"
                if _COMMITMENT_RANK.get(level, 0) >= wanted:
                    return True
            if attempt + 1 < attempts:
                time.sleep(interval)
        return False
