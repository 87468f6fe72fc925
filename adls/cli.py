"""
ADLS CLI — stealth address commands.

Commands:
  adls keygen    - Derive the meta keypair from a wallet keypair or unlock signature
  adls derive    - Derive a fresh one-time address + memo for a meta public key
  adls scan      - Scan recent memo traffic for transfers to your meta keypair
  adls recover   - Recover the one-time secret key for an ephemeral public key
  adls memo      - Decode an ADLS memo
  adls registry  - Show a registry account
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path


def _configure_logging(verbose: bool) -> None:
    """Verbose shows scan progress; otherwise only warnings and errors."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


def _load_config(args: argparse.Namespace) -> dict:
    from adls.config import load_config

    config = load_config(Path(args.config) if getattr(args, "config", None) else None)
    if getattr(args, "rpc_url", None):
        config["rpc_url"] = args.rpc_url
    return config


def _get_rpc(args: argparse.Namespace):
    from adls.rpc import SolanaRPC

    return SolanaRPC.from_config(_load_config(args))


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _parse_pubkey(text: str) -> bytes:
    """Accept a 32-byte public key as 64 hex chars or a base58 address."""
    from adls.stealth import decode_address

    text = text.strip()
    if len(text) == 64:
        try:
            return bytes.fromhex(text)
        except ValueError:
            pass
    try:
        return decode_address(text)
    except ValueError:
        print(f"Error: Not a 32-byte public key (hex or base58): {text!r}", file=sys.stderr)
        sys.exit(1)


def _read_meta_keypair(path_str: str):
    """Read a meta secret key file (64 hex chars)."""
    from adls.stealth import MetaKeypair

    path = Path(path_str)
    if not path.is_file():
        print(f"Error: Meta key file not found: {path}", file=sys.stderr)
        sys.exit(1)
    try:
        secret = bytes.fromhex(path.read_text().strip())
    except ValueError:
        secret = b""
    if len(secret) != 32:
        print(f"Error: Meta key file must hold 64 hex chars: {path}", file=sys.stderr)
        sys.exit(1)
    return MetaKeypair.from_secret(secret)


def _read_wallet_keypair(path_str: str) -> bytes:
    """Read a wallet keypair file (JSON array of 64 ints). Returns the 32-byte seed."""
    path = Path(path_str)
    if not path.is_file():
        print(f"Error: Keypair file not found: {path}", file=sys.stderr)
        sys.exit(1)
    try:
        data = json.loads(path.read_text())
        raw = bytes(data)
    except (ValueError, TypeError):
        raw = b""
    if len(raw) != 64:
        print(f"Error: Keypair file must be a JSON array of 64 bytes: {path}", file=sys.stderr)
        sys.exit(1)
    return raw[:32]


def cmd_keygen(args: argparse.Namespace) -> None:
    """Derive the meta keypair from a wallet signature over the unlock message."""
    from adls.stealth import MetaKeypair, encode_address, unlock_privacy

    if args.keypair:
        from nacl.signing import SigningKey

        signing_key = SigningKey(_read_wallet_keypair(args.keypair))
        secret = unlock_privacy(lambda msg: signing_key.sign(msg).signature)
        meta = MetaKeypair.from_secret(secret)
    else:
        try:
            signature = bytes.fromhex(args.signature)
        except ValueError:
            print("Error: --signature must be hex", file=sys.stderr)
            sys.exit(1)
        meta = MetaKeypair.from_signature(signature)

    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(out_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(meta.secret_key.hex() + "\n")
        print(f"Meta secret key written to {out_path}")
    else:
        print(f"meta secret key: {meta.secret_key.hex()}")
    print(f"meta public key: {meta.public_key.hex()}")
    print(f"           b58:  {encode_address(meta.public_key)}")


def cmd_derive(args: argparse.Namespace) -> None:
    """Derive a one-time address and memo for a recipient."""
    from adls.curve import CurveError
    from adls.stealth import generate_stealth_address

    meta_pk = _parse_pubkey(args.meta_pk)
    try:
        stealth = generate_stealth_address(meta_pk)
    except CurveError as e:
        print(f"Error: Invalid meta public key: {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps({
            "stealth_address": stealth.address,
            "memo": stealth.memo,
            "ephemeral_pk": stealth.ephemeral.public_key.hex(),
        }, indent=2))
        return

    print(f"stealth address: {stealth.address}")
    print(f"memo:            {stealth.memo}")


def cmd_scan(args: argparse.Namespace) -> None:
    """Scan for stealth transfers addressed to a meta keypair."""
    from adls import LAMPORTS_PER_SOL
    from adls.scanner import ScanError, StealthScanner

    config = _load_config(args)
    meta = _read_meta_keypair(args.meta_sk_file)

    from adls.rpc import SolanaRPC

    rpc = SolanaRPC.from_config(config)
    scanner = StealthScanner(rpc, memo_program_id=config["memo_program_id"])
    limit = args.limit if args.limit is not None else config["scan_limit"]

    try:
        found = scanner.scan(meta.secret_key, meta.public_key, limit=limit)
    except ScanError as e:
        print(f"Error: Scan failed: {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps([
            {
                "signature": tx.signature,
                "block_time": tx.block_time,
                "stealth_address": tx.stealth_address,
                "amount": tx.amount,
                "ephemeral_pk": tx.ephemeral_pk.hex(),
            }
            for tx in found
        ], indent=2))
        return

    if not found:
        print(f"No stealth transfers in the last {limit} memo transactions.")
        return

    print(f"{'Signature':<20} {'Address':<46} {'SOL':>14}")
    print("-" * 82)
    for tx in found:
        print(f"{tx.signature[:16] + '...':<20} {tx.stealth_address:<46} "
              f"{tx.amount / LAMPORTS_PER_SOL:>14.9f}")
    print(f"\n{len(found)} transfer(s)")


def cmd_recover(args: argparse.Namespace) -> None:
    """Recover the one-time secret key for a given ephemeral public key."""
    from adls.curve import CurveError
    from adls.stealth import (
        compute_shared_secret_as_recipient,
        derive_stealth_pubkey,
        encode_address,
        recover_stealth_secret_key,
    )

    meta = _read_meta_keypair(args.meta_sk_file)
    ephemeral_pk = _parse_pubkey(args.ephemeral_pk)

    try:
        shared = compute_shared_secret_as_recipient(meta.secret_key, ephemeral_pk)
    except CurveError as e:
        print(f"Error: Invalid ephemeral public key: {e}", file=sys.stderr)
        sys.exit(1)

    address = encode_address(derive_stealth_pubkey(meta.public_key, shared))
    secret = recover_stealth_secret_key(meta.secret_key, shared)

    print(f"stealth address: {address}")
    print(f"stealth secret:  {secret.hex()}")
    print("  (raw scalar, not a seed: sign with adls.signer.sign_with_scalar, once)")


def cmd_memo(args: argparse.Namespace) -> None:
    """Decode an ADLS memo."""
    from adls.memo import decode_memo
    from adls.stealth import encode_address

    ephemeral_pk = decode_memo(args.memo)
    if ephemeral_pk is None:
        print("Error: Not an ADLS memo", file=sys.stderr)
        sys.exit(1)
    print(f"ephemeral pk: {ephemeral_pk.hex()}")
    print(f"        b58:  {encode_address(ephemeral_pk)}")


def cmd_registry(args: argparse.Namespace) -> None:
    """Show a registry account."""
    from adls.registry import lookup_registry
    from adls.rpc import SolanaRPCError

    rpc = _get_rpc(args)
    try:
        account = lookup_registry(rpc, args.address)
    except (SolanaRPCError, ValueError) as e:
        print(f"Error: Registry lookup failed: {e}", file=sys.stderr)
        sys.exit(1)

    if account is None:
        print(f"Error: No registry account at {args.address}", file=sys.stderr)
        sys.exit(1)

    print(f"Registry {args.address}")
    print(f"  owner:       {account.owner_address}")
    print(f"  meta pubkey: {account.meta_pubkey.hex()}")
    print(f"  bump:        {account.bump}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="adls",
        description="ADLS — single-key stealth addresses for Ed25519 ledgers.",
    )
    from adls import __version__
    parser.add_argument("--version", action="version", version=f"adls {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show scan progress")
    parser.add_argument("--config", help="Path to config.toml (default: ~/.adls/config.toml)")
    parser.add_argument("--rpc-url", help="Ledger RPC URL (or set ADLS_RPC_URL)")
    sub = parser.add_subparsers(dest="command")

    # keygen
    p_kg = sub.add_parser("keygen", help="Derive meta keypair")
    src = p_kg.add_mutually_exclusive_group(required=True)
    src.add_argument("--keypair", help="Wallet keypair JSON file (signs the unlock message)")
    src.add_argument("--signature", help="Hex wallet signature over the unlock message")
    p_kg.add_argument("-o", "--output", help="Write the meta secret key to this file")

    # derive
    p_der = sub.add_parser("derive", help="Derive one-time address + memo")
    p_der.add_argument("meta_pk", help="Recipient meta public key (hex or base58)")
    p_der.add_argument("--json", action="store_true", help="JSON output")

    # scan
    p_scan = sub.add_parser("scan", help="Scan for incoming stealth transfers")
    p_scan.add_argument("--meta-sk-file", required=True, help="Meta secret key file (hex)")
    p_scan.add_argument("--limit", type=_positive_int, help="Signatures to check (default: 100)")
    p_scan.add_argument("--json", action="store_true", help="JSON output")

    # recover
    p_rec = sub.add_parser("recover", help="Recover one-time secret key")
    p_rec.add_argument("--meta-sk-file", required=True, help="Meta secret key file (hex)")
    p_rec.add_argument("--ephemeral-pk", required=True, help="Ephemeral public key (hex or base58)")

    # memo
    p_memo = sub.add_parser("memo", help="Decode an ADLS memo")
    p_memo.add_argument("memo", help="Memo text")

    # registry
    p_reg = sub.add_parser("registry", help="Show a registry account")
    p_reg.add_argument("address", help="Registry account address")

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if not args.command:
        print("ADLS — stealth addresses")
        print()
        print("Usage:")
        print("  adls keygen --keypair ~/.config/solana/id.json -o ~/.adls/meta.key")
        print("  adls derive <meta-pk>")
        print("  adls scan --meta-sk-file ~/.adls/meta.key [--limit N]")
        print("  adls recover --meta-sk-file ~/.adls/meta.key --ephemeral-pk <hex>")
        print("  adls memo 'ADLSv1:...'")
        print("  adls registry <address>")
        print()
        print("Run 'adls <command> --help' for details on any command.")
        sys.exit(0)

    commands = {
        "keygen": cmd_keygen,
        "derive": cmd_derive,
        "scan": cmd_scan,
        "recover": cmd_recover,
        "memo": cmd_memo,
        "registry": cmd_registry,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
