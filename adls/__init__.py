"""
ADLS — single-key stealth addresses for an Ed25519 ledger.

Architecture:
    Sender:     ephemeral key + recipient meta key -> one-time address + memo
    Ledger:     transfer to the one-time address, memo "ADLSv1:" + hex(ephemeral pk)
    Recipient:  scan memo traffic, trial-decrypt, recover the one-time secret, spend
"""

__version__ = "0.1.0"

# Memo wire format
MEMO_PREFIX = "ADLSv1:"
MEMO_PAYLOAD_HEX_LEN = 64  # 32-byte ephemeral public key

# Domain separation tag for the one-time key tweak
STEALTH_DOMAIN = "adelos:stealth:v1"

# Message signed by the owner's wallet to derive the meta secret key
UNLOCK_MESSAGE = (
    "Adelos Protocol: Unlock Privacy Identity\n\n"
    "This will derive your unique privacy key for stealth addresses. "
    "This does not cost gas."
)

# Ed25519 sizes
SCALAR_SIZE = 32
POINT_SIZE = 32
SIGNATURE_SIZE = 64

# Ledger constants
PROGRAM_ID = "7T1UxHJ6psKiQheKZXxANu6mhgsmgaX55eNKZZL5u4Rp"
MEMO_PROGRAM_ID = "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr"
DEFAULT_RPC_URL = "https://api.devnet.solana.com"
DEFAULT_COMMITMENT = "confirmed"
LAMPORTS_PER_SOL = 1_000_000_000
FEE_BUFFER_LAMPORTS = 5000  # fee for a single-signature transfer

# Registry account layout: discriminator(8) + owner(32) + meta pubkey(32) + bump(1)
REGISTRY_DISCRIMINATOR_SIZE = 8
REGISTRY_ACCOUNT_SIZE = 73

# Scanner
DEFAULT_SCAN_LIMIT = 100
RPC_TIMEOUT_SECS = 30
