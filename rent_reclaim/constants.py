from __future__ import annotations

from solders.pubkey import Pubkey

LAMPORTS_PER_SOL = 1_000_000_000

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")

# Byte size of an SPL token account (spl-token AccountLayout.span)
TOKEN_ACCOUNT_SIZE = 165

# SPL Token CloseAccount instruction index
CLOSE_ACCOUNT_IX = bytes([9])

CONFIRMED = "confirmed"
FINALIZED = "finalized"

# Largest serialized transaction the cluster accepts (IPv6 MTU minus headers)
PACKET_DATA_SIZE = 1232
