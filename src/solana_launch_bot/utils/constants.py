"""Shared constants for Solana launch analysis."""

LAMPORTS_PER_SOL = 1_000_000_000

PUMP_PROGRAM_ID = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"

# Accounts present in every create transaction that never name the new mint.
SYSTEM_ACCOUNTS: frozenset[str] = frozenset(
    {
        "11111111111111111111111111111111",
        "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
        "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJe8bv",
        "SysvarRent111111111111111111111111111111111",
        "SysvarC1ock11111111111111111111111111111111",
        PUMP_PROGRAM_ID,
    }
)

__all__ = ["LAMPORTS_PER_SOL", "PUMP_PROGRAM_ID", "SYSTEM_ACCOUNTS"]
