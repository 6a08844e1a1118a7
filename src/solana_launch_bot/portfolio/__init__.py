"""Paper portfolio ledger and price monitoring."""
