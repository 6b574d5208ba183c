"""Small helpers shared across the raffle package (addresses, units, clocks)."""
