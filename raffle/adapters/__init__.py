"""Transport adapters exposing a Raffle to off-process callers."""
