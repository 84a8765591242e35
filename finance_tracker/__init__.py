"""Finance tracker backend."""
