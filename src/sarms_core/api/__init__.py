"""HTTP API for SARMS Core."""
