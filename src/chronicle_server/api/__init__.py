"""HTTP API for the chronicle game (FastAPI)."""
