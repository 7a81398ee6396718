"""HTTP API for prflow (FastAPI)."""
