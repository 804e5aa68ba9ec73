"""FastAPI service backing the settlement flows."""
