"""HTTP surface over the scoring pipeline (FastAPI)."""
