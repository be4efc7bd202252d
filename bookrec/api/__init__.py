"""HTTP API layer (FastAPI routes, schemas, middleware)."""
