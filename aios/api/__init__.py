"""HTTP API layer: FastAPI app, middleware, schemas and routes."""
