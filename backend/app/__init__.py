"""FastAPI application package for the billing backend."""
