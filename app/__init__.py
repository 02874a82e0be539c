"""Release radar FastAPI application package."""
