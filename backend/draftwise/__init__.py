"""Top-level application package for the Draftwise content API.

This package contains the FastAPI backend for a content-authoring
service: SQLAlchemy models and Pydantic schemas for content, comments
and billing mirrors, a service layer for Stripe reconciliation and AI
analysis, and the API routers that expose them.

To run the API locally you can execute:

```bash
uvicorn draftwise.api.main:app --reload --app-dir backend
```

The default configuration expects ``DATABASE_URL``; set
``DB_DEV_FALLBACK_SQLITE=true`` to use a local SQLite database stored in
``app.db`` instead. Configuration values can be overridden with
environment variables or a ``.env`` file at the project root.
"""

__version__ = "0.1.0"

__all__: list[str] = ["__version__"]
