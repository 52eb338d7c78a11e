"""
Blog Platform Backend — Application Package Initializer
=======================================================

What: Marks the `app` directory as a Python package.
Why:  Enables module imports like `from app.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by pytest and uvicorn.

Architecture Note:
    The backend follows a layered architecture with one extra seam for the
    serverless connection lifecycle:

    ┌─────────────────────────────────────┐
    │   Middleware (Request ID, Logging,  │  ← cross-cutting, incl. the DB gate
    │   Database Gate)                    │
    ├─────────────────────────────────────┤
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← validation, slugs, media uploads
    ├─────────────────────────────────────┤
    │        Schemas (API contracts)      │  ← Pydantic
    ├─────────────────────────────────────┤
    │   Database (Supervisor + Prober)    │  ← owns the single MongoDB connection
    └─────────────────────────────────────┘

    The connection supervisor is the only writer of connection state. Routes,
    the gate, and the health prober read it through the AppContext that the
    application factory builds.
"""

__version__ = "1.0.0"
