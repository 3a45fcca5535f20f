"""
DevHabit Backend — Application Package Initializer
====================================================

What: Marks the `devhabit` directory as a Python package.
Why:  Enables module imports like `from devhabit.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend follows a layered architecture:

    ┌─────────────────────────────────────┐
    │     Routes + Middleware (HTTP)      │  ← content negotiation, ETags, idempotency
    ├─────────────────────────────────────┤
    │   Query services (sort/shape/link)  │  ← list pipeline building blocks
    ├─────────────────────────────────────┤
    │     Domain services (habits, ...)   │  ← per-user CRUD, business rules
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic DTOs
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
