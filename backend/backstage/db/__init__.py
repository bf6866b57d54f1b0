"""Database Metadata — SQLAlchemy Base for the ORM models.

Design Decisions:
    - asyncpg driver for PostgreSQL, aiosqlite for tests
"""
