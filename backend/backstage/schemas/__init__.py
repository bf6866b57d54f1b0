"""Pydantic Schemas — request validation for the cast, session and conversation endpoints.

Invariants:
    - Schemas validate at the system boundary; services receive domain objects
    - Wire keys follow the UI message shape (camelCase aliases)

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence
"""
