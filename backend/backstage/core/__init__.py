"""Core Layer — domain types, catalog and message transforms. No IO, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - All functions are pure and deterministic

Design Decisions:
    - Functional core separated from the imperative shell in services/
"""
