"""Backstage — multi-tool LLM agent service with per-user remote shell sessions.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
