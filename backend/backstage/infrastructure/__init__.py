"""Infrastructure Layer — clients for the model API, SSH, MCP and the database.

Invariants:
    - Transport exceptions are mapped at this boundary; callers never see
      anthropic, asyncssh or SQLAlchemy exception types
"""
