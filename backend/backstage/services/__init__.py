"""Services Layer — casting engine, tool clients, tool handlers and stores.

Invariants:
    - Tool definitions (define_*) and handlers (handle_*) are split per tool group
    - Tool dispatch uses explicit name -> method maps (no auto-discovery)
"""
