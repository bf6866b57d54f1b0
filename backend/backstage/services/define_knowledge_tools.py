"""Knowledge Tool Schemas — Anthropic Tool Use format for the knowledge group."""

TOOLS_KNOWLEDGE = [
    {
        "name": "add_knowledge",
        "description": (
            "Stores a piece of text in the user's knowledge base. Use it when the "
            "user shares facts they want remembered for later conversations."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "content": {"type": "string", "description": "The text to store."},
            },
            "required": ["content"],
        },
    },
    {
        "name": "lookup_knowledge",
        "description": (
            "Searches the user's knowledge base and returns the stored snippets "
            "most relevant to the question."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "question": {"type": "string"},
                "limit": {"type": "integer", "default": 5},
            },
            "required": ["question"],
        },
    },
]
