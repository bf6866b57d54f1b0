"""Terminal Tool Schemas — Anthropic Tool Use format for the remote_shell group.

Invariants:
    - No tool takes a user id: the remote shell capability is already bound to one user
    - File paths are absolute
    - initialize requires host and username plus password OR privateKeyPath
      (enforced by the handler, not the schema)
"""

TOOLS_TERMINAL = [
    {
        "name": "terminal_initialize_ssh",
        "description": (
            "Initializes or re-initializes the SSH connection for the current user. "
            "Requires host, username, and auth (password or privateKeyPath). "
            "Any existing connection is closed first."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "host": {"type": "string", "description": "Hostname or IP address of the SSH server."},
                "port": {"type": "integer", "description": "SSH port (default 22)."},
                "username": {"type": "string"},
                "password": {"type": "string", "description": "Use this OR privateKeyPath."},
                "privateKeyPath": {
                    "type": "string",
                    "description": "Server-side path to the private key file. Use this OR password.",
                },
            },
            "required": ["host", "username"],
        },
    },
    {
        "name": "terminal_execute_command",
        "description": (
            "Executes a shell command on the remote server in the session's current "
            "working directory. Returns stdout, stderr and the exit code. "
            "`cd` commands change the working directory for later commands."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "command": {"type": "string", "description": "The command to execute."},
            },
            "required": ["command"],
        },
    },
    {
        "name": "terminal_read_file",
        "description": "Reads the content of a file on the remote server.",
        "input_schema": {
            "type": "object",
            "properties": {
                "filePath": {"type": "string", "description": "Absolute path on the remote server."},
            },
            "required": ["filePath"],
        },
    },
    {
        "name": "terminal_edit_file",
        "description": (
            "Writes content to a file on the remote server, creating it or "
            "overwriting it completely."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "filePath": {"type": "string", "description": "Absolute path on the remote server."},
                "content": {"type": "string", "description": "The full new file content."},
            },
            "required": ["filePath", "content"],
        },
    },
    {
        "name": "terminal_disconnect_ssh",
        "description": "Disconnects the current user's SSH session.",
        "input_schema": {"type": "object", "properties": {}},
    },
    {
        "name": "terminal_read_command_log",
        "description": "Reads the command execution history of the current SSH session.",
        "input_schema": {"type": "object", "properties": {}},
    },
    {
        "name": "terminal_launch_dev_server",
        "description": (
            'Kills any running "npm run dev" process and launches a new one in the '
            "background from the given project root. Output goes to npm_dev.log."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "projectRoot": {"type": "string", "description": "Absolute path of the project root."},
            },
            "required": ["projectRoot"],
        },
    },
    {
        "name": "terminal_check_dev_server",
        "description": 'Checks whether an "npm run dev" process is running on the remote server.',
        "input_schema": {"type": "object", "properties": {}},
    },
]
