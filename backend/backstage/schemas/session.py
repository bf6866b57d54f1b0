"""Session Schemas — remote session control actions for POST /session.

Invariants:
    - The body is a discriminated union on `action`; an unknown action is a 400
    - Every variant validates its own required fields before any SSH work
    - Credentials are never echoed back in responses

Design Decisions:
    - Discriminated union over one model with optional fields: each handler
      receives exactly the fields its action needs
    - TypeAdapter validation in the route: FastAPI cannot annotate a body with
      an Annotated union and keep the 400 envelope for unknown actions
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class _Action(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class InitializeAction(_Action):
    action: Literal["initialize"]
    host: str = Field(min_length=1, max_length=255)
    port: int = Field(22, ge=1, le=65535)
    username: str = Field(min_length=1, max_length=255)
    password: str | None = None
    private_key_path: str | None = Field(None, alias="privateKeyPath")

    def credentials(self) -> dict:
        return {
            "host": self.host,
            "port": self.port,
            "username": self.username,
            "password": self.password,
            "private_key_path": self.private_key_path,
        }


class ExecuteAction(_Action):
    action: Literal["execute"]
    command: str = Field(min_length=1, max_length=10_000)

    @field_validator("command")
    @classmethod
    def strip_command(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("command cannot be empty or whitespace")
        return v


class EditFileAction(_Action):
    action: Literal["editFile"]
    file_path: str = Field(alias="filePath", min_length=1)
    content: str


class ReadFileAction(_Action):
    action: Literal["readFile"]
    file_path: str = Field(alias="filePath", min_length=1)


class DisconnectAction(_Action):
    action: Literal["disconnect"]


SessionActionBody = Annotated[
    Union[InitializeAction, ExecuteAction, EditFileAction, ReadFileAction, DisconnectAction],
    Field(discriminator="action"),
]

session_action_adapter: TypeAdapter = TypeAdapter(SessionActionBody)
