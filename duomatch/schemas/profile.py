from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from typing import Optional


class Interest(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    emoji: str = ""


class ProfilePrompt(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt: str
    answer: str


class UserSummary(BaseModel):
    """Immutable public snapshot of a user, embedded wherever a duo member is
    displayed.  Re-fetched on every read; never a live reference."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str
    age: Optional[int] = None
    photo_refs: list[str] = Field(default_factory=list)
    bio: str = ""
    university: Optional[str] = None
    interests: list[Interest] = Field(default_factory=list)
    prompts: list[ProfilePrompt] = Field(default_factory=list)
