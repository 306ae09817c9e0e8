from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from .completions import CompletionOptions


class CompletionRequest(BaseModel):
    board_id: str
    messages: list[dict[str, Any]]
    provider: str | None = None
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    response_node_id: str | None = None

    def options(self) -> CompletionOptions:
        return CompletionOptions(
            provider=self.provider,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )


class CredentialCreateRequest(BaseModel):
    provider: str
    api_key: str = Field(repr=False)
    nickname: str


class BoardDefaultCredentialRequest(BaseModel):
    credential_id: str | None = None


class ShareCreateRequest(BaseModel):
    access: Literal["view", "comment"] = "view"
    expires_in_hours: float = 24
    max_accesses: int | None = None
    grantee_id: str | None = None


class AnomalyResetRequest(BaseModel):
    target_subject_id: str | None = None


class ThresholdsUpdateRequest(BaseModel):
    requests_per_hour: int | None = None
    exports_per_hour: int | None = None
    cost_per_day: float | None = None
    failed_auth_attempts: int | None = None
    concurrent_sessions: int | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
