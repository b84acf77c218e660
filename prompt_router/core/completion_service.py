"""Completion Service - Adapter for the external text-generation service.

The routing engine never generates text itself. It hands the prompt and an
ordered candidate list to a completion service, which picks a candidate,
runs the completion and reports which provider/model answered and how many
tokens were used.

NotDiamondCompletionService speaks the NotDiamond-style JSON protocol over
httpx:

    POST {completion_url}
    {"messages": [{"role": "user", "content": "..."}],
     "llm_providers": [{"provider": "openai", "model": "gpt-4o"}, ...]}

    200 {"content": "...", "providers": [{"provider": "...", "model": "..."}],
         "usage": {"prompt_tokens": 12, "completion_tokens": 34}}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, ValidationError

from prompt_router.core.model_catalog import CompletionUsage, ModelDescriptor

logger = logging.getLogger(__name__)


class CompletionServiceError(Exception):
    """Raised when the completion service rejects or fails a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class CompletionRequest:
    """Prompt plus the ordered candidates the service may choose from."""

    prompt: str
    candidates: List[ModelDescriptor] = field(default_factory=list)


@dataclass
class CompletionResult:
    """What the service returned for one attempt."""

    content: str = ""
    provider: Optional[str] = None
    model: Optional[str] = None
    usage: Optional[CompletionUsage] = None
    error: Optional[str] = None


@runtime_checkable
class CompletionService(Protocol):
    """Anything that can run a completion over a candidate list."""

    def missing_credential(self) -> Optional[str]:
        """Name of a required credential that is not configured, if any."""
        ...

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        ...


# -----------------------------------------------------------------------------
# Wire format
# -----------------------------------------------------------------------------


class _ProviderPayload(BaseModel):
    provider: str
    model: str


class _UsagePayload(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0


class _CompletionPayload(BaseModel):
    content: Optional[str] = None
    providers: List[_ProviderPayload] = []
    usage: Optional[_UsagePayload] = None
    detail: Optional[Any] = None


def build_request_body(request: CompletionRequest) -> dict:
    return {
        "messages": [{"role": "user", "content": request.prompt}],
        "llm_providers": [
            {"provider": m.provider.value, "model": m.api_model_name} for m in request.candidates
        ],
    }


def parse_response_body(data: object) -> CompletionResult:
    """Turn a decoded JSON body into a CompletionResult.

    Raises:
        CompletionServiceError: On an error body or a body with no provider.
    """
    try:
        payload = _CompletionPayload.model_validate(data)
    except ValidationError as e:
        raise CompletionServiceError(f"Completion service returned an invalid response: {e}") from e

    if payload.detail:
        raise CompletionServiceError(str(payload.detail))
    if not payload.providers:
        raise CompletionServiceError("Routing was successful, but no model provider was returned.")

    chosen = payload.providers[0]
    usage = None
    if payload.usage is not None:
        usage = CompletionUsage(
            input_tokens=payload.usage.prompt_tokens,
            output_tokens=payload.usage.completion_tokens,
        )
    return CompletionResult(
        content=payload.content or "",
        provider=chosen.provider,
        model=chosen.model,
        usage=usage,
    )


# -----------------------------------------------------------------------------
# HTTP client
# -----------------------------------------------------------------------------


class NotDiamondCompletionService:
    """Completion service client over httpx.AsyncClient."""

    CREDENTIAL_NAME = "NOTDIAMOND_API_KEY"

    def __init__(
        self,
        api_key: Optional[str],
        completion_url: str,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._api_key = api_key
        self._completion_url = completion_url
        self._timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings, client: Optional[httpx.AsyncClient] = None) -> "NotDiamondCompletionService":
        return cls(
            api_key=settings.api.get_key_value(cls.CREDENTIAL_NAME),
            completion_url=settings.router.completion_url,
            timeout=settings.router.request_timeout,
            client=client,
        )

    def missing_credential(self) -> Optional[str]:
        return None if self._api_key else self.CREDENTIAL_NAME

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        if not self._api_key:
            raise CompletionServiceError(f"{self.CREDENTIAL_NAME} is not configured.")

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        body = build_request_body(request)
        logger.debug(f"Requesting completion from {len(request.candidates)} candidates")

        if self._client is not None:
            response = await self._client.post(
                self._completion_url, json=body, headers=headers, timeout=self._timeout
            )
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._completion_url, json=body, headers=headers)

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CompletionServiceError(
                f"{response.status_code} {response.reason_phrase}: {response.text}",
                status_code=response.status_code,
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise CompletionServiceError("Completion service returned a non-JSON response") from e
        return parse_response_body(data)
