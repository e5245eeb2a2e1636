"""LLM gateway for report generation via an OpenAI-compatible endpoint (Poe by default)."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
from openai import AsyncOpenAI


def resolve_model_id(selector: Optional[str], default: str) -> str:
    """Strip a ``provider:`` prefix from a model selector; fall back to ``default``."""
    candidate = (selector or "").strip() or default
    if ":" in candidate:
        candidate = candidate.split(":", 1)[1].strip() or default
    return candidate


class ChatModelClient:
    """Minimal async chat client hiding transport plumbing from workflow nodes."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str = "https://api.poe.com/v1",
        proxy_url: Optional[str] = None,
        timeout: float = 120.0,
        default_web_search: Optional[bool] = None,
        default_thinking_budget: Optional[int] = None,
    ) -> None:
        if not api_key:
            raise ValueError("LLM_API_KEY (or POE_API_KEY) is required to contact the model endpoint.")

        http_client_kwargs: Dict[str, Any] = {
            "timeout": httpx.Timeout(timeout, connect=10.0),
            "verify": True,
        }
        if proxy_url:
            http_client_kwargs["proxy"] = proxy_url
            http_client_kwargs["verify"] = False

        self._http_client = httpx.AsyncClient(**http_client_kwargs)
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            http_client=self._http_client,
        )
        self._model = model
        self._default_web_search = default_web_search
        self._default_thinking_budget = default_thinking_budget

    async def generate(
        self,
        messages: List[Dict[str, str]],
        *,
        model: Optional[str] = None,
        temperature: float = 0.3,
        web_search: Optional[bool] = None,
        thinking_budget: Optional[int] = None,
    ) -> str:
        """Fire a chat completion request and return the assistant message content."""
        resolved_web_search = (
            self._default_web_search if web_search is None else web_search
        )
        resolved_budget = (
            self._default_thinking_budget if thinking_budget is None else thinking_budget
        )

        extra_body: Dict[str, Any] = {}
        if resolved_web_search is not None:
            extra_body["web_search"] = bool(resolved_web_search)
        if resolved_budget is not None:
            extra_body["thinking_budget"] = resolved_budget

        response = await self._client.chat.completions.create(
            model=resolve_model_id(model, self._model),
            temperature=temperature,
            messages=messages,
            extra_body=extra_body or None,
        )
        if not response.choices:
            raise RuntimeError("Model returned no choices.")
        return response.choices[0].message.content or ""

    async def aclose(self) -> None:
        """Release the underlying HTTP session."""
        await self._http_client.aclose()
