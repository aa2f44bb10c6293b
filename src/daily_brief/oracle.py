"""Thin transport to the story model.

The client sends one prompt, returns the raw completion text and, for JSON calls,
the parsed and schema-checked payload. It never retries: callers decide whether
a failed call is retried, skipped or replaced by a deterministic fallback.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from jinja2 import StrictUndefined, Template
from openai import OpenAI, OpenAIError

from .config import Settings, get_settings
from .schema import validate_payload

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"


class OracleError(RuntimeError):
    """A single model call failed: transport error, empty output or bad JSON."""


@dataclass(frozen=True)
class SearchWindow:
    """Inclusive date range for live search."""

    start: date
    end: date


def build_client(settings: Settings) -> OpenAI:
    """Create an OpenAI-compatible client; separated for easier testing."""
    if not settings.oracle_api_key:
        raise RuntimeError("XAI_API_KEY is required. Set it in the environment or .env file.")
    return OpenAI(api_key=settings.oracle_api_key, base_url=settings.oracle_base_url)


def _load_prompt_file(filename: str) -> str:
    path = PROMPTS_DIR / filename
    return path.read_text(encoding="utf-8")


def render_prompt(filename: str, **values: Any) -> str:
    """Fill a packaged prompt template; missing values raise instead of rendering blank."""
    template = Template(_load_prompt_file(filename), undefined=StrictUndefined)
    return template.render(**values).strip()


def _completion_text_or_raise(response: object, *, step: str) -> str:
    """Extract completion text or raise a clear error when output is missing."""
    choices = getattr(response, "choices", None) or []
    if not choices:
        raise OracleError(f"{step} response had no choices.")
    choice = choices[0]
    message = getattr(choice, "message", None)
    text = getattr(message, "content", None) if message is not None else None
    if getattr(choice, "finish_reason", None) == "length":
        logger.warning("%s hit the output token limit; response may be truncated.", step)
    if not isinstance(text, str) or not text.strip():
        raise OracleError(f"{step} response missing output text.")
    return text


class OracleClient:
    """Serial, retry-free access to the story model."""

    def __init__(self, client: Optional[OpenAI] = None, *, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = build_client(self.settings)
        return self._client

    def _request(
        self,
        prompt: str,
        *,
        max_output_tokens: int,
        expect_json: bool = False,
        search_window: SearchWindow | None = None,
        max_search_results: int | None = None,
        sources: Sequence[str] | None = None,
        step: str = "Oracle",
    ) -> str:
        request_kwargs: Dict[str, Any] = {
            "model": self.settings.oracle_model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_output_tokens,
        }
        if self.settings.oracle_temperature is not None:
            request_kwargs["temperature"] = self.settings.oracle_temperature
        if expect_json:
            request_kwargs["response_format"] = {"type": "json_object"}
        if search_window is not None:
            search: Dict[str, Any] = {
                "mode": "on",
                "return_citations": True,
                "from_date": search_window.start.isoformat(),
                "to_date": search_window.end.isoformat(),
            }
            if max_search_results:
                search["max_search_results"] = max_search_results
            if sources:
                search["sources"] = [{"type": source} for source in sources]
            request_kwargs["extra_body"] = {"search_parameters": search}

        try:
            response = self.client.chat.completions.create(**request_kwargs)
        except OpenAIError as exc:
            raise OracleError(f"{step} request failed: {exc}") from exc
        return _completion_text_or_raise(response, step=step)

    def generate(self, prompt: str, *, expect_json: bool = False, **options: Any) -> str:
        """Send one prompt and return the raw text; raises OracleError on any failure."""
        text = self._request(prompt, expect_json=expect_json, **options)
        if expect_json:
            # A JSON call must fail here, not in the caller, when the text does not parse.
            _parse_json(text, step=options.get("step", "Oracle"))
        return text

    def generate_json(self, prompt: str, *, schema: str, **options: Any) -> Dict[str, Any]:
        """Like generate(expect_json=True), returning the payload validated against `schema`."""
        step = options.pop("step", schema)
        text = self._request(prompt, expect_json=True, step=step, **options)
        payload = _parse_json(text, step=step)
        try:
            return validate_payload(payload, schema)
        except ValueError as exc:
            raise OracleError(str(exc)) from exc


def _parse_json(text: str, *, step: str) -> Any:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        # Models sometimes fence JSON even in json_object mode.
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise OracleError(f"{step} response is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise OracleError(f"{step} response is not a JSON object.")
    return payload
