"""Client wrapper for interacting with Google Gemini models."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence

import google.generativeai as genai
from google.api_core.exceptions import GoogleAPICallError, NotFound

from app.clients.web_search import WebSearchClient
from app.core.config import GeminiSettings
from app.schemas.research import TokenUsage
from app.schemas.triage import FileAttachment


_TEXT_FALLBACKS: tuple[str, ...] = (
    "gemini-1.5-pro",
    "gemini-1.5-flash",
)

_JSON_GENERATION_CONFIG = {"response_mime_type": "application/json"}

_SEARCH_TOOL = genai.protos.Tool(
    function_declarations=[
        genai.protos.FunctionDeclaration(
            name="web_search",
            description=(
                "Search the web for up-to-date information. Returns titles, links, "
                "snippets and dates of the top results."
            ),
            parameters=genai.protos.Schema(
                type=genai.protos.Type.OBJECT,
                properties={
                    "query": genai.protos.Schema(
                        type=genai.protos.Type.STRING,
                        description="Search engine query.",
                    )
                },
                required=["query"],
            ),
        )
    ]
)

logger = logging.getLogger(__name__)


class GeminiModelError(RuntimeError):
    """Raised when Gemini cannot fulfill a request."""


@dataclass(slots=True)
class GenerationResult:
    """Text returned by Gemini together with its token accounting."""

    text: str
    usage: TokenUsage
    steps: int = 1


class GeminiClient:
    """Provide structured generation and search-augmented research calls."""

    def __init__(
        self,
        settings: GeminiSettings,
        web_search_client: WebSearchClient | None = None,
    ) -> None:
        self._settings = settings
        self._web_search = web_search_client
        # Configure the global client once per process.
        genai.configure(api_key=settings.api_key)

    async def generate_json(
        self,
        *,
        prompt: str,
        files: Sequence[FileAttachment] = (),
    ) -> GenerationResult:
        """Request a JSON reply, optionally with raw file payloads attached."""
        contents: list[Any] = [prompt]
        contents.extend(
            {"mime_type": attachment.mime_type, "data": attachment.data}
            for attachment in files
        )

        def _invoke() -> GenerationResult:
            response = self._invoke_with_models(
                models=self._text_model_candidates(),
                env_var="GEMINI_MODEL_NAME",
                error_prefix="Gemini structured generate_content failed",
                model_kwargs={"generation_config": _JSON_GENERATION_CONFIG},
                call=lambda model: model.generate_content(contents),
            )
            return GenerationResult(
                text=_response_text(response),
                usage=_usage_from_response(response),
            )

        return await asyncio.to_thread(_invoke)

    async def research(self, prompt: str) -> GenerationResult:
        """Answer ``prompt`` using live web search before responding."""
        if self._web_search is not None:
            return await self._research_with_search_tool(prompt)

        def _invoke() -> GenerationResult:
            response = self._invoke_with_models(
                models=self._research_model_candidates(),
                env_var="GEMINI_RESEARCH_MODEL_NAME",
                error_prefix="Gemini grounded research failed",
                model_kwargs={"tools": "google_search_retrieval"},
                call=lambda model: model.generate_content(prompt),
            )
            return GenerationResult(
                text=_response_text(response),
                usage=_usage_from_response(response),
            )

        return await asyncio.to_thread(_invoke)

    async def _research_with_search_tool(self, prompt: str) -> GenerationResult:
        """Run a function-calling loop bounded by ``research_max_steps``."""
        if self._web_search is None:
            raise GeminiModelError("Search tool research requires a web search client")
        max_steps = self._settings.research_max_steps
        model = genai.GenerativeModel(
            self._settings.research_model_name, tools=[_SEARCH_TOOL]
        )
        chat = model.start_chat()
        try:
            response = await chat.send_message_async(prompt)
            usage = _usage_from_response(response)
            steps = 1
            calls = _function_calls(response)
            while calls and steps < max_steps:
                replies = []
                for call in calls:
                    arguments = dict(call.args) if call.args else {}
                    query = str(arguments.get("query", "")).strip()
                    results = await self._web_search.search(query) if query else []
                    replies.append(
                        genai.protos.Part(
                            function_response=genai.protos.FunctionResponse(
                                name=call.name, response={"results": results}
                            )
                        )
                    )
                response = await chat.send_message_async(replies)
                usage = usage + _usage_from_response(response)
                steps += 1
                calls = _function_calls(response)
        except GoogleAPICallError as exc:  # pragma: no cover - network call
            raise GeminiModelError(f"Gemini research call failed: {exc.message}") from exc

        if calls:
            raise GeminiModelError(
                f"Research did not produce an answer within {max_steps} steps."
            )
        return GenerationResult(text=_response_text(response), usage=usage, steps=steps)

    def _invoke_with_models(
        self,
        *,
        models: Iterable[str],
        env_var: str,
        error_prefix: str,
        call: Callable[[genai.GenerativeModel], Any],
        model_kwargs: dict[str, Any] | None = None,
    ) -> Any:
        """Try the configured model followed by fallbacks when available."""

        model_sequence = list(models)
        last_not_found: NotFound | None = None
        for index, model_name in enumerate(model_sequence):
            generative_model = genai.GenerativeModel(model_name, **(model_kwargs or {}))
            try:
                return call(generative_model)
            except NotFound as exc:  # pragma: no cover - network call
                last_not_found = exc
                logger.warning(
                    "Gemini model '%s' not found (attempt %d/%d); trying fallback.",
                    model_name,
                    index + 1,
                    len(model_sequence),
                )
                continue
            except GoogleAPICallError as exc:  # pragma: no cover - network call
                raise GeminiModelError(f"{error_prefix}: {exc.message}") from exc

        if last_not_found is not None:
            primary = model_sequence[0] if model_sequence else "unknown"
            raise GeminiModelError(
                "Gemini model '"
                f"{primary}"
                "' is not available. Update "
                f"{env_var} to a supported value."
            ) from last_not_found

        raise GeminiModelError(f"{error_prefix}: Unknown error invoking Gemini.")

    def _text_model_candidates(self) -> list[str]:
        return self._collect_candidates(self._settings.model_name, _TEXT_FALLBACKS)

    def _research_model_candidates(self) -> list[str]:
        return self._collect_candidates(
            self._settings.research_model_name, _TEXT_FALLBACKS
        )

    @staticmethod
    def _collect_candidates(
        configured: str | None,
        fallbacks: tuple[str, ...],
    ) -> list[str]:
        """Return distinct model names prioritizing the configured value."""
        seen: set[str] = set()
        candidates: list[str] = []
        for name in (configured, *fallbacks):
            if not name:
                continue
            cleaned = name.strip()
            if not cleaned or cleaned in seen:
                continue
            seen.add(cleaned)
            candidates.append(cleaned)
        return candidates


def _response_text(response: Any) -> str:
    # ``.text`` raises when the candidate was blocked or holds no text parts.
    try:
        return response.text or ""
    except ValueError:
        return ""


def _usage_from_response(response: Any) -> TokenUsage:
    metadata = getattr(response, "usage_metadata", None)
    if metadata is None:
        return TokenUsage.zero()
    return TokenUsage(
        input_tokens=getattr(metadata, "prompt_token_count", 0) or 0,
        output_tokens=getattr(metadata, "candidates_token_count", 0) or 0,
    )


def _function_calls(response: Any) -> list[Any]:
    calls = []
    for part in getattr(response, "parts", None) or []:
        function_call = getattr(part, "function_call", None)
        if function_call is not None and function_call.name:
            calls.append(function_call)
    return calls


def parse_json_payload(payload: str) -> Any:
    """Decode a JSON reply, tolerating a fenced code block around it."""
    cleaned = payload.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
        cleaned = cleaned.strip()
    return json.loads(cleaned)


__all__ = ["GeminiClient", "GeminiModelError", "GenerationResult", "parse_json_payload"]
