try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from types import SimpleNamespace

import pytest

from app.clients import gemini as gemini_module
from app.clients.gemini import GeminiClient, GeminiModelError, parse_json_payload
from app.core.config import GeminiSettings
from app.schemas import FileAttachment


def _response(text: str = "", calls=(), prompt_tokens: int = 10, output_tokens: int = 5):
    parts = [
        SimpleNamespace(function_call=SimpleNamespace(name="web_search", args={"query": query}))
        for query in calls
    ]
    return SimpleNamespace(
        text=text,
        parts=parts or [SimpleNamespace(function_call=None)],
        usage_metadata=SimpleNamespace(
            prompt_token_count=prompt_tokens, candidates_token_count=output_tokens
        ),
    )


class FakeChat:
    def __init__(self, responses) -> None:
        self.responses = list(responses)
        self.messages = []

    async def send_message_async(self, message):
        self.messages.append(message)
        return self.responses.pop(0)


class FakeModel:
    instances: list["FakeModel"] = []
    chat_responses: list = []
    reply = None

    def __init__(self, model_name, **kwargs) -> None:
        self.model_name = model_name
        self.kwargs = kwargs
        self.contents = None
        self.chat = FakeChat(FakeModel.chat_responses)
        FakeModel.instances.append(self)

    def start_chat(self):
        return self.chat

    def generate_content(self, contents):
        self.contents = contents
        return FakeModel.reply


class FakeSearch:
    def __init__(self) -> None:
        self.queries: list[str] = []

    async def search(self, query: str):
        self.queries.append(query)
        return [{"title": f"{query} result", "link": "https://example.com", "snippet": "s"}]


@pytest.fixture()
def fake_model(monkeypatch: pytest.MonkeyPatch):
    FakeModel.instances = []
    FakeModel.chat_responses = []
    FakeModel.reply = None
    monkeypatch.setattr(gemini_module.genai, "GenerativeModel", FakeModel)
    return FakeModel


def _settings(**overrides) -> GeminiSettings:
    return GeminiSettings(api_key="test-key", **overrides)


def test_parse_json_payload_tolerates_fences() -> None:
    assert parse_json_payload('```json\n{"a": 1}\n```') == {"a": 1}
    assert parse_json_payload(' {"b": [2]} ') == {"b": [2]}


def test_model_candidates_put_configured_model_first() -> None:
    client = GeminiClient(_settings(model_name="gemini-2.0-flash"))

    assert client._text_model_candidates() == [
        "gemini-2.0-flash",
        "gemini-1.5-pro",
        "gemini-1.5-flash",
    ]


@pytest.mark.asyncio
async def test_generate_json_attaches_inline_files(fake_model) -> None:
    fake_model.reply = _response(text='{"ok": true}', prompt_tokens=40, output_tokens=8)
    client = GeminiClient(_settings())
    attachment = FileAttachment(id="f1", data=b"%PDF", mime_type="application/pdf", filename="deck.pdf")

    result = await client.generate_json(prompt="classify", files=[attachment])

    model = fake_model.instances[0]
    assert model.kwargs == {"generation_config": {"response_mime_type": "application/json"}}
    assert model.contents == ["classify", {"mime_type": "application/pdf", "data": b"%PDF"}]
    assert result.text == '{"ok": true}'
    assert result.usage.input_tokens == 40
    assert result.usage.output_tokens == 8


@pytest.mark.asyncio
async def test_research_without_search_key_uses_grounding(fake_model) -> None:
    fake_model.reply = _response(text="grounded answer")

    result = await GeminiClient(_settings()).research("Search for recent news")

    assert result.text == "grounded answer"
    assert fake_model.instances[0].kwargs == {"tools": "google_search_retrieval"}


@pytest.mark.asyncio
async def test_search_tool_loop_feeds_results_back(fake_model) -> None:
    fake_model.chat_responses = [
        _response(calls=["acme robotics funding"]),
        _response(text="Acme raised $12.5M.", prompt_tokens=30, output_tokens=12),
    ]
    search = FakeSearch()

    result = await GeminiClient(_settings(), web_search_client=search).research("funding?")

    assert search.queries == ["acme robotics funding"]
    assert result.text == "Acme raised $12.5M."
    assert result.steps == 2
    assert result.usage.input_tokens == 40
    assert result.usage.output_tokens == 17
    reply = fake_model.instances[0].chat.messages[1][0]
    assert reply.function_response.name == "web_search"


@pytest.mark.asyncio
async def test_search_tool_loop_is_bounded(fake_model) -> None:
    fake_model.chat_responses = [_response(calls=[f"query {n}"]) for n in range(3)]
    search = FakeSearch()
    client = GeminiClient(_settings(research_max_steps=2), web_search_client=search)

    with pytest.raises(GeminiModelError, match="within 2 steps"):
        await client.research("funding?")

    assert search.queries == ["query 0"]


@pytest.mark.asyncio
async def test_search_tool_loop_requires_a_search_client(fake_model) -> None:
    client = GeminiClient(_settings())

    with pytest.raises(GeminiModelError, match="requires a web search client"):
        await client._research_with_search_tool("funding?")

    assert fake_model.instances == []
