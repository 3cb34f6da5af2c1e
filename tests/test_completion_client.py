import json

import httpx
import pytest

from src.appcoder.core.errors import TransportFailure
from src.appcoder.domain.models import GenerationConfig, Language, Turn
from src.appcoder.services.completion_client import CompletionClient, build_request_body
from src.appcoder.services.streaming import decode_event_stream

from .utils import sse_body

URL = "http://llm.test/api/generateCode"

CONVERSATION = [
    Turn(role="user", content="Recipe finder"),
    Turn(role="assistant", content="export default function App() {}"),
    Turn(role="user", content="Add a search box"),
]


def _client(handler) -> CompletionClient:
    return CompletionClient(URL, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_request_body_carries_full_conversation_and_settings():
    config = GenerationConfig(
        model_identifier="google/gemma-2-27b-it",
        language=Language.PYTHON,
        use_component_library=True,
        temperature=0.2,
    )
    body = build_request_body(CONVERSATION, config)
    assert body == {
        "messages": [
            {"role": "user", "content": "Recipe finder"},
            {"role": "assistant", "content": "export default function App() {}"},
            {"role": "user", "content": "Add a search box"},
        ],
        "model": "google/gemma-2-27b-it",
        "temperature": 0.2,
        "language": "Python",
        "shadcn": True,
    }


@pytest.mark.asyncio
async def test_stream_posts_json_and_relays_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["accept"] = request.headers.get("accept")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, content=sse_body("Hello, ", "world"), headers={"content-type": "text/event-stream"})

    client = _client(handler)
    events = [e.text async for e in decode_event_stream(client.stream(CONVERSATION, GenerationConfig()))]
    await client._client.aclose()

    assert events == ["Hello, ", "world"]
    assert seen["method"] == "POST"
    assert seen["accept"] == "text/event-stream"
    assert len(seen["body"]["messages"]) == 3


@pytest.mark.asyncio
async def test_non_success_status_raises_transport_failure():
    client = _client(lambda request: httpx.Response(503, text="overloaded"))
    with pytest.raises(TransportFailure) as excinfo:
        async for _ in client.stream(CONVERSATION, GenerationConfig()):
            pass
    assert excinfo.value.status_code == 503


@pytest.mark.asyncio
async def test_connection_error_raises_transport_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    with pytest.raises(TransportFailure) as excinfo:
        async for _ in client.stream(CONVERSATION, GenerationConfig()):
            pass
    assert excinfo.value.status_code is None
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_aclose_leaves_injected_client_open():
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    client = CompletionClient(URL, client=http)
    await client.aclose()
    assert not http.is_closed
    await http.aclose()
