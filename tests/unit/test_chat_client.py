import asyncio
import time

import httpx
import pytest

from config import Config
from models.api_models import ApiEndpoint
from models.chat_models import Session
from services.chat_client import StreamingChatClient
from tests.fixtures.mock_clients import ChatEndpointMock
from tests.fixtures.responses import sse_body, sse_record, MALFORMED_RECORD
from utils.constants import CallState, StreamEventType
from utils.errors import ConfigurationError, SessionBusyError, TransportError


async def collect(client, session, endpoint, first_turn=True, default_template=None, question=None):
    return [event async for event in client.stream_chat(session, endpoint, first_turn, default_template, question)]


@pytest.mark.anyio
async def test_stream_chat_emits_deltas_then_done(chat_client, chat_endpoint, session, endpoint):
    """Given the Hi/there stream, deltas should arrive in order and one assistant message be appended."""
    events = await collect(chat_client, session, endpoint, default_template="Translate: {{selection}}")

    assert [(e.type, e.content) for e in events] == [
        (StreamEventType.DELTA, "Hi"),
        (StreamEventType.DELTA, " there"),
        (StreamEventType.DONE, "Hi there"),
    ]
    assert [(m.role, m.content) for m in session.messages] == [
        ("user", "Translate: hello"),
        ("assistant", "Hi there"),
    ]
    assert session.last_state == CallState.COMPLETED
    assert not session.busy


@pytest.mark.anyio
async def test_stream_chat_sends_openai_compatible_request(chat_client, chat_endpoint, session, endpoint):
    """Given a first turn, the request should carry bearer auth, stream flag and the resolved prompt."""
    await collect(chat_client, session, endpoint, default_template="Q: {{selection}} / {{context}}")

    request = chat_endpoint.requests[0]
    assert request.method == "POST"
    assert str(request.url) == endpoint.url
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert request.headers["Content-Type"] == "application/json"
    assert chat_endpoint.payloads[0] == {
        "model": "moonshot-v1-8k",
        "stream": True,
        "messages": [{"role": "user", "content": "Q: hello / greeting line"}],
    }


@pytest.mark.anyio
async def test_explicit_session_template_wins_over_default(chat_client, chat_endpoint, endpoint):
    """Given a session template, it should be used instead of the configured default."""
    session = Session(selection="word", template="Define {{selection}}")

    await collect(chat_client, session, endpoint, default_template="Translate: {{selection}}")

    assert chat_endpoint.payloads[0]["messages"][-1]["content"] == "Define word"


@pytest.mark.anyio
async def test_follow_up_sends_history_as_is(chat_client, chat_endpoint, session, endpoint):
    """Given a follow-up, the history should be resent without template resolution."""
    await collect(chat_client, session, endpoint, default_template="T: {{selection}}")
    session.add_user_message("and in French?")

    await collect(chat_client, session, endpoint, first_turn=False, default_template="T: {{selection}}")

    assert chat_endpoint.payloads[1]["messages"] == [
        {"role": "user", "content": "T: hello"},
        {"role": "assistant", "content": "Hi there"},
        {"role": "user", "content": "and in French?"},
    ]
    assert [m.role for m in session.messages] == ["user", "assistant", "user", "assistant"]


@pytest.mark.anyio
@pytest.mark.parametrize("url, key", [("", "sk-test"), ("https://llm.example.com", ""), ("", "")])
async def test_missing_url_or_key_fails_without_request(chat_client, chat_endpoint, session, url, key):
    """Given an incomplete endpoint, a ConfigurationError should be reported and no request issued."""
    events = await collect(chat_client, session, ApiEndpoint(name="broken", url=url, key=key))

    assert len(events) == 1
    assert events[0].type == StreamEventType.FAILED
    assert isinstance(events[0].error, ConfigurationError)
    assert chat_endpoint.requests == []
    assert session.messages == []
    assert session.last_state == CallState.FAILED


@pytest.mark.anyio
async def test_no_endpoint_is_a_configuration_error(chat_client, chat_endpoint, session):
    """Given no endpoint at all, the call should fail the same way."""
    events = await collect(chat_client, session, None)

    assert isinstance(events[0].error, ConfigurationError)
    assert chat_endpoint.requests == []


@pytest.mark.anyio
async def test_http_error_status_fails_and_keeps_history(session, endpoint):
    """Given a 401 response, a TransportError with the status should be reported and history untouched."""
    session.add_user_message("earlier")
    session.add_assistant_message("answer")
    mock = ChatEndpointMock(status_code=401)
    client = StreamingChatClient(http_client=mock.build())

    events = await collect(client, session, endpoint, first_turn=False)

    assert len(events) == 1
    assert isinstance(events[0].error, TransportError)
    assert events[0].error.status_code == 401
    assert [m.content for m in session.messages] == ["earlier", "answer"]
    assert session.last_state == CallState.FAILED
    assert not session.busy


@pytest.mark.anyio
async def test_network_error_is_a_transport_error(session, endpoint):
    """Given a connection failure, a TransportError should be reported without an assistant message."""
    mock = ChatEndpointMock(error=httpx.ConnectError("connection refused"))
    client = StreamingChatClient(http_client=mock.build())

    events = await collect(client, session, endpoint)

    assert isinstance(events[-1].error, TransportError)
    assert events[-1].error.status_code is None
    assert not any(m.role == "assistant" for m in session.messages)


@pytest.mark.anyio
async def test_stream_without_done_still_completes(session, endpoint):
    """Given a stream closing without [DONE], the concatenated deltas should be committed."""
    mock = ChatEndpointMock(chunks=[sse_body("no ", "terminator", done=False)])
    client = StreamingChatClient(http_client=mock.build())

    events = await collect(client, session, endpoint)

    assert events[-1].type == StreamEventType.DONE
    assert events[-1].content == "no terminator"
    assert session.messages[-1].content == "no terminator"


@pytest.mark.anyio
async def test_malformed_record_does_not_change_answer(session, endpoint):
    """Given a malformed record between valid ones, the answer should equal the one without it."""
    body = sse_record("A") + MALFORMED_RECORD + sse_record("B") + "data: [DONE]\n\n"
    mock = ChatEndpointMock(chunks=[body.encode()])
    client = StreamingChatClient(http_client=mock.build())

    events = await collect(client, session, endpoint)

    assert [e.content for e in events if e.type == StreamEventType.DELTA] == ["A", "B"]
    assert events[-1].content == "AB"


@pytest.mark.anyio
async def test_split_chunks_give_same_answer(session, endpoint):
    """Given the body delivered in odd-sized reads, the answer should match a single read."""
    body = sse_body("streamed ", "über ", "answer")
    chunks = [body[i:i + 7] for i in range(0, len(body), 7)]
    client = StreamingChatClient(http_client=ChatEndpointMock(chunks=chunks).build())

    events = await collect(client, session, endpoint)

    assert events[-1].content == "streamed über answer"


@pytest.mark.parametrize("model, default_model, expected", [
    ("glm-4", "glm-4-airx", "glm-4"),
    ("", "glm-4-airx", "glm-4-airx"),
    ("", None, Config.DEFAULT_MODEL),
])
def test_resolve_model_fallbacks(model, default_model, expected):
    """Given the endpoint policy, the model should fall back from endpoint to policy to global default."""
    endpoint = ApiEndpoint(url="u", key="k", model=model, default_model=default_model)
    assert StreamingChatClient.resolve_model(endpoint) == expected


@pytest.mark.anyio
async def test_busy_session_rejects_second_turn(chat_client, session, endpoint):
    """Given a session with a stream in flight, a second call should raise SessionBusyError."""
    session.busy = True

    with pytest.raises(SessionBusyError):
        await collect(chat_client, session, endpoint)


@pytest.mark.anyio
async def test_cancel_during_pending_read_commits_partial(session, endpoint):
    """Given a stream stalled after one delta, cancel should end it and keep the partial answer tagged."""
    mock = ChatEndpointMock(chunks=[sse_record("partial").encode()], hang=True)
    client = StreamingChatClient(http_client=mock.build())
    events = []
    first_delta = asyncio.Event()

    async def consume():
        async for event in client.stream_chat(session, endpoint, first_turn=True):
            events.append(event)
            first_delta.set()

    task = asyncio.create_task(consume())
    await asyncio.wait_for(first_delta.wait(), timeout=2)
    await asyncio.sleep(0.01)
    session.cancel()
    await asyncio.wait_for(task, timeout=2)

    assert events[-1].type == StreamEventType.ABORTED
    assert events[-1].content == "partial"
    assert session.messages[-1].role == "assistant"
    assert session.messages[-1].content == "partial"
    assert session.messages[-1].aborted
    assert session.last_state == CallState.ABORTED
    assert not session.busy


@pytest.mark.anyio
async def test_cancel_before_any_delta_appends_no_assistant_message(session, endpoint):
    """Given a cancel before anything arrived, no assistant message should be committed."""
    client = StreamingChatClient(http_client=ChatEndpointMock(hang=True).build())

    async def consume():
        return [event async for event in client.stream_chat(session, endpoint, first_turn=True)]

    task = asyncio.create_task(consume())
    await asyncio.sleep(0.05)
    session.cancel()
    events = await asyncio.wait_for(task, timeout=2)

    assert events[-1].type == StreamEventType.ABORTED
    assert not any(m.role == "assistant" for m in session.messages)


@pytest.mark.anyio
async def test_min_request_interval_spaces_requests(endpoint):
    """Given a request interval, a second request to the same endpoint should wait for it."""
    paced = endpoint.model_copy(update={"min_request_interval": 0.2})
    mock = ChatEndpointMock()
    client = StreamingChatClient(http_client=mock.build())

    mock.set_body(sse_body("one"))
    await collect(client, Session(selection="a"), paced)
    started = time.monotonic()
    mock.set_body(sse_body("two"))
    await collect(client, Session(selection="b"), paced)

    assert time.monotonic() - started >= 0.15
    assert len(mock.requests) == 2


@pytest.mark.anyio
async def test_ask_pushes_deltas_to_sync_sink(chat_client, session, endpoint):
    """Given a plain function sink, ask should push each delta and return the done event."""
    received = []

    terminal = await chat_client.ask(session, endpoint, received.append)

    assert received == ["Hi", " there"]
    assert terminal.type == StreamEventType.DONE
    assert terminal.content == "".join(received)


@pytest.mark.anyio
async def test_ask_writes_configuration_diagnostic_to_async_sink(chat_client, chat_endpoint, session):
    """Given an incomplete endpoint and a coroutine sink, the diagnostic should be written to it."""
    received = []

    async def sink(text):
        received.append(text)

    terminal = await chat_client.ask(session, ApiEndpoint(url="https://x", key=""), sink)

    assert terminal.type == StreamEventType.FAILED
    assert received == ["\n❌ API configuration incomplete"]
    assert chat_endpoint.requests == []


@pytest.mark.anyio
async def test_ask_reports_http_status_to_sink(session, endpoint):
    """Given a 500 response, the sink should receive the status in its diagnostic."""
    client = StreamingChatClient(http_client=ChatEndpointMock(status_code=500).build())
    received = []

    await client.ask(session, endpoint, received.append)

    assert received == ["\n❌ Request failed: HTTP 500"]


@pytest.mark.anyio
async def test_cancel_while_waiting_for_headers_aborts_promptly(session, endpoint):
    """Given a provider slow to answer, cancel should end the call without waiting for headers."""
    client = StreamingChatClient(http_client=ChatEndpointMock(chunks=[sse_body("late")], delay=3).build())

    async def consume():
        return [event async for event in client.stream_chat(session, endpoint, first_turn=True)]

    task = asyncio.create_task(consume())
    await asyncio.sleep(0.1)
    cancelled_at = time.monotonic()
    session.cancel()
    events = await asyncio.wait_for(task, timeout=2)

    assert time.monotonic() - cancelled_at < 0.5
    assert [(e.type, e.content) for e in events] == [(StreamEventType.ABORTED, "")]
    assert session.messages == []
    assert session.last_state == CallState.ABORTED
    assert not session.busy


@pytest.mark.anyio
async def test_cancel_before_turn_starts_is_not_lost(chat_client, chat_endpoint, session, endpoint):
    """Given a cancel issued before the stream is iterated, the turn should abort without a request."""
    session.cancel()

    events = await collect(chat_client, session, endpoint)

    assert [e.type for e in events] == [StreamEventType.ABORTED]
    assert chat_endpoint.requests == []
    assert session.messages == []


@pytest.mark.anyio
async def test_cancel_only_covers_one_turn(chat_client, session, endpoint):
    """Given an aborted turn, the next turn should run normally."""
    session.cancel()
    await collect(chat_client, session, endpoint)

    events = await collect(chat_client, session, endpoint)

    assert events[-1].type == StreamEventType.DONE


@pytest.mark.anyio
async def test_closed_session_never_sends(chat_client, chat_endpoint, session, endpoint):
    """Given a session closed before its turn runs, every later turn should abort without a request."""
    session.close()

    first = await collect(chat_client, session, endpoint)
    second = await collect(chat_client, session, endpoint, first_turn=False, question="still there?")

    assert first[-1].type == second[-1].type == StreamEventType.ABORTED
    assert chat_endpoint.requests == []
    assert session.messages == []


@pytest.mark.anyio
async def test_follow_up_question_joins_history_on_success(chat_client, chat_endpoint, session, endpoint):
    """Given a follow-up question, it should be sent after the history and committed with the answer."""
    await collect(chat_client, session, endpoint)

    await collect(chat_client, session, endpoint, first_turn=False, question="Why?")

    assert chat_endpoint.payloads[1]["messages"][-1] == {"role": "user", "content": "Why?"}
    assert [(m.role, m.content) for m in session.messages][2:] == [("user", "Why?"), ("assistant", "Hi there")]


@pytest.mark.anyio
async def test_failed_follow_up_leaves_history_unchanged(session, endpoint):
    """Given a follow-up the provider rejects, the question should not be committed, so a retry sends it once."""
    mock = ChatEndpointMock(chunks=[sse_body("first")])
    client = StreamingChatClient(http_client=mock.build())
    await collect(client, session, endpoint)

    mock.status_code = 500
    await collect(client, session, endpoint, first_turn=False, question="Why?")
    mock.status_code = 200
    mock.set_body(sse_body("because"))
    await collect(client, session, endpoint, first_turn=False, question="Why?")

    assert [m.content for m in session.messages] == ["hello", "first", "Why?", "because"]
    assert [m["content"] for m in mock.payloads[2]["messages"]] == ["hello", "first", "Why?"]


@pytest.mark.anyio
async def test_back_to_back_follow_ups_commit_one_question(session, endpoint):
    """Given a second follow-up while the first is streaming, it should be refused and history keep one question."""
    mock = ChatEndpointMock(chunks=[sse_record("part").encode()], hang=True)
    client = StreamingChatClient(http_client=mock.build())
    started = asyncio.Event()

    async def first_follow_up():
        async for _ in client.stream_chat(session, endpoint, question="one"):
            started.set()

    task = asyncio.create_task(first_follow_up())
    await asyncio.wait_for(started.wait(), timeout=2)

    with pytest.raises(SessionBusyError):
        await collect(client, session, endpoint, first_turn=False, question="two")

    session.cancel()
    await asyncio.wait_for(task, timeout=2)
    assert [(m.role, m.content) for m in session.messages] == [("user", "one"), ("assistant", "part")]
    assert len(mock.requests) == 1
