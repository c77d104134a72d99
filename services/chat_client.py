"""
Streaming chat-completion client.
Sends the conversation to an OpenAI-compatible endpoint and yields content
deltas as the streamed body arrives.
"""
import asyncio
import inspect
import time
from typing import AsyncIterator, Awaitable, Callable, Optional

import httpx

from config import Config
from models.api_models import ApiEndpoint
from models.chat_models import Session, StreamEvent
from services.template_service import TemplateResolver
from utils.constants import (
    CallState,
    StreamEventType,
    CONFIG_ERROR_MESSAGE,
    TRANSPORT_ERROR_MESSAGE,
    NETWORK_ERROR_MESSAGE
)
from utils.errors import AbortedByUser, ConfigurationError, SessionBusyError, TransportError
from utils.http_client import HTTPClientManager
from utils.logger import CallLogger, app_logger, call_logger
from utils.sse_parser import SSEStreamParser


class StreamingChatClient:
    """Performs one streamed chat exchange per call, one call per session at a time."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self._http_client = http_client
        self._last_request_at: dict[str, float] = {}

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http_client or HTTPClientManager.get_chat_client()

    @staticmethod
    def resolve_model(endpoint: ApiEndpoint) -> str:
        """Endpoint model, then the endpoint's policy default, then the global fallback."""
        return endpoint.model or endpoint.default_model or Config.DEFAULT_MODEL

    @staticmethod
    def build_request(endpoint: ApiEndpoint, messages: list[dict]) -> tuple[dict, dict]:
        """Headers and JSON body of a streamed chat completion request."""
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {endpoint.key}",
        }
        payload = {
            "model": StreamingChatClient.resolve_model(endpoint),
            "stream": True,
            "messages": messages,
        }
        return headers, payload

    @staticmethod
    def describe_error(error: Optional[Exception]) -> str:
        """Short diagnostic line written to the sink for a failed call."""
        if isinstance(error, ConfigurationError):
            return CONFIG_ERROR_MESSAGE
        if isinstance(error, TransportError) and error.status_code is not None:
            return TRANSPORT_ERROR_MESSAGE.format(status=error.status_code)
        return NETWORK_ERROR_MESSAGE.format(error=error)

    async def stream_chat(
        self,
        session: Session,
        endpoint: Optional[ApiEndpoint],
        first_turn: bool = False,
        default_template: Optional[str] = None,
        question: Optional[str] = None
    ) -> AsyncIterator[StreamEvent]:
        """Stream one turn of the session.

        Args:
            session: Session owning the message history
            endpoint: Endpoint to call, None when nothing is configured
            first_turn: Resolve the session template into a new user message
            default_template: Configured template used when the session has none
            question: Follow-up question sent after the history

        The new user message (resolved prompt or question) joins the history
        only once the endpoint accepts the request.

        Yields:
            `delta` events in arrival order, then exactly one terminal event
            (`done`, `aborted` or `failed`)

        Raises:
            SessionBusyError: a previous turn of this session is still streaming
        """
        if session.busy:
            raise SessionBusyError(f"Session {session.id} already has a request in flight")

        log = call_logger(session.id, endpoint.name if endpoint else None)
        if endpoint is None or not endpoint.is_configured:
            log.error("Endpoint is missing its url or key, request not sent")
            session.last_state = CallState.FAILED
            yield StreamEvent(
                type=StreamEventType.FAILED,
                error=ConfigurationError("API configuration incomplete: url and key are required")
            )
            return

        session.busy = True
        session.touch()
        try:
            async for event in self._exchange(session, endpoint, first_turn, default_template, question, log):
                yield event
        finally:
            session.busy = False
            session.touch()
            # a cancel only covers the turn it reached; a closed session stays cancelled
            if not session.closed:
                session.abort_event.clear()

    async def _exchange(
        self,
        session: Session,
        endpoint: ApiEndpoint,
        first_turn: bool,
        default_template: Optional[str],
        question: Optional[str],
        log: CallLogger
    ) -> AsyncIterator[StreamEvent]:
        user_message = question
        if first_turn:
            user_message = TemplateResolver.build_prompt(
                session.selection, session.context, session.template, default_template
            )
        messages = session.payload()
        if user_message is not None:
            messages.append({"role": "user", "content": user_message})

        session.last_state = CallState.REQUESTING

        if await self._respect_request_interval(endpoint, session.abort_event, log):
            yield self._abort(session, log, "", sent=False)
            return

        headers, payload = self.build_request(endpoint, messages)
        request = self.http_client.build_request("POST", endpoint.url, headers=headers, json=payload)
        log.info(f"Sending request: model={payload['model']} messages={len(messages)}")

        parser = SSEStreamParser()
        started = time.monotonic()
        try:
            response = await self._race(self.http_client.send(request, stream=True), session.abort_event)
        except AbortedByUser:
            yield self._abort(session, log, "", sent=False)
            return
        except httpx.HTTPError as e:
            yield self._transport_failure(session, log, e)
            return

        try:
            if not response.is_success or response.status_code == 204:
                log.error(f"Request failed with HTTP {response.status_code}")
                session.last_state = CallState.FAILED
                yield StreamEvent(
                    type=StreamEventType.FAILED,
                    error=TransportError(f"HTTP error: {response.status_code}", status_code=response.status_code)
                )
                return

            if user_message is not None:
                session.add_user_message(user_message)
            session.last_state = CallState.STREAMING

            chunks = response.aiter_bytes()
            while not parser.done:
                try:
                    chunk = await self._race(self._read(chunks), session.abort_event)
                except AbortedByUser:
                    yield self._abort(session, log, parser.answer)
                    return

                if chunk is None:
                    for delta in parser.finish():
                        yield StreamEvent(type=StreamEventType.DELTA, content=delta)
                    log.info("Stream closed without [DONE], keeping accumulated answer")
                    break

                for delta in parser.feed(chunk):
                    yield StreamEvent(type=StreamEventType.DELTA, content=delta)

        except httpx.HTTPError as e:
            yield self._transport_failure(session, log, e)
            return
        finally:
            await response.aclose()

        session.add_assistant_message(parser.answer)
        session.last_state = CallState.COMPLETED
        log.info(
            f"Stream completed in {time.monotonic() - started:.2f}s: "
            f"{parser.state.records} records, {parser.state.malformed} skipped, {len(parser.answer)} chars"
        )
        yield StreamEvent(type=StreamEventType.DONE, content=parser.answer)

    @staticmethod
    def _transport_failure(session: Session, log: CallLogger, error: httpx.HTTPError) -> StreamEvent:
        log.error(f"Transport error: {error}")
        session.last_state = CallState.FAILED
        return StreamEvent(type=StreamEventType.FAILED, error=TransportError(str(error) or type(error).__name__))

    @staticmethod
    def _abort(session: Session, log: CallLogger, partial: str, sent: bool = True) -> StreamEvent:
        """Commit a non-empty partial answer, tagged as aborted."""
        if partial:
            session.add_assistant_message(partial, aborted=True)
        session.last_state = CallState.ABORTED
        if sent:
            log.info(f"Stream aborted by user after {len(partial)} chars")
        else:
            log.info("Request cancelled before a response arrived")
        return StreamEvent(type=StreamEventType.ABORTED, content=partial)

    @staticmethod
    async def _read(chunks: AsyncIterator[bytes]) -> Optional[bytes]:
        """Next body chunk, None at end of body."""
        try:
            return await chunks.__anext__()
        except StopAsyncIteration:
            return None

    @staticmethod
    async def _race(operation: Awaitable, abort_event: asyncio.Event):
        """
        Await `operation` unless the abort signal fires first.
        Raises AbortedByUser as soon as it does; the operation is cancelled.
        """
        if abort_event.is_set():
            if inspect.iscoroutine(operation):
                operation.close()
            raise AbortedByUser("Request cancelled by user")

        pending = asyncio.ensure_future(operation)
        aborted = asyncio.ensure_future(abort_event.wait())
        try:
            done, _ = await asyncio.wait({pending, aborted}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            pending.cancel()
            raise
        finally:
            aborted.cancel()

        if pending in done:
            return pending.result()

        pending.cancel()
        await asyncio.wait({pending})
        if not pending.cancelled():
            if pending.exception() is not None:
                app_logger.debug(f"Pending operation ended with {pending.exception()!r} after abort")
            elif isinstance(pending.result(), httpx.Response):
                # headers arrived while the abort was being handled
                await pending.result().aclose()
        raise AbortedByUser("Request cancelled by user")

    async def _respect_request_interval(
        self,
        endpoint: ApiEndpoint,
        abort_event: asyncio.Event,
        log: CallLogger
    ) -> bool:
        """Sleep until min_request_interval has passed since the last request. Returns True if aborted."""
        interval = endpoint.min_request_interval
        last = self._last_request_at.get(endpoint.url)
        now = time.monotonic()

        delay = 0.0
        if interval > 0 and last is not None:
            delay = max(0.0, interval - (now - last))

        if delay > 0:
            log.info(f"Waiting {delay:.2f}s before request")
            try:
                await asyncio.wait_for(abort_event.wait(), timeout=delay)
                return True
            except asyncio.TimeoutError:
                pass

        if abort_event.is_set():
            return True

        self._last_request_at[endpoint.url] = time.monotonic()
        return False

    async def ask(
        self,
        session: Session,
        endpoint: Optional[ApiEndpoint],
        sink: Callable[[str], object],
        first_turn: Optional[bool] = None,
        default_template: Optional[str] = None,
        question: Optional[str] = None
    ) -> StreamEvent:
        """
        Run one turn, pushing every delta to `sink` and a diagnostic line on failure.
        `sink` may be a plain function or a coroutine function.

        Returns:
            The terminal event of the call
        """
        if first_turn is None:
            first_turn = question is None and session.is_first_turn

        terminal = StreamEvent(type=StreamEventType.DONE)
        async for event in self.stream_chat(session, endpoint, first_turn, default_template, question):
            if event.type == StreamEventType.DELTA:
                await self._emit(sink, event.content)
                continue
            if event.type == StreamEventType.FAILED:
                await self._emit(sink, self.describe_error(event.error))
            terminal = event

        return terminal

    @staticmethod
    async def _emit(sink: Callable[[str], object], text: str) -> None:
        result = sink(text)
        if inspect.isawaitable(result):
            await result


_chat_client = StreamingChatClient()


def get_chat_client() -> StreamingChatClient:
    """Get the global chat client, which remembers per-endpoint request times."""
    return _chat_client
