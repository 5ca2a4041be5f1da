"""Shared helpers for building gateway streams in tests."""

import json
import os
from collections.abc import AsyncIterator, Callable

import httpx

from app.domains.chat.gateway import InferenceGateway

GATEWAY_URL = os.environ.get("AI_GATEWAY_URL", "http://gateway.test/v1/chat/completions")
TEST_USER_ID = "user_2mindmesh_test"


def delta_frame(content: str) -> str:
    """One SSE frame carrying ``content`` as a completion delta."""
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]}, ensure_ascii=False) + "\n\n"


def sse_body(*deltas: str, done: bool = True) -> bytes:
    body = "".join(delta_frame(d) for d in deltas)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode("utf-8")


async def iterate(chunks: list[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


def streaming_response(chunks: list[bytes], status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        headers={"content-type": "text/event-stream"},
        content=iterate(chunks),
    )


class RecordingHandler:
    """httpx MockTransport handler that records request bodies."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]):
        self.respond = respond
        self.requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        return self.respond(request)


def make_gateway(
    respond: Callable[[httpx.Request], httpx.Response], **kwargs
) -> tuple[InferenceGateway, RecordingHandler]:
    handler = RecordingHandler(respond)
    gateway = InferenceGateway(url=GATEWAY_URL, transport=httpx.MockTransport(handler), **kwargs)
    return gateway, handler


def stream_of(*deltas: str, done: bool = True) -> Callable[[httpx.Request], httpx.Response]:
    """Gateway responder streaming ``deltas`` one frame per chunk."""
    frames = [delta_frame(d).encode() for d in deltas]
    if done:
        frames.append(b"data: [DONE]\n\n")
    return lambda _request: streaming_response(frames)


def error_response(status_code: int, body: dict | None = None, headers: dict | None = None):
    """Gateway responder failing with ``status_code``."""
    return lambda _request: httpx.Response(status_code, json=body or {}, headers=headers)
