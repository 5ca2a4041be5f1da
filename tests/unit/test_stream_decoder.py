"""Unit tests for the incremental stream decoder."""

import asyncio
import json

import pytest

from app.domains.chat.stream import StreamDecoder, extract_delta, iter_deltas
from tests.helpers import delta_frame, iterate, sse_body


def feed_all(decoder: StreamDecoder, chunks: list[bytes]) -> list[str]:
    deltas = []
    for chunk in chunks:
        deltas.extend(decoder.feed(chunk))
    deltas.extend(decoder.finish())
    return deltas


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


class TestStreamDecoder:
    """Test cases for StreamDecoder."""

    def test_deltas_in_order_for_any_chunk_size(self):
        """Deltas come out once each, in order, however the body is chunked."""
        deltas = ["Your", " focus", " trend", " is", " improving", "."]
        body = sse_body(*deltas)

        for size in range(1, len(body) + 1):
            received = feed_all(StreamDecoder(), split_every(body, size))
            assert received == deltas, f"chunk size {size}"
            assert "".join(received) == "Your focus trend is improving."

    def test_frame_split_at_every_offset(self):
        """A single frame split in two still yields exactly one delta."""
        frame = delta_frame("Hello, Ana").encode()

        for offset in range(1, len(frame)):
            decoder = StreamDecoder()
            first = decoder.feed(frame[:offset])
            second = decoder.feed(frame[offset:])
            assert first + second == ["Hello, Ana"], f"offset {offset}"
            assert decoder.malformed_frames == 0

    def test_done_stops_processing_rest_of_chunk(self):
        """Frames after [DONE] in the same chunk are ignored."""
        body = sse_body("one") + delta_frame("ignored").encode()
        decoder = StreamDecoder()

        assert decoder.feed(body) == ["one"]
        assert decoder.done is True
        assert decoder.feed(delta_frame("later").encode()) == []
        assert decoder.finish() == []

    def test_skips_comments_blank_and_foreign_lines(self):
        """Heartbeats, blank lines and non-data fields produce nothing."""
        body = (
            ": keep-alive\n"
            "\n"
            "event: message\n"
            "id: 42\n"
            "data:{\"choices\":[{\"delta\":{\"content\":\"no space\"}}]}\n"
            + delta_frame("kept")
            + "data: [DONE]\n"
        ).encode()

        assert feed_all(StreamDecoder(), [body]) == ["kept"]

    def test_strips_carriage_returns(self):
        """CRLF line endings are handled like LF."""
        body = (delta_frame("a") + delta_frame("b") + "data: [DONE]\n\n").replace("\n", "\r\n").encode()

        decoder = StreamDecoder()
        assert decoder.feed(body) == ["a", "b"]
        assert decoder.done is True

    def test_frames_without_content_are_ignored(self):
        """Role-only and empty deltas do not produce output."""
        body = (
            'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n'
            'data: {"choices":[{"delta":{"content":""}}]}\n\n'
            'data: {"choices":[]}\n\n'
            "data: 42\n\n"
            + delta_frame("text")
        ).encode()

        assert feed_all(StreamDecoder(), [body]) == ["text"]

    def test_multibyte_character_split_across_chunks(self):
        """UTF-8 sequences broken between chunks are reassembled."""
        body = sse_body("calme 🧘 ok")
        emoji_start = body.index("🧘".encode())

        chunks = [body[:emoji_start + 2], body[emoji_start + 2:]]
        assert feed_all(StreamDecoder(), chunks) == ["calme 🧘 ok"]

    def test_malformed_frame_dropped_without_holding_back_rest_of_chunk(self):
        """Frames after a bad line in the same chunk, [DONE] included, are processed at once."""
        decoder = StreamDecoder()

        received = decoder.feed(b"data: {not json}\n\n" + delta_frame("kept").encode() + b"data: [DONE]\n\n")

        assert received == ["kept"]
        assert decoder.malformed_frames == 1
        assert decoder.done is True

    def test_unterminated_malformed_line_dropped_at_end_of_input(self):
        """A broken last line is only judged once input ends."""
        decoder = StreamDecoder()

        assert decoder.feed(delta_frame("before").encode() + b"data: {broken") == ["before"]
        assert decoder.malformed_frames == 0
        assert decoder.finish() == []
        assert decoder.malformed_frames == 1

    def test_oversized_malformed_line_dropped_immediately(self):
        """Lines over the limit are not kept around waiting for more data."""
        decoder = StreamDecoder(max_line_length=64)
        junk = "data: " + "x" * 100 + "\n"

        assert decoder.feed((junk + delta_frame("fine")).encode()) == ["fine"]
        assert decoder.malformed_frames == 1

    def test_oversized_unterminated_tail_discarded(self):
        """A runaway line without a newline is dropped and decoding resumes after it."""
        decoder = StreamDecoder(max_line_length=64)

        assert decoder.feed(b"data: " + b"y" * 100) == []
        assert decoder.malformed_frames == 1
        assert decoder.feed(b"still the same line\n" + delta_frame("resumed").encode()) == ["resumed"]

    def test_unterminated_final_line_processed_on_finish(self):
        """A last frame missing its newline is still delivered at end of input."""
        decoder = StreamDecoder()
        frame = delta_frame("tail").rstrip("\n").encode()

        assert decoder.feed(frame) == []
        assert decoder.finish() == ["tail"]

    def test_end_of_input_without_done(self):
        """Input that ends without the sentinel keeps what was decoded."""
        decoder = StreamDecoder()
        assert feed_all(decoder, [sse_body("partial", " answer", done=False)]) == ["partial", " answer"]
        assert decoder.done is False


class TestExtractDelta:
    """Test cases for extract_delta."""

    @pytest.mark.parametrize(
        "frame",
        [
            None,
            [],
            "text",
            {},
            {"choices": None},
            {"choices": [None]},
            {"choices": [{"delta": "text"}]},
            {"choices": [{"delta": {"content": 5}}]},
            {"choices": [{"delta": {"content": ""}}]},
        ],
    )
    def test_missing_or_invalid_content(self, frame):
        assert extract_delta(frame) is None

    def test_first_choice_content(self):
        frame = json.loads('{"choices":[{"delta":{"content":"a"}},{"delta":{"content":"b"}}]}')
        assert extract_delta(frame) == "a"


@pytest.mark.asyncio
class TestIterDeltas:
    """Test cases for the async delta iterator."""

    async def test_yields_in_order_and_stops_at_done(self):
        consumed = []

        async def chunks():
            for chunk in [sse_body("a", done=False), sse_body("b"), delta_frame("never").encode()]:
                consumed.append(chunk)
                yield chunk

        received = [d async for d in iter_deltas(chunks())]

        assert received == ["a", "b"]
        assert len(consumed) == 2

    async def test_cancel_event_checked_at_chunk_boundary(self):
        cancel = asyncio.Event()
        received = []

        async for delta in iter_deltas(iterate([sse_body("a", done=False), sse_body("b")]), cancel_event=cancel):
            received.append(delta)
            cancel.set()

        assert received == ["a"]

    async def test_good_frame_after_bad_one_delivered_while_source_idles(self):
        async def chunks():
            yield b"data: {not json\n\n" + delta_frame("Hi").encode()
            await asyncio.sleep(3600)

        deltas = iter_deltas(chunks())
        try:
            first = await asyncio.wait_for(deltas.__anext__(), timeout=1)
        finally:
            await deltas.aclose()

        assert first == "Hi"

    async def test_flushes_trailing_line_at_end_of_input(self):
        chunks = [delta_frame("x").encode(), delta_frame("y").rstrip("\n").encode()]
        assert [d async for d in iter_deltas(iterate(chunks))] == ["x", "y"]
