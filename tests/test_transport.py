import asyncio
import json

import httpx
import pytest

from livesite.config import Settings
from livesite.exceptions import TransportError
from livesite.stream.transport import (
    DoneSentinel,
    GenerationRequest,
    HttpGenerationTransport,
    SSELineDecoder,
    StatusUpdate,
    TextFragment,
    decode_lines,
    parse_stream_line,
)


def test_parse_stream_line_variants():
    assert parse_stream_line('data: {"text": "<h1>"}') == TextFragment("<h1>")
    assert isinstance(parse_stream_line("data: [DONE]"), DoneSentinel)

    status = parse_stream_line('data: {"status": "error", "message": "quota"}')
    assert isinstance(status, StatusUpdate)
    assert status.status == "error"
    assert status.data["message"] == "quota"

    assert parse_stream_line("") is None
    assert parse_stream_line(": keep-alive") is None
    assert parse_stream_line("data: {not json") is None
    assert parse_stream_line("data: [1, 2]") is None
    assert parse_stream_line('data: {"text": ""}') is None


def test_line_decoder_handles_split_lines_and_utf8():
    decoder = SSELineDecoder()
    encoded = 'data: {"text": "café"}\n'.encode("utf-8")
    split_at = encoded.index(b"\xc3") + 1

    assert decoder.feed(encoded[:split_at]) == []
    lines = decoder.feed(encoded[split_at:] + b"data: [DO")
    assert lines == ['data: {"text": "café"}']
    assert decoder.feed(b"NE]\r\n") == ["data: [DONE]"]
    assert decoder.flush() == []


def test_line_decoder_flushes_unterminated_tail():
    decoder = SSELineDecoder()
    assert decoder.feed("data: [DONE]") == []
    assert decoder.flush() == ["data: [DONE]"]


def test_decode_lines_skips_noise():
    events = decode_lines(["", 'data: {"text": "a"}', "event: ping", "data: [DONE]"])
    assert events == [TextFragment("a"), DoneSentinel()]


def test_generation_request_uses_wire_names():
    request = GenerationRequest(prompt="Bakery site", partial_code="<p>x</p>", page_name="landing")
    payload = request.to_payload()
    assert payload == {
        "prompt": "Bakery site",
        "partialCode": "<p>x</p>",
        "pageName": "landing",
        "resume": False,
    }


async def _collect(transport, request):
    return [event async for event in transport.stream(request)]


def test_http_transport_streams_events():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        body = 'data: {"text": "<h1>Hi"}\n\ndata: {"text": "</h1>"}\n\ndata: [DONE]\n\n'
        return httpx.Response(200, content=body.encode("utf-8"))

    async def run():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transport = HttpGenerationTransport(settings=Settings(), url="http://gen.test/api/generate", client=client)
        try:
            return await _collect(transport, GenerationRequest(prompt="hello there"))
        finally:
            await client.aclose()

    events = asyncio.run(run())
    assert events == [TextFragment("<h1>Hi"), TextFragment("</h1>"), DoneSentinel()]
    assert seen["body"]["prompt"] == "hello there"


def test_http_transport_maps_rate_limit():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": "slow down"})

    async def run():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transport = HttpGenerationTransport(settings=Settings(), url="http://gen.test/api/generate", client=client)
        try:
            await _collect(transport, GenerationRequest(prompt="hello there"))
        finally:
            await client.aclose()

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(run())
    assert excinfo.value.status_code == 429
    assert "Rate limit exceeded" in str(excinfo.value)


def test_http_transport_wraps_connection_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async def run():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transport = HttpGenerationTransport(settings=Settings(), url="http://gen.test/api/generate", client=client)
        try:
            await _collect(transport, GenerationRequest(prompt="hello there"))
        finally:
            await client.aclose()

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(run())
    assert "Generation connection failed" in str(excinfo.value)
