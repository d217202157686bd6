import re

import httpx
import pytest

from config.config import RecognitionSettings
from services.recognizer import ACRCloudRecognizer, sign_request
from utils.exceptions import (
    MalformedResponseError,
    NoMatchError,
    PayloadSizeError,
    RecognitionAuthError,
    RecognitionError,
    RecognitionTimeoutError,
)

AUDIO = b"\x01" * 2048

MATCH_BODY = {
    "status": {"code": 0, "msg": "Success"},
    "metadata": {
        "music": [
            {
                "title": "Midnight City",
                "artists": [{"name": "M83"}],
                "album": {"name": "Hurry Up, We're Dreaming"},
                "genres": [{"name": "Electronic"}],
                "release_date": "2011-10-18",
                "duration_ms": 243000,
                "score": 0.97,
                "acrid": "abc123",
                "external_ids": {"isrc": "FRZ111100001"},
                "external_metadata": {"spotify": {"track": {"id": "sp-1"}}},
            }
        ]
    },
}


def _settings(**overrides):
    values = dict(
        host="identify.example.com",
        access_key="key",
        access_secret="secret",
        concurrency=5,
        batch_delay_ms=0,
        timeout=10,
        min_bytes=1000,
        max_bytes=1024 * 1024,
    )
    values.update(overrides)
    return RecognitionSettings(**values)


def _recognizer(handler, **overrides):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ACRCloudRecognizer(_settings(**overrides), client=client)


def _status(code, msg="error"):
    return lambda request: httpx.Response(200, json={"status": {"code": code, "msg": msg}})


@pytest.mark.anyio
async def test_match_is_parsed_and_request_is_signed():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["body"] = request.content
        return httpx.Response(200, json=MATCH_BODY)

    recognizer = _recognizer(handler)
    match = await recognizer.identify(AUDIO)
    await recognizer.close()

    assert seen["url"] == "https://identify.example.com/v1/identify"
    timestamp = re.search(rb'name="timestamp"\r\n\r\n(\d+)', seen["body"]).group(1).decode()
    assert sign_request("key", "secret", timestamp).encode() in seen["body"]
    assert b'name="sample"' in seen["body"]
    assert b'name="sample_bytes"\r\n\r\n2048' in seen["body"]

    assert match.title == "Midnight City"
    assert match.artist == "M83"
    assert match.album == "Hurry Up, We're Dreaming"
    assert match.genre == "Electronic"
    assert match.duration_seconds == 243
    assert match.confidence == 97
    assert match.acrcloud_id == "abc123"
    assert match.external_ids == {"spotify": "sp-1", "isrc": "FRZ111100001"}


def test_signature_is_base64_sha1():
    signature = sign_request("key", "secret", "1700000000")

    assert len(signature) == 28
    assert signature == sign_request("key", "secret", "1700000000")
    assert signature != sign_request("key", "secret", "1700000001")


@pytest.mark.anyio
@pytest.mark.parametrize(
    "code,error",
    [
        (1001, NoMatchError),
        (3001, NoMatchError),
        (2001, RecognitionAuthError),
        (3003, RecognitionError),
    ],
)
async def test_status_codes_map_to_errors(code, error):
    with pytest.raises(error):
        await _recognizer(_status(code)).identify(AUDIO)


@pytest.mark.anyio
async def test_success_without_music_is_no_match():
    def handler(request):
        return httpx.Response(200, json={"status": {"code": 0}, "metadata": {"music": []}})

    with pytest.raises(NoMatchError):
        await _recognizer(handler).identify(AUDIO)


@pytest.mark.anyio
async def test_missing_credentials_skip_the_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=MATCH_BODY)

    with pytest.raises(RecognitionAuthError):
        await _recognizer(handler, access_key="", access_secret="").identify(AUDIO)
    assert calls == []


@pytest.mark.anyio
@pytest.mark.parametrize("audio", [b"", b"x" * 999, b"x" * (1024 * 1024 + 1)])
async def test_payload_size_is_enforced(audio):
    with pytest.raises(PayloadSizeError):
        await _recognizer(lambda request: httpx.Response(200, json=MATCH_BODY)).identify(audio)


@pytest.mark.anyio
async def test_timeout_maps_to_recognition_timeout():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(RecognitionTimeoutError):
        await _recognizer(handler).identify(AUDIO)


@pytest.mark.anyio
async def test_invalid_json_is_malformed():
    with pytest.raises(MalformedResponseError):
        await _recognizer(lambda request: httpx.Response(200, text="<html>")).identify(AUDIO)


@pytest.mark.anyio
async def test_response_without_status_is_malformed():
    with pytest.raises(MalformedResponseError):
        await _recognizer(lambda request: httpx.Response(200, json={"ok": True})).identify(AUDIO)


@pytest.mark.anyio
async def test_http_errors_map_to_recognition_errors():
    with pytest.raises(RecognitionAuthError):
        await _recognizer(lambda request: httpx.Response(403)).identify(AUDIO)
    with pytest.raises(RecognitionError):
        await _recognizer(lambda request: httpx.Response(502)).identify(AUDIO)


def _music_reply(**entry):
    music = {"title": "T", **entry}
    return lambda request: httpx.Response(
        200, json={"status": {"code": 0}, "metadata": {"music": [music]}}
    )


@pytest.mark.anyio
@pytest.mark.parametrize(
    "field,value",
    [
        ("album", "just-a-string"),
        ("external_ids", ["isrc"]),
        ("external_metadata", "spotify"),
        ("genres", {"name": "Rock"}),
        ("artists", "M83"),
    ],
)
async def test_wrongly_shaped_music_fields_are_malformed(field, value):
    with pytest.raises(MalformedResponseError):
        await _recognizer(_music_reply(**{field: value})).identify(AUDIO)


@pytest.mark.anyio
async def test_metadata_that_is_not_an_object_is_malformed():
    def handler(request):
        return httpx.Response(200, json={"status": {"code": 0}, "metadata": "none"})

    with pytest.raises(MalformedResponseError):
        await _recognizer(handler).identify(AUDIO)


@pytest.mark.anyio
async def test_sparse_music_entry_uses_defaults():
    match = await _recognizer(_music_reply(title=None)).identify(AUDIO)

    assert match.title == "Unknown"
    assert match.artist == "Unknown Artist"
    assert match.album is None
    assert match.external_ids == {"spotify": None, "isrc": None}
