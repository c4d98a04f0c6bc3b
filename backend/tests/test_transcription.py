import base64

import pytest
from unittest.mock import AsyncMock, MagicMock

from misspeak.errors import RemoteEngineError, TranscriptionFailed
from misspeak.transcription import (
    ReplicateTranscriber,
    extract_text,
    join_segments,
    wav_data_uri,
)


def test_join_segments_uses_single_spaces():
    assert join_segments([{"text": "a"}, {"text": "b"}, {"text": "c"}]) == "a b c"


def test_join_segments_strips_whisper_leading_spaces():
    segments = [{"text": " Hello there."}, {"text": " How are you?"}]
    assert join_segments(segments) == "Hello there. How are you?"


def test_no_segments_is_empty_text():
    assert join_segments([]) == ""
    assert extract_text({"segments": [], "transcription": ""}) == ""


def test_extract_text_falls_back_to_transcription_field():
    assert extract_text({"transcription": " plain text "}) == "plain text"


@pytest.mark.parametrize("output", [None, "text", {"segments": "nope"}, {"segments": ["a"]}, {"detected_language": "en"}])
def test_extract_text_rejects_malformed_output(output):
    with pytest.raises(TranscriptionFailed):
        extract_text(output)


def test_wav_data_uri_round_trips():
    uri = wav_data_uri(b"RIFF1234")
    prefix = "data:audio/wav;base64,"
    assert uri.startswith(prefix)
    assert base64.b64decode(uri[len(prefix):]) == b"RIFF1234"


@pytest.mark.asyncio
async def test_transcribe_sends_inline_audio():
    client = MagicMock()
    client.predict = AsyncMock(return_value={"segments": [{"text": " the sky"}, {"text": " is blue"}]})
    transcriber = ReplicateTranscriber(client, "openai/whisper:v1", language="en", timeout=5.0)

    text = await transcriber.transcribe(b"RIFFdata")

    assert text == "the sky is blue"
    model, payload = client.predict.call_args[0]
    assert model == "openai/whisper:v1"
    assert payload["audio"] == wav_data_uri(b"RIFFdata")
    assert payload["language"] == "en"
    assert client.predict.call_args[1]["timeout"] == 5.0


@pytest.mark.asyncio
async def test_transcribe_url_passes_reference_and_omits_auto_language():
    client = MagicMock()
    client.predict = AsyncMock(return_value={"segments": []})
    transcriber = ReplicateTranscriber(client, "openai/whisper", language="auto")

    assert await transcriber.transcribe_url("https://cdn.test/a.mp3") == ""
    payload = client.predict.call_args[0][1]
    assert payload["audio"] == "https://cdn.test/a.mp3"
    assert "language" not in payload


@pytest.mark.asyncio
async def test_remote_failure_maps_to_transcription_failed():
    client = MagicMock()
    client.predict = AsyncMock(side_effect=RemoteEngineError("Model API returned 500", 500))
    transcriber = ReplicateTranscriber(client, "openai/whisper")

    with pytest.raises(TranscriptionFailed, match="500"):
        await transcriber.transcribe(b"RIFF")
