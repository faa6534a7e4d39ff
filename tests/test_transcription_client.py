import json

import httpx
import pytest

from transcribe_worker.jobs.errors import TranscriptionError
from transcribe_worker.transcribe import (
    TranscriptionClient,
    format_srt_time,
    format_vtt_time,
    to_srt,
    to_vtt,
)

AUDIO_URL = "https://media.example/a.mp3"
VERBOSE = {
    "text": "Hello world. Bye.",
    "language": "english",
    "duration": 4.5,
    "segments": [
        {"id": 0, "start": 0.0, "end": 2.0, "text": " Hello world."},
        {"id": 1, "start": 2.0, "end": 4.5, "text": " Bye."},
    ],
}


class Recorder:
    def __init__(self, api_status=200, api_json=None, audio_status=200):
        self.api_status = api_status
        self.api_json = VERBOSE if api_json is None else api_json
        self.audio_status = audio_status
        self.requests = []

    def __call__(self, request):
        request.read()
        self.requests.append(request)
        if request.method == "GET":
            return httpx.Response(self.audio_status, content=b"ID3-audio-bytes")
        if self.api_status >= 400:
            return httpx.Response(self.api_status, text="internal failure")
        return httpx.Response(200, json=self.api_json)

    @property
    def post(self):
        return next(r for r in self.requests if r.method == "POST")


def make_client(recorder):
    return TranscriptionClient(
        "secret-key",
        "https://speech.example/",
        "2024-06-01",
        http_client=httpx.Client(transport=httpx.MockTransport(recorder)),
    )


def test_request_shape():
    recorder = Recorder()
    client = make_client(recorder)

    client.transcribe_from_url(AUDIO_URL, language="en", timestamps=True, word_timestamps=True)

    get, post = recorder.requests
    assert str(get.url) == AUDIO_URL
    assert post.url.path == "/openai/deployments/whisper-1/audio/transcriptions"
    assert post.url.params["api-version"] == "2024-06-01"
    assert post.headers["api-key"] == "secret-key"
    body = post.content
    assert b'name="model"' in body and b"whisper-1" in body
    assert b'name="response_format"' in body and b"verbose_json" in body
    assert b'name="language"' in body
    assert body.count(b'name="timestamp_granularities[]"') == 2
    assert b'filename="audio.mp3"' in body
    assert b"ID3-audio-bytes" in body


def test_auto_language_and_no_timestamps_are_omitted():
    recorder = Recorder()

    make_client(recorder).transcribe_from_url(AUDIO_URL, language="auto", timestamps=False)

    body = recorder.post.content
    assert b'name="language"' not in body
    assert b"timestamp_granularities" not in body


def test_segment_granularity_only_by_default():
    recorder = Recorder()

    make_client(recorder).transcribe_from_url(AUDIO_URL)

    body = recorder.post.content
    assert body.count(b'name="timestamp_granularities[]"') == 1
    assert b"segment" in body


def test_result_is_normalized():
    result = make_client(Recorder()).transcribe_from_url(AUDIO_URL)

    assert result["text"] == "Hello world. Bye."
    assert result["duration"] == 4.5
    assert result["segments"] == [
        {"start": 0.0, "end": 2.0, "text": " Hello world."},
        {"start": 2.0, "end": 4.5, "text": " Bye."},
    ]
    assert "srt" not in result and "vtt" not in result


def test_srt_output():
    result = make_client(Recorder()).transcribe_from_url(AUDIO_URL, format="srt")

    assert result["srt"] == (
        "1\n00:00:00,000 --> 00:00:02,000\nHello world.\n"
        "\n"
        "2\n00:00:02,000 --> 00:00:04,500\nBye.\n"
    )


def test_vtt_output():
    result = make_client(Recorder()).transcribe_from_url(AUDIO_URL, format="vtt")

    assert result["vtt"].startswith("WEBVTT\n\n00:00:00.000 --> 00:00:02.000\nHello world.\n")
    assert "00:00:02.000 --> 00:00:04.500\nBye." in result["vtt"]


def test_json_output():
    result = make_client(Recorder()).transcribe_from_url(AUDIO_URL, format="json")

    assert json.loads(result["json"]) == [
        {"start": 0.0, "end": 2.0, "text": " Hello world."},
        {"start": 2.0, "end": 4.5, "text": " Bye."},
    ]
    assert "srt" not in result and "vtt" not in result


def test_api_error_carries_status():
    with pytest.raises(TranscriptionError) as excinfo:
        make_client(Recorder(api_status=500)).transcribe_from_url(AUDIO_URL)

    assert excinfo.value.status_code == 500
    assert "Transcription API error: 500" in str(excinfo.value)
    assert "internal failure" in str(excinfo.value)


def test_audio_fetch_error():
    recorder = Recorder(audio_status=404)

    with pytest.raises(TranscriptionError, match="Failed to fetch audio: 404"):
        make_client(recorder).transcribe_from_url(AUDIO_URL)

    assert [r.method for r in recorder.requests] == ["GET"]


def test_invalid_json_response():
    def handler(request):
        if request.method == "GET":
            return httpx.Response(200, content=b"audio")
        return httpx.Response(200, content=b"not json")

    client = TranscriptionClient(
        "k", "https://speech.example", "v", http_client=httpx.Client(transport=httpx.MockTransport(handler))
    )

    with pytest.raises(TranscriptionError, match="parse"):
        client.transcribe_from_url(AUDIO_URL)


@pytest.mark.parametrize(
    ("seconds", "srt", "vtt"),
    [
        (0, "00:00:00,000", "00:00:00.000"),
        (1.5, "00:00:01,500", "00:00:01.500"),
        (61.25, "00:01:01,250", "00:01:01.250"),
        (3723.004, "01:02:03,004", "01:02:03.004"),
    ],
)
def test_time_formatting(seconds, srt, vtt):
    assert format_srt_time(seconds) == srt
    assert format_vtt_time(seconds) == vtt


def test_empty_segments_render_headers_only():
    assert to_srt([]) == ""
    assert to_vtt([]) == "WEBVTT\n\n"
