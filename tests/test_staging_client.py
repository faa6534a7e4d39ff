import itertools
import json

import httpx
import pytest

from transcribe_worker.jobs.errors import StagingError
from transcribe_worker.media import MediaStagingClient

BASE = "https://api.cloudflare.com/client/v4/accounts/acct-1/stream"


def make_client(handler, **kwargs):
    kwargs.setdefault("sleep", lambda _seconds: None)
    return MediaStagingClient(
        "acct-1",
        "stream-token",
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


def status_sequence(*states):
    calls = []
    states = list(states)

    def handler(request):
        calls.append(request)
        state = states.pop(0) if len(states) > 1 else states[0]
        status = {"state": state}
        if state == "error":
            status["errorReasonText"] = "Unsupported codec"
        return httpx.Response(200, json={"success": True, "result": {"uid": "vid-1", "status": status}})

    return handler, calls


def test_upload_sends_copy_request():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"success": True, "result": {"uid": "vid-1"}})

    result = make_client(handler).upload_video_from_url(
        "https://x/v.mp4", name="Transcription Job j2", job_id="j2"
    )

    assert result["uid"] == "vid-1"
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == f"{BASE}/copy"
    assert request.headers["Authorization"] == "Bearer stream-token"
    body = json.loads(request.content)
    assert body["url"] == "https://x/v.mp4"
    assert body["meta"] == {"name": "Transcription Job j2", "jobId": "j2"}


def test_upload_without_uid_fails():
    client = make_client(lambda request: httpx.Response(200, json={"success": True, "result": {}}))

    with pytest.raises(StagingError, match="uid"):
        client.upload_video_from_url("https://x/v.mp4")


def test_api_error_uses_first_error_message():
    def handler(request):
        return httpx.Response(400, json={"success": False, "errors": [{"code": 10005, "message": "Invalid URL"}]})

    with pytest.raises(StagingError, match="Stream API error: Invalid URL") as excinfo:
        make_client(handler).upload_video_from_url("not-a-url")

    assert excinfo.value.status_code == 400


def test_transport_error_is_wrapped():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(StagingError, match="request failed"):
        make_client(handler).get_video_status("vid-1")


def test_wait_for_processing_polls_until_ready():
    handler, calls = status_sequence("queued", "inprogress", "ready")
    sleeps = []

    result = make_client(handler, sleep=sleeps.append, poll_interval=5).wait_for_processing("vid-1")

    assert result == {"uid": "vid-1", "status": {"state": "ready"}}
    assert len(calls) == 3
    assert sleeps == [5, 5]
    assert str(calls[0].url) == f"{BASE}/vid-1"


def test_wait_for_processing_reports_error_state():
    handler, _calls = status_sequence("inprogress", "error")

    with pytest.raises(StagingError, match="Video processing failed: Unsupported codec"):
        make_client(handler).wait_for_processing("vid-1")


def test_wait_for_processing_times_out():
    handler, calls = status_sequence("inprogress")
    clock = itertools.count(0, 10).__next__

    with pytest.raises(StagingError, match="timeout after 30s"):
        make_client(handler, clock=clock).wait_for_processing("vid-1", timeout=30, poll_interval=1)

    assert len(calls) == 2


@pytest.mark.parametrize(
    "result",
    [
        {"default": {"type": "audio", "url": "https://dl.example/vid-1.m4a"}},
        {"default": [{"type": "video", "url": "https://dl.example/v.mp4"}, {"type": "audio", "url": "https://dl.example/vid-1.m4a"}]},
        {"audio": {"status": "ready", "url": "https://dl.example/vid-1.m4a"}},
    ],
)
def test_audio_download_url_lookup(result):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"success": True, "result": result})

    assert make_client(handler).get_audio_download_url("vid-1") == "https://dl.example/vid-1.m4a"
    assert str(seen[0].url) == f"{BASE}/vid-1/downloads"


def test_audio_download_url_missing():
    client = make_client(lambda request: httpx.Response(200, json={"success": True, "result": {}}))

    with pytest.raises(StagingError, match="Audio download URL not available"):
        client.get_audio_download_url("vid-1")


def test_delete_video():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200)

    make_client(handler).delete_video("vid-1")

    assert seen[0].method == "DELETE"
    assert str(seen[0].url) == f"{BASE}/vid-1"


def test_delete_video_error():
    client = make_client(lambda request: httpx.Response(404, json=[]))

    with pytest.raises(StagingError) as excinfo:
        client.delete_video("vid-1")

    assert excinfo.value.status_code == 404
    assert "Not Found" in str(excinfo.value)
