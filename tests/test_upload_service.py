"""Tests for the YouTube uploader."""
import httpx
import pytest

from clipwatch.config import YouTubeSettings
from clipwatch.services import upload_service
from clipwatch.services.upload_service import UploadError, YouTubeUploader


class _FakeResponse:
    def __init__(self, status_code: int, payload=None, text: str = "", headers=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.headers = headers or {}

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON payload")
        return self._payload


class _FakeClient:
    """Replays scripted responses; POSTs and PUTs are answered in order."""

    def __init__(self, post_responses=(), put_response=None, error=None):
        self._post_responses = list(post_responses)
        self._put_response = put_response
        self._error = error
        self.posts = []
        self.puts = []

    def __call__(self, **kwargs):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def post(self, url, **kwargs):
        self.posts.append((url, kwargs))
        if self._error:
            raise self._error
        return self._post_responses.pop(0)

    async def put(self, url, **kwargs):
        chunks = [chunk async for chunk in kwargs["content"]]
        self.puts.append((url, kwargs, b"".join(chunks)))
        return self._put_response


@pytest.fixture
def video(tmp_path):
    path = tmp_path / "montage.mp4"
    path.write_bytes(b"rendered-bytes")
    return path


@pytest.fixture
def uploader():
    return YouTubeUploader("client-id", "client-secret", "refresh-token", tags=["Valorant"])


def _token_ok():
    return _FakeResponse(200, {"access_token": "access-1"})


def _init_ok():
    return _FakeResponse(200, headers={"Location": "https://upload.example.test/session"})


@pytest.mark.asyncio
async def test_upload_success(monkeypatch, uploader, video):
    client = _FakeClient(
        post_responses=[_token_ok(), _init_ok()],
        put_response=_FakeResponse(200, {"id": "yt-42"}),
    )
    monkeypatch.setattr(upload_service.httpx, "AsyncClient", client)

    video_id = await uploader.upload(video, "A" * 150, "desc")

    assert video_id == "yt-42"
    token_url, token_kwargs = client.posts[0]
    assert token_url == upload_service.TOKEN_URL
    assert token_kwargs["data"]["grant_type"] == "refresh_token"

    init_url, init_kwargs = client.posts[1]
    assert init_url == upload_service.UPLOAD_URL
    assert init_kwargs["headers"]["Authorization"] == "Bearer access-1"
    assert init_kwargs["json"]["snippet"]["title"] == "A" * 100
    assert init_kwargs["json"]["snippet"]["tags"] == ["Valorant"]
    assert init_kwargs["json"]["status"]["selfDeclaredMadeForKids"] is False

    put_url, _, body = client.puts[0]
    assert put_url == "https://upload.example.test/session"
    assert body == b"rendered-bytes"


@pytest.mark.asyncio
async def test_token_refresh_rejected(monkeypatch, uploader, video):
    client = _FakeClient(
        post_responses=[_FakeResponse(400, {"error": "invalid_grant", "error_description": "Token revoked"})]
    )
    monkeypatch.setattr(upload_service.httpx, "AsyncClient", client)

    with pytest.raises(UploadError, match="invalid_grant: Token revoked"):
        await uploader.upload(video, "title", "desc")
    assert client.puts == []


@pytest.mark.asyncio
async def test_token_refresh_timeout(monkeypatch, uploader, video):
    client = _FakeClient(error=httpx.ReadTimeout("timed out"))
    monkeypatch.setattr(upload_service.httpx, "AsyncClient", client)

    with pytest.raises(UploadError, match="timed out"):
        await uploader.upload(video, "title", "desc")


@pytest.mark.asyncio
async def test_missing_location_header(monkeypatch, uploader, video):
    client = _FakeClient(post_responses=[_token_ok(), _FakeResponse(200)])
    monkeypatch.setattr(upload_service.httpx, "AsyncClient", client)

    with pytest.raises(UploadError, match="No upload URL"):
        await uploader.upload(video, "title", "desc")


@pytest.mark.asyncio
async def test_quota_error_detail(monkeypatch, uploader, video):
    client = _FakeClient(
        post_responses=[
            _token_ok(),
            _FakeResponse(403, {"error": {"code": 403, "message": "quotaExceeded"}}),
        ]
    )
    monkeypatch.setattr(upload_service.httpx, "AsyncClient", client)

    with pytest.raises(UploadError, match="quotaExceeded"):
        await uploader.upload(video, "title", "desc")


@pytest.mark.asyncio
async def test_missing_file(uploader, tmp_path):
    with pytest.raises(UploadError, match="not found"):
        await uploader.upload(tmp_path / "gone.mp4", "title", "desc")


def test_from_settings_without_credentials():
    assert YouTubeUploader.from_settings(YouTubeSettings()) is None


def test_from_settings_with_credentials():
    youtube = YouTubeSettings(client_id="id", client_secret="secret", refresh_token="token")
    uploader = YouTubeUploader.from_settings(youtube)
    assert uploader.refresh_token == "token"
