"""YouTube publisher for rendered montages."""
import logging
from pathlib import Path
from typing import AsyncIterator, List, Optional

import httpx

from clipwatch.config import YouTubeSettings, settings

logger = logging.getLogger(__name__)
OAUTH_HTTP_TIMEOUT_SECONDS = 15.0
UPLOAD_HTTP_TIMEOUT_SECONDS = 120.0
UPLOAD_CHUNK_BYTES = 1024 * 1024

TOKEN_URL = "https://oauth2.googleapis.com/token"
UPLOAD_URL = (
    "https://www.googleapis.com/upload/youtube/v3/videos"
    "?uploadType=resumable&part=snippet,status"
)


class UploadError(RuntimeError):
    """Raised when a montage could not be published."""


def _extract_error_detail(response: httpx.Response) -> str:
    """Extract concise error detail from a Google API response."""
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return text or f"HTTP {response.status_code}"

    if isinstance(payload, dict):
        error = payload.get("error")
        # OAuth errors are flat strings, Data API errors are objects
        if isinstance(error, dict):
            message = error.get("message")
            if message:
                return str(message)
        parts: List[str] = []
        if error:
            parts.append(str(error))
        description = payload.get("error_description")
        if description:
            parts.append(str(description))
        if parts:
            return ": ".join(parts)

    return f"HTTP {response.status_code}"


async def _iter_file(path: Path) -> AsyncIterator[bytes]:
    with open(path, "rb") as video_file:
        while True:
            chunk = video_file.read(UPLOAD_CHUNK_BYTES)
            if not chunk:
                break
            yield chunk


class YouTubeUploader:
    """
    Publishes videos with the YouTube Data API v3.

    Authenticates with a long-lived refresh token; a fresh access token is
    requested for every upload.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        tags: Optional[List[str]] = None,
        category_id: Optional[str] = None,
        privacy_status: Optional[str] = None,
    ):
        if not client_id or not client_secret or not refresh_token:
            raise UploadError("YouTube credentials missing")
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.tags = list(settings.upload_tags if tags is None else tags)
        self.category_id = category_id or settings.upload_category_id
        self.privacy_status = privacy_status or settings.upload_privacy_status

    @classmethod
    def from_settings(cls, youtube: YouTubeSettings) -> Optional["YouTubeUploader"]:
        """Build an uploader, or None when YouTube is not configured."""
        if not youtube.configured:
            return None
        return cls(youtube.client_id, youtube.client_secret, youtube.refresh_token)

    async def _get_access_token(self, client: httpx.AsyncClient) -> str:
        try:
            response = await client.post(
                TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": self.refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.TimeoutException as exc:
            raise UploadError("Google token refresh timed out") from exc
        except httpx.RequestError as exc:
            raise UploadError("Unable to reach Google OAuth service for token refresh") from exc

        if response.status_code != 200:
            raise UploadError(f"Failed to refresh token: {_extract_error_detail(response)}")

        try:
            token_data = response.json()
        except ValueError as exc:
            raise UploadError("Token refresh failed: invalid provider response") from exc

        access_token = token_data.get("access_token")
        if not access_token:
            raise UploadError("Token refresh failed: no access token in response")
        return access_token

    async def upload(self, file_path: str | Path, title: str, description: str) -> str:
        """
        Upload a video.

        Args:
            file_path: Rendered montage
            title: Video title (truncated to YouTube's 100 characters)
            description: Video description

        Returns:
            The YouTube video ID

        Raises:
            UploadError: On any authentication, network or API failure
        """
        video_path = Path(file_path)
        if not video_path.exists():
            raise UploadError(f"Video file not found: {video_path}")

        file_size = video_path.stat().st_size
        body = {
            "snippet": {
                "title": title[:100],
                "description": description[:5000],
                "tags": self.tags,
                "categoryId": self.category_id,
            },
            "status": {
                "privacyStatus": self.privacy_status,
                "selfDeclaredMadeForKids": False,
            },
        }

        logger.info(f"Starting upload for: {title}")
        timeout = httpx.Timeout(UPLOAD_HTTP_TIMEOUT_SECONDS, connect=OAUTH_HTTP_TIMEOUT_SECONDS)
        async with httpx.AsyncClient(timeout=timeout) as client:
            access_token = await self._get_access_token(client)

            try:
                # Step 1: create a resumable upload session
                response = await client.post(
                    UPLOAD_URL,
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Content-Type": "application/json",
                        "X-Upload-Content-Length": str(file_size),
                        "X-Upload-Content-Type": "video/*",
                    },
                    json=body,
                )
                if response.status_code != 200:
                    raise UploadError(f"Failed to initiate upload: {_extract_error_detail(response)}")

                upload_url = response.headers.get("Location")
                if not upload_url:
                    raise UploadError("No upload URL received")

                # Step 2: send the video bytes
                response = await client.put(
                    upload_url,
                    headers={
                        "Content-Type": "video/*",
                        "Content-Length": str(file_size),
                    },
                    content=_iter_file(video_path),
                )
            except httpx.TimeoutException as exc:
                raise UploadError("YouTube upload timed out") from exc
            except httpx.RequestError as exc:
                raise UploadError(f"Unable to reach YouTube API: {type(exc).__name__}") from exc

            if response.status_code not in (200, 201):
                raise UploadError(f"Failed to upload video: {_extract_error_detail(response)}")

            try:
                result = response.json()
            except ValueError as exc:
                raise UploadError("Failed to upload video: invalid provider response") from exc

        video_id = result.get("id")
        if not video_id:
            raise UploadError("Upload finished without a video ID")

        logger.info(f"Upload complete! Video ID: {video_id}")
        return video_id
