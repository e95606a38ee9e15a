"""Gemini-backed highlight analysis."""
import asyncio
import json
import logging
import mimetypes
from pathlib import Path
from typing import Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import ValidationError

from clipwatch.config import settings
from clipwatch.models.video import Analysis

logger = logging.getLogger(__name__)

HIGHLIGHT_PROMPT = """
Analyze this video clip of Valorant gameplay.
Identify highlight moments based on:
1. Player kills: Look for the kill feed/icon feedback at the bottom middle of the screen.
2. Audio excitement: Screams, laughs, and loud reactions.

Return a JSON object with:
- 'title': A YouTube title for the clip based on the highlights. Avoid using emojis and names (ex: agents, maps and positions)
- 'highlights': A list of highlight objects. (If highlights are close (5 to 7s) try to put them together) Each highlight should have:
  - 'start_time': The start timestamp in HH:MM:SS format (e.g., "00:00:12").
  - 'end_time': The end timestamp in HH:MM:SS format (e.g., "00:00:15").
  - 'description': A brief description of the highlight (e.g., "Triple Kill", "Funny Reaction").

Return ONLY the JSON object, strictly valid JSON. Do not use Markdown code blocks.
"""


class AnalysisError(Exception):
    """The analyzer could not produce highlights for a video."""
    pass


class AnalysisParseError(AnalysisError):
    """The analyzer answered with something that is not a valid analysis."""
    pass


def parse_analysis(text: str) -> Analysis:
    """
    Parse the model's raw answer into an Analysis.

    Markdown code fences are stripped first, since the model sometimes adds
    them despite being told not to.

    Raises:
        AnalysisParseError: On invalid JSON or an unexpected payload shape
    """
    cleaned = text.replace("```json", "").replace("```", "").strip()
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AnalysisParseError(f"Analysis response is not valid JSON: {e}")

    try:
        return Analysis.model_validate(payload)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise AnalysisParseError(f"Analysis response has an unexpected shape: {details}")


class GeminiAnalyzer:
    """Uploads a video to the Gemini Files API and asks for highlights."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        poll_seconds: Optional[float] = None,
        client: Optional[genai.Client] = None,
    ):
        self.model = model or settings.gemini_model
        self.temperature = settings.gemini_temperature if temperature is None else temperature
        self.poll_seconds = settings.gemini_poll_seconds if poll_seconds is None else poll_seconds
        if client is None:
            api_key = api_key or settings.gemini_api_key
            if not api_key:
                raise AnalysisError("Gemini API key is missing")
            client = genai.Client(api_key=api_key)
        self._client = client

    async def _upload_and_wait(self, path: Path) -> types.File:
        mime_type = mimetypes.guess_type(path.name)[0] or "video/mp4"
        logger.info(f"Uploading file: {path}")
        uploaded = await self._client.aio.files.upload(
            file=str(path),
            config=types.UploadFileConfig(mime_type=mime_type, display_name=path.name),
        )
        logger.info(f"Uploaded file as: {uploaded.uri}")

        video = await self._client.aio.files.get(name=uploaded.name)
        while video.state == types.FileState.PROCESSING:
            await asyncio.sleep(self.poll_seconds)
            video = await self._client.aio.files.get(name=uploaded.name)

        if video.state == types.FileState.FAILED:
            raise AnalysisError("Video processing failed.")
        return video

    async def analyze(self, file_path: str | Path) -> Analysis:
        """
        Analyze a video and return its title and highlights.

        Raises:
            AnalysisError: If upload, processing or generation fails
            AnalysisParseError: If the answer cannot be parsed
        """
        path = Path(file_path)
        if not path.exists():
            raise AnalysisError(f"Video file not found: {path}")

        try:
            video = await self._upload_and_wait(path)
            logger.info("File processed successfully. Analyzing...")
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=[video, HIGHLIGHT_PROMPT],
                config=types.GenerateContentConfig(
                    temperature=self.temperature,
                    response_mime_type="application/json",
                ),
            )
        except genai_errors.APIError as e:
            raise AnalysisError(f"Gemini request failed: {e}") from e

        text = response.text
        logger.debug(f"Raw Gemini response: {text}")
        if not text:
            raise AnalysisError("Gemini returned an empty response")

        return parse_analysis(text)
