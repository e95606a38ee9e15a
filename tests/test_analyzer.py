"""Tests for Gemini analysis parsing and the Files API flow."""
from types import SimpleNamespace

import pytest
from google.genai import types

from clipwatch.services import analyzer as analyzer_module
from clipwatch.services.analyzer import (
    AnalysisError,
    AnalysisParseError,
    GeminiAnalyzer,
    parse_analysis,
)


class TestParseAnalysis:

    def test_plain_json(self):
        analysis = parse_analysis(
            '{"title": "Ace", "highlights": ['
            '{"start_time": "00:00:12", "end_time": "00:00:15", "description": "Triple Kill"}]}'
        )
        assert analysis.title == "Ace"
        assert analysis.highlights[0].start_time == "00:00:12"
        assert analysis.highlights[0].end_seconds == 15

    def test_markdown_fences_stripped(self):
        analysis = parse_analysis('```json\n{"title": "T", "highlights": []}\n```')
        assert analysis.highlights == []

    def test_highlight_order_preserved(self):
        analysis = parse_analysis(
            '{"title": "T", "highlights": ['
            '{"start_time": "00:01:00", "end_time": "00:01:02"},'
            '{"start_time": "00:00:05", "end_time": "00:00:07"}]}'
        )
        assert [h.start_time for h in analysis.highlights] == ["00:01:00", "00:00:05"]

    def test_invalid_json(self):
        with pytest.raises(AnalysisParseError, match="not valid JSON"):
            parse_analysis("Sure! Here are the highlights")

    def test_highlights_not_a_list(self):
        with pytest.raises(AnalysisParseError, match="highlights"):
            parse_analysis('{"title": "T", "highlights": "lots"}')

    def test_bad_timecode(self):
        with pytest.raises(AnalysisParseError):
            parse_analysis(
                '{"title": "T", "highlights": [{"start_time": "later", "end_time": "00:00:02"}]}'
            )

    def test_missing_title(self):
        with pytest.raises(AnalysisParseError, match="title"):
            parse_analysis('{"highlights": []}')

    def test_parse_error_is_an_analysis_error(self):
        assert issubclass(AnalysisParseError, AnalysisError)


class _FakeFiles:
    def __init__(self, states):
        self._states = list(states)
        self.uploads = []
        self.gets = 0

    async def upload(self, file, config=None):
        self.uploads.append((file, config))
        return SimpleNamespace(name="files/abc", uri="https://example.test/files/abc")

    async def get(self, name):
        self.gets += 1
        return SimpleNamespace(name=name, uri="https://example.test/files/abc", state=self._states.pop(0))


class _FakeModels:
    def __init__(self, text):
        self.text = text
        self.calls = []

    async def generate_content(self, model, contents, config=None):
        self.calls.append((model, contents, config))
        return SimpleNamespace(text=self.text)


class _FakeClient:
    def __init__(self, states, text):
        self.files = _FakeFiles(states)
        self.models = _FakeModels(text)
        self.aio = SimpleNamespace(files=self.files, models=self.models)


@pytest.fixture
def video(tmp_path):
    path = tmp_path / "match.mp4"
    path.write_bytes(b"video")
    return path


class TestGeminiAnalyzer:

    @pytest.mark.asyncio
    async def test_waits_for_processing_then_generates(self, video):
        client = _FakeClient(
            states=[types.FileState.PROCESSING, types.FileState.PROCESSING, types.FileState.ACTIVE],
            text='{"title": "Clutch", "highlights": [{"start_time": "0:10", "end_time": "0:12"}]}',
        )
        analyzer = GeminiAnalyzer(client=client, model="test-model", temperature=0.6, poll_seconds=0)

        analysis = await analyzer.analyze(video)

        assert analysis.title == "Clutch"
        assert client.files.gets == 3
        assert client.files.uploads[0][0] == str(video)
        model, contents, config = client.models.calls[0]
        assert model == "test-model"
        assert contents[1] == analyzer_module.HIGHLIGHT_PROMPT
        assert config.temperature == 0.6

    @pytest.mark.asyncio
    async def test_failed_processing(self, video):
        client = _FakeClient(states=[types.FileState.FAILED], text="{}")
        analyzer = GeminiAnalyzer(client=client, poll_seconds=0)

        with pytest.raises(AnalysisError, match="processing failed"):
            await analyzer.analyze(video)
        assert client.models.calls == []

    @pytest.mark.asyncio
    async def test_empty_response(self, video):
        client = _FakeClient(states=[types.FileState.ACTIVE], text="")
        analyzer = GeminiAnalyzer(client=client, poll_seconds=0)

        with pytest.raises(AnalysisError, match="empty"):
            await analyzer.analyze(video)

    @pytest.mark.asyncio
    async def test_missing_video(self, tmp_path):
        analyzer = GeminiAnalyzer(client=_FakeClient(states=[], text=""))

        with pytest.raises(AnalysisError, match="not found"):
            await analyzer.analyze(tmp_path / "missing.mp4")

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.setattr(analyzer_module.settings, "gemini_api_key", None)
        with pytest.raises(AnalysisError, match="API key"):
            GeminiAnalyzer()
