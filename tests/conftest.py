"""Shared fixtures and fakes for pipeline tests."""
from pathlib import Path

import pytest

from clipwatch.db.state_store import StateStore
from clipwatch.models.video import Analysis, Highlight


def make_analysis(*ranges, title="Insane Clutch Round"):
    """Build an Analysis from (start, end) timecode pairs."""
    return Analysis(
        title=title,
        highlights=[
            Highlight(start_time=start, end_time=end, description=f"Highlight {i}")
            for i, (start, end) in enumerate(ranges)
        ],
    )


class FakeAnalyzer:
    def __init__(self, analysis=None, error=None, on_call=None):
        self.analysis = analysis
        self.error = error
        self.on_call = on_call
        self.calls = []

    async def analyze(self, file_path):
        self.calls.append(Path(file_path))
        if self.on_call:
            self.on_call(file_path)
        if self.error:
            raise self.error
        return self.analysis


class FakeEncoder:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def encode(self, graph, input_path, output_path):
        self.calls.append((graph, Path(input_path), Path(output_path)))
        if self.error:
            raise self.error
        return Path(output_path)


class FakeUploader:
    def __init__(self, video_id="yt-123", error=None):
        self.video_id = video_id
        self.error = error
        self.calls = []

    async def upload(self, file_path, title, description):
        self.calls.append((file_path, title, description))
        if self.error:
            raise self.error
        return self.video_id


@pytest.fixture
def store(tmp_path):
    return StateStore(tmp_path / "process-lock.json")


@pytest.fixture
def watch_dir(tmp_path):
    path = tmp_path / "watch"
    path.mkdir()
    return path
