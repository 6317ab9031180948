from __future__ import annotations

import logging
from pathlib import Path

import pytest

from dashgen.data import DataTable
from dashgen.generator import Generator
from tests._fixtures.recording import RecordingBackend, RecordingRenderer, recording_registry

SURVEY_ROWS = [
    {"age": 23, "gender": "f", "wave": 1, "q1": "agree", "q2": "disagree", "weight": 1.0},
    {"age": 35, "gender": "m", "wave": 1, "q1": "disagree", "q2": "agree", "weight": 2.0},
    {"age": 47, "gender": "f", "wave": 2, "q1": "agree", "q2": "agree", "weight": 1.0},
    {"age": 52, "gender": "m", "wave": 2, "q1": None, "q2": "agree", "weight": 0.5},
    {"age": 61, "gender": "f", "wave": 2, "q1": "agree", "q2": None, "weight": 1.5},
]


@pytest.fixture
def survey() -> DataTable:
    """A small survey table with a couple of missing answers."""
    return DataTable.from_records(SURVEY_ROWS)


@pytest.fixture
def recording_renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def recording_backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def generator(recording_renderer: RecordingRenderer, recording_backend: RecordingBackend) -> Generator:
    return Generator(
        registry=recording_registry(recording_renderer),
        backend=recording_backend,  # type: ignore[arg-type]
    )


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "site"


@pytest.fixture(autouse=True)
def _reset_dashgen_logger():
    """Let caplog see dashgen records even after the CLI configured handlers."""
    logger = logging.getLogger("dashgen")
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
