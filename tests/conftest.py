"""Shared test fixtures: synthetic segments, predictions and an in-memory store."""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest

from gaia.config import AppConfig, ConfidenceConfig, PipelineConfig, ProductConfig
from gaia.products.models import CharacterizedSegment

GRASS = 3
TREE = 4


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(pipeline=PipelineConfig(worker_count=3, retry_delays=(1.0, 5.0)))


@pytest.fixture
def no_fill_config() -> AppConfig:
    return AppConfig(products=ProductConfig(fill_samelc=False, fill_difflc=False))


@pytest.fixture
def confidence_config() -> ConfidenceConfig:
    return ConfidenceConfig()


def ordinal(iso: str) -> int:
    return date.fromisoformat(iso).toordinal()


def make_segment(sday: str = "2000-01-01", eday: str = "2010-01-01",
                 bday: str | None = None, chprob: float = 0.0,
                 curqa: float = 8.0, **overrides: Any) -> dict:
    """Create a well-formed segment record with a flat burn ratio."""
    segment = {
        "sday": sday,
        "eday": eday,
        "bday": bday or eday,
        "chprob": chprob,
        "curqa": curqa,
        "grmag": 0.0,
        "remag": 0.0,
        "nimag": 0.0,
        "s1mag": 0.0,
        "s2mag": 0.0,
        "niint": 0.3,
        "s1int": 0.1,
        "nicoef": [0.0],
        "s1coef": [0.0],
    }
    segment.update(overrides)
    return segment


def probs(top: int, second: int | None = None, top_p: float = 0.7,
          second_p: float = 0.2, size: int = 9) -> list[float]:
    """Probability vector with the largest value at index top."""
    vector = [0.0] * size
    vector[top] = top_p
    if second is not None:
        vector[second] = second_p
    return vector


def make_prediction(sday: str, pday: str, prob: list[float]) -> dict:
    return {"sday": sday, "pday": pday, "prob": prob}


def characterized(**flags: Any) -> CharacterizedSegment:
    """CharacterizedSegment with all flags off unless given."""
    values: dict[str, Any] = {
        "sday": 0, "eday": 0, "bday": 0, "chprob": 0.0, "burn_ratio": 0.0,
        "intersects": False, "precedes_sday": False, "follows_eday": False,
        "follows_bday": False, "between_eday_bday": False,
    }
    values.update(flags)
    return CharacterizedSegment(**values)


class MemoryStore:
    """In-memory store recording every write."""

    def __init__(self, segments: dict | None = None, predictions: dict | None = None,
                 failures: int = 0):
        self.segments = segments or {}
        self.predictions = predictions or {}
        self.failures = failures
        self.writes: dict[str, Any] = {}
        self.attempts = 0

    def grouped_segments(self, cx: int, cy: int) -> dict:
        return self.segments

    def grouped_predictions(self, cx: int, cy: int) -> dict:
        return self.predictions

    def product_path(self, product: str, cx: int, cy: int, tile: str, date: str) -> str:
        return f"{product}/{tile}/{cx}/{cy}/{date}.json"

    def put_json(self, path: str, value: Any) -> None:
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise OSError("connection reset")
        self.writes[path] = value
