"""Shared data models for the product engines and pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence, Union

Pixel = tuple[int, int]
Segment = Mapping[str, Any]
Prediction = Mapping[str, Any]


@dataclass(frozen=True)
class CharacterizedSegment:
    """A segment described relative to one query day."""
    sday: int
    eday: int
    bday: int
    chprob: float
    burn_ratio: float
    intersects: bool          # sday <= query_day <= eday
    precedes_sday: bool       # query_day < sday
    follows_eday: bool        # query_day > eday
    follows_bday: bool        # query_day >= bday
    between_eday_bday: bool   # eday <= query_day <= bday
    growth: bool = False
    decline: bool = False
    predictions: tuple[Prediction, ...] = ()
    primary_class: int = 0
    secondary_class: int = 0


@dataclass(frozen=True)
class PairFound:
    first: Any
    second: Any


@dataclass(frozen=True)
class NotFound:
    last: Any


PairResult = Union[PairFound, NotFound]


@dataclass(frozen=True)
class Classified:
    primary: Any
    secondary: Any


@dataclass(frozen=True)
class Unclassifiable:
    reason: str
    pixel: Optional[Pixel] = None


Decision = Union[Classified, Unclassifiable]


@dataclass
class ProductValue:
    """One pixel's computed values for one date."""
    px: int
    py: int
    date: int                 # ordinal day
    values: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "px": self.px,
            "py": self.py,
            "date": self.date,
            "values": dict(self.values),
        }
        if self.error is not None:
            record["error"] = self.error
        return record


@dataclass(frozen=True)
class WorkItem:
    date: int
    pixel: Pixel


@dataclass
class WorkResult:
    """Outcome of one work item: a value or a tagged failure, never neither."""
    item: WorkItem
    value: Optional[ProductValue] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class PixelInputs:
    segments: Sequence[Segment] = ()
    predictions: Sequence[Prediction] = ()
