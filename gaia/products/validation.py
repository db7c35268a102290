"""Structural checks on segment and prediction lists."""

from __future__ import annotations

import logging
import math
from numbers import Real
from typing import Any, Mapping, Sequence

from gaia.util import to_ordinal

logger = logging.getLogger(__name__)

DATE_FIELDS = ("sday", "eday", "bday")
NUMERIC_FIELDS = (
    "chprob", "curqa",
    "grmag", "remag", "nimag", "s1mag", "s2mag",
    "niint", "s1int",
)
COEFFICIENT_FIELDS = ("nicoef", "s1coef")


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _segment_days(segment: Any) -> tuple[int, int] | None:
    """Return (sday, eday) if the segment is well formed, else None."""
    if not isinstance(segment, Mapping):
        return None
    try:
        days = [to_ordinal(segment[name]) for name in DATE_FIELDS]
    except (KeyError, TypeError, ValueError):
        return None
    if not all(_is_number(segment.get(name)) for name in NUMERIC_FIELDS):
        return None
    for name in COEFFICIENT_FIELDS:
        coefs = segment.get(name)
        if not isinstance(coefs, Sequence) or isinstance(coefs, str) or not coefs:
            return None
        if not _is_number(coefs[0]):
            return None
    sday, eday, _ = days
    if sday > eday:
        return None
    return sday, eday


def segments_valid(segments: Sequence[Any] | None) -> bool:
    """True iff segments is non-empty, well formed and ascending by sday."""
    if not segments:
        return False
    previous_sday = None
    for segment in segments:
        days = _segment_days(segment)
        if days is None:
            logger.debug("Malformed segment: %s", segment)
            return False
        sday, _ = days
        if previous_sday is not None and sday < previous_sday:
            logger.debug("Segments out of order at sday %d", sday)
            return False
        previous_sday = sday
    return True


def predictions_valid(predictions: Sequence[Any] | None, class_count: int) -> bool:
    """True iff predictions is non-empty and every probability vector holds class_count finite numbers."""
    if not predictions:
        return False
    for prediction in predictions:
        if not isinstance(prediction, Mapping):
            return False
        try:
            to_ordinal(prediction["sday"])
            to_ordinal(prediction["pday"])
        except (KeyError, TypeError, ValueError):
            logger.debug("Malformed prediction: %s", prediction)
            return False
        probs = prediction.get("prob")
        if not isinstance(probs, Sequence) or isinstance(probs, str) or len(probs) != class_count:
            logger.debug("Probability vector length mismatch: %s", prediction)
            return False
        if not all(_is_number(p) and math.isfinite(p) for p in probs):
            logger.debug("Non-numeric probability: %s", prediction)
            return False
    return True
