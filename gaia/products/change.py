"""Change products: time, magnitude and duration of spectral change per pixel.

Each product has a model-level rule, evaluated on one segment for a query
date, and a pixel-level reduction across the pixel's segments. The pixel
level only runs the formulas when the segment list passes validation;
otherwise it returns the product's fallback value.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

import numpy as np

from gaia.config import AppConfig
from gaia.errors import ComputationError
from gaia.products.models import Pixel, ProductValue, Segment
from gaia.products.validation import segments_valid
from gaia.util import to_date, to_ordinal

logger = logging.getLogger(__name__)

MAGNITUDE_FIELDS = ("grmag", "remag", "nimag", "s1mag", "s2mag")


def _computation_error(exc: Exception, product: str) -> ComputationError:
    error = ComputationError(product, str(exc))
    logger.error("%s", error)
    return error


# --- Model level ---

def time_of_change_model(model: Segment, date: int) -> int:
    """Return the day of year of the break if it falls in the query year."""
    try:
        break_day = to_date(to_ordinal(model["bday"]))
        query_year = to_date(date).year
        if query_year == break_day.year and model["chprob"] == 1.0:
            return break_day.timetuple().tm_yday
        return 0
    except Exception as exc:
        raise _computation_error(exc, "time-of-change") from exc


def time_since_change_model(model: Segment, date: int) -> Optional[int]:
    """Return days elapsed since the break, or None before it."""
    try:
        day_diff = date - to_ordinal(model["bday"])
        if model["chprob"] == 1.0 and day_diff >= 0:
            return day_diff
        return None
    except Exception as exc:
        raise _computation_error(exc, "time-since-change") from exc


def magnitude_of_change_model(model: Segment, date: int) -> float:
    """Return the Euclidean norm of the band magnitudes for a break in the query year."""
    try:
        query_year = to_date(date).year
        break_year = to_date(to_ordinal(model["bday"])).year
        magnitudes = np.array([model[name] for name in MAGNITUDE_FIELDS], dtype=np.float64)
        euc_norm = float(np.linalg.norm(magnitudes))
        if query_year == break_year and model["chprob"] == 1.0:
            return euc_norm
        return 0
    except Exception as exc:
        raise _computation_error(exc, "magnitude-of-change") from exc


def length_of_segment_model(model: Segment, date: int, stability_begin: int) -> int:
    """Return days since the segment started (or ended, when the date follows it)."""
    try:
        fill = date - stability_begin
        start_day = to_ordinal(model["sday"])
        end_day = to_ordinal(model["eday"])
        diff = date - end_day if date > end_day else date - start_day
        if 0 <= diff < fill:
            return diff
        return fill
    except Exception as exc:
        raise _computation_error(exc, "length-of-segment") from exc


def curve_fit_model(model: Segment, date: int) -> float:
    """Return the curve QA of the segment covering the date, else 0."""
    try:
        start_day = to_ordinal(model["sday"])
        end_day = to_ordinal(model["eday"])
        if start_day <= date <= end_day:
            return model["curqa"]
        return 0
    except Exception as exc:
        raise _computation_error(exc, "curve-fit") from exc


# --- Pixel level ---

def time_of_change(segments: Sequence[Segment], date: int, config: AppConfig) -> int:
    """Latest break day of year in the query year across segments."""
    if not segments_valid(segments):
        return 0
    return max(time_of_change_model(s, date) for s in segments)


def time_since_change(segments: Sequence[Segment], date: int, config: AppConfig) -> int:
    """Fewest days since a confirmed break on or before the date."""
    if not segments_valid(segments):
        return 0
    values = [time_since_change_model(s, date) for s in segments]
    present = [v for v in values if v is not None]
    if not present:
        return 0
    return min(present)


def magnitude_of_change(segments: Sequence[Segment], date: int, config: AppConfig) -> float:
    """Largest change magnitude for a break in the query year."""
    if not segments_valid(segments):
        return 0
    return max(magnitude_of_change_model(s, date) for s in segments)


def length_of_segment(segments: Sequence[Segment], date: int, config: AppConfig) -> int:
    """Shortest time since a segment boundary, capped at the stability period."""
    stability_begin = to_ordinal(config.products.stability_begin)
    if not segments_valid(segments):
        return date - stability_begin
    return min(length_of_segment_model(s, date, stability_begin) for s in segments)


def curve_fit(segments: Sequence[Segment], date: int, config: AppConfig) -> float:
    """Curve QA of the segment covering the date."""
    if not segments_valid(segments):
        return 0
    return max(curve_fit_model(s, date) for s in segments)


# Every reducer takes the config so pixel_value and products can call them
# alike; only length-of-segment reads it.
PRODUCTS: dict[str, Callable[[Sequence[Segment], int, AppConfig], float]] = {
    "curve-fit": curve_fit,
    "length-of-segment": length_of_segment,
    "magnitude-of-change": magnitude_of_change,
    "time-since-change": time_since_change,
    "time-of-change": time_of_change,
}


def pixel_value(product: str, pixel: Pixel, segments: Sequence[Segment],
                date: int, config: AppConfig) -> dict:
    """Return a single product's value for one pixel as {pixelx, pixely, val}."""
    px, py = pixel
    return {"pixelx": px, "pixely": py, "val": PRODUCTS[product](segments, date, config)}


def products(pixel: Pixel, segments: Sequence[Segment], date: int,
             config: AppConfig) -> ProductValue:
    """Compute every change product for one pixel and date."""
    px, py = pixel
    values = {name: fn(segments, date, config) for name, fn in PRODUCTS.items()}
    return ProductValue(px=px, py=py, date=date, values=values)
