"""Cover products: landcover class, confidence and annual change per pixel.

Each segment of a pixel is characterized relative to the query date (does
the date fall inside it, before it, after its end or break) and given a
primary and secondary class from the mean of its predictions. A decision
tree then picks the segment whose classes apply to the date, filling gaps
between segments according to the fill_samelc / fill_difflc settings, and
explains how the class was derived with a confidence code.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from gaia.config import AppConfig, ClassConfig, ConfidenceConfig
from gaia.errors import ClassificationError, ConfidenceError
from gaia.products.models import (
    CharacterizedSegment,
    Classified,
    Decision,
    NotFound,
    PairFound,
    PairResult,
    Pixel,
    PixelInputs,
    Prediction,
    ProductValue,
    Segment,
    Unclassifiable,
)
from gaia.products.validation import predictions_valid, segments_valid
from gaia.util import concat_ints, scale_value, subtract_year, to_ordinal

logger = logging.getLogger(__name__)

# Burn ratio shift that separates vegetation growth/decline from noise
BURN_RATIO_THRESHOLD = 0.05


def normalized_burn_ratio(model: Segment, sday: int, eday: int) -> float:
    """Return the change in Normalized Burn Ratio across a segment.

    NIR and SWIR1 reflectance are extrapolated at both ends of the segment
    from each band's intercept and first coefficient.
    """
    niint = np.float64(model["niint"])
    s1int = np.float64(model["s1int"])
    nicoef = np.float64(model["nicoef"][0])
    s1coef = np.float64(model["s1coef"][0])

    nir_start = niint + sday * nicoef
    nir_end = niint + eday * nicoef
    swir_start = s1int + sday * s1coef
    swir_end = s1int + eday * s1coef

    with np.errstate(divide="ignore", invalid="ignore"):
        nbr_start = (nir_start - swir_start) / (nir_start + swir_start)
        nbr_end = (nir_end - swir_end) / (nir_end + swir_end)
    return float(nbr_end - nbr_start)


def get_class(probabilities: Sequence[float], classes: ClassConfig, rank: int = 0) -> int:
    """Return the class holding the rank-th largest probability.

    Ties resolve to the lowest index. An empty vector or a rank out of range
    yields the configured "none" class, as does a NaN at the requested rank.
    """
    probs = np.asarray(probabilities, dtype=np.float64)
    if probs.size == 0 or not 0 <= rank < probs.size:
        return classes.none
    ordered = np.sort(probs)[::-1]
    matches = np.flatnonzero(probs == ordered[rank])
    if matches.size == 0:
        return classes.none
    position = int(matches[0])
    if position >= len(classes.lc_list):
        return classes.none
    return classes.lc_list[position]


def first_date_of_class(predictions: Sequence[Prediction], class_value: int,
                        classes: ClassConfig) -> Optional[int]:
    """Return the pday of the first prediction whose top class is class_value."""
    for prediction in predictions:
        if get_class(prediction["prob"], classes) == class_value:
            return to_ordinal(prediction["pday"])
    return None


def mean_probabilities(predictions: Sequence[Prediction]) -> list[float]:
    if not predictions:
        return []
    matrix = np.array([p["prob"] for p in predictions], dtype=np.float64)
    return matrix.mean(axis=0).tolist()


def scaled_probabilities(predictions: Sequence[Prediction], rank: int,
                         confidence: ConfidenceConfig) -> float:
    """Return the rank-th largest mean probability rescaled to the confidence range."""
    ordered = sorted(mean_probabilities(predictions), reverse=True)
    return scale_value(ordered[rank], confidence.scale_min, confidence.scale_max)


@dataclass(frozen=True)
class ClassDetails:
    first_class: int
    last_class: int
    first_forest_date: Optional[int]
    first_grass_date: Optional[int]
    mean_probabilities: list[float]
    growth: bool
    decline: bool
    klass: int


def class_details(predictions: Sequence[Prediction], query_date: int, rank: int,
                  burn_ratio: float, classes: ClassConfig) -> ClassDetails:
    """Summarize predictions sorted ascending by pday."""
    first_class = get_class(predictions[0]["prob"] if predictions else [], classes)
    last_class = get_class(predictions[-1]["prob"] if predictions else [], classes)
    grass, tree = classes.grass, classes.tree
    growth = (burn_ratio > BURN_RATIO_THRESHOLD
              and first_class == grass and last_class == tree)
    decline = (burn_ratio < -BURN_RATIO_THRESHOLD
               and first_class == tree and last_class == grass)
    probabilities = mean_probabilities(predictions)
    return ClassDetails(
        first_class=first_class,
        last_class=last_class,
        first_forest_date=first_date_of_class(predictions, tree, classes),
        first_grass_date=first_date_of_class(predictions, grass, classes),
        mean_probabilities=probabilities,
        growth=growth,
        decline=decline,
        klass=get_class(probabilities, classes, rank),
    )


def classify(predictions: Sequence[Prediction], query_date: int, rank: int,
             burn_ratio: float, classes: ClassConfig) -> int:
    """Return the class for a segment at query_date for rank 0 (primary) or 1 (secondary)."""
    details = class_details(predictions, query_date, rank, burn_ratio, classes)
    grass, tree = classes.grass, classes.tree

    if details.growth:
        if query_date >= details.first_forest_date:
            return (tree, grass)[rank]
        return (grass, tree)[rank]

    if details.decline:
        if query_date >= details.first_grass_date:
            return (grass, tree)[rank]
        return (tree, grass)[rank]

    return details.klass


def characterize_segment(segment: Segment, query_day: int,
                         predictions: Sequence[Prediction],
                         classes: ClassConfig) -> CharacterizedSegment:
    """Describe a segment relative to query_day and classify it."""
    sday = to_ordinal(segment["sday"])
    eday = to_ordinal(segment["eday"])
    bday = to_ordinal(segment["bday"])
    burn_ratio = normalized_burn_ratio(segment, sday, eday)

    matching = [p for p in predictions if to_ordinal(p["sday"]) == sday]
    matching.sort(key=lambda p: to_ordinal(p["pday"]))

    details = class_details(matching, query_day, 0, burn_ratio, classes)
    return CharacterizedSegment(
        sday=sday,
        eday=eday,
        bday=bday,
        chprob=segment["chprob"],
        burn_ratio=burn_ratio,
        intersects=sday <= query_day <= eday,
        precedes_sday=query_day < sday,
        follows_eday=query_day > eday,
        follows_bday=query_day >= bday,
        between_eday_bday=eday <= query_day <= bday,
        growth=details.growth,
        decline=details.decline,
        predictions=tuple(matching),
        primary_class=classify(matching, query_day, 0, burn_ratio, classes),
        secondary_class=classify(matching, query_day, 1, burn_ratio, classes),
    )


def find_adjacent_pair(segments: Sequence[CharacterizedSegment],
                       follows_flag: str) -> PairResult:
    """Scan for the first adjacent (a, b) where a.<follows_flag> and b.precedes_sday.

    Without a match, the last segment seen is returned alone.
    """
    previous = None
    for current in segments:
        if (previous is not None and getattr(previous, follows_flag)
                and current.precedes_sday):
            return PairFound(previous, current)
        previous = current
    return NotFound(previous)


def between_eday_sday(segments: Sequence[CharacterizedSegment]) -> PairResult:
    return find_adjacent_pair(segments, "follows_eday")


def between_bday_sday(segments: Sequence[CharacterizedSegment]) -> PairResult:
    return find_adjacent_pair(segments, "follows_bday")


def _classes_of(segment: CharacterizedSegment) -> Classified:
    return Classified(segment.primary_class, segment.secondary_class)


def landcover(segments: Sequence[CharacterizedSegment], query_date: int,
              config: AppConfig, pixel: Optional[Pixel] = None) -> Decision:
    """Return the primary and secondary landcover for query_date. First matching rule wins."""
    reason = "Landcover value calculation problem, unclassifiable pixel"
    if not segments:
        return Unclassifiable(reason, pixel)

    first, last = segments[0], segments[-1]
    intersected = next((s for s in segments if s.intersects), None)
    eday_bday_model = next((s for s in segments if s.between_eday_bday), None)
    eday_sday = between_eday_sday(segments)
    bday_sday = between_bday_sday(segments)
    fill_samelc = config.products.fill_samelc
    fill_difflc = config.products.fill_difflc

    # query date precedes first segment start date
    if query_date < first.sday:
        return _classes_of(first)

    # query date follows last segment end date
    if query_date > last.eday:
        return _classes_of(last)

    if intersected is not None:
        return _classes_of(intersected)

    # gap between segments with the same primary classification
    if (fill_samelc and isinstance(eday_sday, PairFound)
            and eday_sday.first.primary_class == eday_sday.second.primary_class):
        return _classes_of(eday_sday.second)

    # gap between one segment's break and the next segment's start
    if fill_difflc and isinstance(bday_sday, PairFound):
        return _classes_of(bday_sday.second)

    if fill_difflc and eday_bday_model is not None:
        return _classes_of(eday_bday_model)

    return Unclassifiable(reason, pixel)


def confidence(segments: Sequence[CharacterizedSegment], query_date: int,
               config: AppConfig, pixel: Optional[Pixel] = None) -> Decision:
    """Return the primary and secondary confidence for query_date. First matching rule wins."""
    reason = "Confidence value calculation problem"
    if not segments:
        return Unclassifiable(reason, pixel)

    codes = config.confidence
    first, last = segments[0], segments[-1]
    intersected = next((s for s in segments if s.intersects), None)
    pair = between_eday_sday(segments)
    found = isinstance(pair, PairFound)

    def both(code: int) -> Classified:
        return Classified(code, code)

    if found and not pair.first.predictions:
        return both(codes.lcc_back)

    if found and not pair.second.predictions:
        return both(codes.lcc_afterbr)

    if query_date < first.sday:
        return both(codes.lcc_back)

    if query_date > last.eday and int(last.chprob) == 1:
        return both(codes.lcc_afterbr)

    if query_date > last.eday and not last.predictions:
        return both(codes.lcc_afterbr)

    if query_date > last.eday:
        return both(codes.lcc_forwards)

    if intersected is not None and intersected.growth:
        return both(codes.lcc_growth)

    if intersected is not None and intersected.decline:
        return both(codes.lcc_decline)

    if intersected is not None and intersected.predictions:
        return Classified(
            scaled_probabilities(intersected.predictions, 0, codes),
            scaled_probabilities(intersected.predictions, 1, codes),
        )

    if found:
        same_primary = pair.first.primary_class == pair.second.primary_class
        same_secondary = pair.first.secondary_class == pair.second.secondary_class
        return Classified(
            codes.lcc_samelc if same_primary else codes.lcc_difflc,
            codes.lcc_samelc if same_secondary else codes.lcc_difflc,
        )

    return Unclassifiable(reason, pixel)


def change(current: int, previous: int) -> int:
    """Return current if unchanged, else the one-year transition code (3 -> 4 gives 34)."""
    if current == previous:
        return current
    return concat_ints(previous, current)


@dataclass(frozen=True)
class CharacterizedPixel:
    pixel: Pixel
    date: int
    current: tuple[CharacterizedSegment, ...]
    previous_date: int
    previous: tuple[CharacterizedSegment, ...]


def characterize_inputs(pixel: Pixel, inputs: PixelInputs, query_day: int,
                        classes: ClassConfig) -> CharacterizedPixel:
    """Characterize a pixel's segments at query_day and one year earlier.

    Malformed segments or predictions give empty characterizations.
    """
    previous_day = subtract_year(query_day)
    valid = (segments_valid(inputs.segments)
             and predictions_valid(inputs.predictions, len(classes.lc_list)))
    if not valid:
        return CharacterizedPixel(pixel, query_day, (), previous_day, ())

    def characterize(day: int) -> tuple[CharacterizedSegment, ...]:
        return tuple(characterize_segment(s, day, inputs.predictions, classes)
                     for s in inputs.segments)

    return CharacterizedPixel(pixel, query_day, characterize(query_day),
                              previous_day, characterize(previous_day))


def _resolve(decision: Decision, error_cls: type, policy: str,
             failures: list[str]) -> Optional[Classified]:
    """Apply the failure policy to a decision: raise, or record the reason."""
    if isinstance(decision, Classified):
        return decision
    if policy == "record":
        logger.warning("%s, pixel %s", decision.reason, decision.pixel)
        failures.append(f"{decision.reason}, pixel {decision.pixel}")
        return None
    raise error_cls(decision.pixel, decision.reason)


def products(pixel: Pixel, inputs: PixelInputs, date: int,
             config: AppConfig) -> ProductValue:
    """Compute every cover product for one pixel and date."""
    px, py = pixel
    classes = config.classes
    none = classes.none
    nomodel = config.confidence.lcc_nomodel

    characterized = characterize_inputs(pixel, inputs, date, classes)
    current = [s for s in characterized.current if s.predictions]
    previous = [s for s in characterized.previous if s.predictions]

    if not current:
        return ProductValue(px=px, py=py, date=date, values={
            "primary-landcover": none,
            "secondary-landcover": none,
            "primary-confidence": nomodel,
            "secondary-confidence": nomodel,
            "annual-change": none,
        })

    policy = config.products.failure_policy
    failures: list[str] = []
    lc = _resolve(landcover(current, date, config, pixel),
                  ClassificationError, policy, failures)
    lc_conf = _resolve(confidence(current, date, config, pixel),
                       ConfidenceError, policy, failures)
    if previous:
        previous_lc = _resolve(
            landcover(previous, characterized.previous_date, config, pixel),
            ClassificationError, policy, failures)
    else:
        previous_lc = Classified(none, none)

    annual_change = None
    if lc is not None and previous_lc is not None:
        annual_change = change(lc.primary, previous_lc.primary)

    return ProductValue(
        px=px, py=py, date=date,
        values={
            "primary-landcover": lc.primary if lc else None,
            "secondary-landcover": lc.secondary if lc else None,
            "primary-confidence": lc_conf.primary if lc_conf else None,
            "secondary-confidence": lc_conf.secondary if lc_conf else None,
            "annual-change": annual_change,
        },
        error="; ".join(failures) or None,
    )
