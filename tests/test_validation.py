"""Tests for segment and prediction validation."""

from __future__ import annotations

import pytest

from gaia.products.validation import predictions_valid, segments_valid
from tests.conftest import TREE, make_prediction, make_segment, probs


class TestSegmentsValid:
    def test_ordered_segments_are_valid(self):
        segments = [make_segment("2000-01-01", "2004-12-31"),
                    make_segment("2005-01-01", "2010-01-01")]
        assert segments_valid(segments)

    def test_ordinal_dates_are_accepted(self):
        assert segments_valid([make_segment(sday=730120, eday=731000, bday=731000)])

    def test_empty_or_missing(self):
        assert not segments_valid([])
        assert not segments_valid(None)

    def test_missing_field(self):
        segment = make_segment()
        del segment["curqa"]
        assert not segments_valid([segment])

    def test_non_numeric_field(self):
        assert not segments_valid([make_segment(chprob="high")])

    def test_start_after_end(self):
        assert not segments_valid([make_segment("2010-01-01", "2000-01-01")])

    def test_out_of_order(self):
        segments = [make_segment("2005-01-01", "2010-01-01"),
                    make_segment("2000-01-01", "2004-12-31")]
        assert not segments_valid(segments)

    def test_empty_coefficients(self):
        assert not segments_valid([make_segment(nicoef=[])])


class TestPredictionsValid:
    def test_matching_length_is_valid(self):
        preds = [make_prediction("2000-01-01", "2001-01-01", probs(TREE))]
        assert predictions_valid(preds, 9)

    def test_length_mismatch(self):
        preds = [make_prediction("2000-01-01", "2001-01-01", [0.5, 0.5])]
        assert not predictions_valid(preds, 9)

    def test_empty(self):
        assert not predictions_valid([], 9)

    def test_missing_pday(self):
        assert not predictions_valid([{"sday": "2000-01-01", "prob": probs(TREE)}], 9)

    @pytest.mark.parametrize("bad", [None, "0.1", True, float("nan"), float("inf")])
    def test_non_numeric_probability(self, bad):
        vector = probs(TREE)
        vector[5] = bad
        preds = [make_prediction("2000-01-01", "2001-01-01", vector)]
        assert not predictions_valid(preds, 9)

    def test_string_probability_vector(self):
        preds = [make_prediction("2000-01-01", "2001-01-01", "012345678")]
        assert not predictions_valid(preds, 9)

    def test_one_bad_prediction_fails_the_list(self):
        vector = probs(TREE)
        vector[0] = None
        preds = [make_prediction("2000-01-01", "2001-01-01", probs(TREE)),
                 make_prediction("2000-01-01", "2002-01-01", vector)]
        assert not predictions_valid(preds, 9)
