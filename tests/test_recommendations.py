"""Tests for recommendation extraction."""

import pytest

from cdss.errors import UnrecognizedRecommendationShape
from cdss.models import Recommendation
from cdss.rules.recommendations import extract


def test_none_result():
    assert extract(None) is None


def test_single_string():
    assert extract({"Recommendation": "Give MMR"}) == [Recommendation(text="Give MMR", priority=1)]


def test_single_list_keeps_order():
    result = extract({"Recommendation": ["b", "a", "c"]})
    assert [r.text for r in result] == ["b", "a", "c"]
    assert {r.priority for r in result} == {1}


def test_single_takes_precedence_over_numbered():
    result = extract({"Recommendation": "only", "Recommendation1": "ignored"})
    assert [r.text for r in result] == ["only"]


def test_numbered_sorted_numerically():
    result = extract({
        "Recommendation10": "ten",
        "Recommendation2": "two",
        "Recommendation9": "nine",
        "VaccineName": "MMR",
    })
    assert [(r.priority, r.text) for r in result] == [(2, "two"), (9, "nine"), (10, "ten")]


def test_numbered_skips_null_and_unrelated_fields():
    result = extract({
        "Recommendation1": None,
        "Recommendation3": "three",
        "RecommendationNote": "not numbered",
        "Recommendation2x": "not numbered either",
    })
    assert result == [Recommendation(text="three", priority=3)]


def test_no_recommendations():
    assert extract({"VaccineName": "MMR"}) == []


@pytest.mark.parametrize("value", [42, {"text": "x"}, ["ok", 3]])
def test_unrecognized_single_shape(value):
    with pytest.raises(UnrecognizedRecommendationShape):
        extract({"Recommendation": value})


def test_non_string_numbered_value_is_skipped():
    result = extract({"Recommendation1": "first", "Recommendation2": {"code": "x"}, "Recommendation3": ["a"]})
    assert result == [Recommendation(text="first", priority=1)]
