# tests/test_filter_pattern.py
import os

import pytest
import yaml

from lambdas.common.errors import FilterPatternError
from lambdas.common.settings import DEFAULT_FILTER_PATTERN
from lambdas.subscription_filter.filter_pattern import FilterPattern

CASES_PATH = os.path.join(os.path.dirname(__file__), "fixtures", "filter_cases.yml")

with open(CASES_PATH, "r") as f:
    FILTER_CASES = yaml.safe_load(f)


@pytest.mark.parametrize(
    "case", FILTER_CASES["cases"], ids=lambda c: f"{c['pattern']} <- {c['message']}"
)
def test_pattern_matching(case):
    pattern = FilterPattern.parse(case["pattern"])

    assert pattern.matches(case["message"]) is case["expected"]


@pytest.mark.parametrize("text", FILTER_CASES["invalid"])
def test_invalid_patterns_are_rejected(text):
    with pytest.raises(FilterPatternError):
        FilterPattern.parse(text)


def test_default_pattern_is_the_error_or_warn_filter():
    assert FILTER_CASES["default"] == DEFAULT_FILTER_PATTERN
    assert FilterPattern.parse(DEFAULT_FILTER_PATTERN).is_json


def test_and_binds_tighter_than_or():
    pattern = FilterPattern.parse('{ $.a = "1" || $.b = "2" && $.c = "3" }')

    assert pattern.matches('{"a": "1"}')
    assert not pattern.matches('{"b": "2"}')
    assert pattern.matches('{"b": "2", "c": "3"}')


def test_numeric_literal_matches_ints_and_floats():
    pattern = FilterPattern.parse('{ $.status = 500 }')

    assert pattern.matches('{"status": 500}')
    assert pattern.matches('{"status": 500.0}')
    assert not pattern.matches('{"status": "500"}')
    assert not pattern.matches('{"status": true}')
