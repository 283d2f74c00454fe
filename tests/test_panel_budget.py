import pytest
from hypothesis import given, settings, strategies as st

from comicbook.pipeline.budget import SHORT_STORY_MAX_CHARS, compute_budget


@pytest.mark.parametrize(
    "char_count, target_range, max_panels",
    [
        (0, "8-10", 10),
        (1, "8-10", 10),
        (1500, "8-10", 10),
        (1501, "15-20", 20),
        (10000, "15-20", 20),
    ],
)
def test_budget_by_length(char_count, target_range, max_panels):
    budget = compute_budget(char_count)
    assert budget.target_range == target_range
    assert budget.max_panels == max_panels


@pytest.mark.property
@given(a=st.integers(min_value=0, max_value=20000), b=st.integers(min_value=0, max_value=20000))
@settings(max_examples=100, deadline=None)
def test_budget_is_monotonic(a, b):
    low, high = sorted((a, b))
    assert compute_budget(low).max_panels <= compute_budget(high).max_panels


def test_threshold_constant():
    assert SHORT_STORY_MAX_CHARS == 1500
