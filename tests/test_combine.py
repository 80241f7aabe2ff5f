import math

import pytest
from sms_categorizer.combine import (
    INSUFFICIENT_DATA_REASON,
    NO_PATTERN_REASON,
    build_result,
    clamp_confidence,
    combine_suggestions,
    empty_result,
)
from sms_categorizer.models import CategorySuggestion


def _s(cid: int, conf: float, reason: str = "r", name: str | None = None) -> CategorySuggestion:
    return CategorySuggestion(
        category_id=cid, category_name=name or f"C{cid}", confidence=conf, reason=reason
    )


def test_clamp_confidence():
    assert clamp_confidence(-0.2) == 0.0
    assert clamp_confidence(1.7) == 1.0
    assert clamp_confidence(0.42) == 0.42
    assert clamp_confidence(math.nan) == 0.0


def test_repeated_category_merges_with_damping_and_joined_reasons():
    ranked = combine_suggestions([_s(1, 0.6, "a"), _s(2, 0.5, "b"), _s(1, 0.3, "c")])
    assert [s.category_id for s in ranked] == [1, 2]
    assert ranked[0].confidence == pytest.approx((0.6 + 0.3) * 0.8)
    assert ranked[0].reason == "a + c"


def test_merge_is_capped():
    ranked = combine_suggestions([_s(1, 0.9), _s(1, 0.9)])
    assert ranked[0].confidence == pytest.approx(0.95)


def test_ties_keep_first_seen_order():
    ranked = combine_suggestions([_s(3, 0.4), _s(1, 0.4), _s(2, 0.4)])
    assert [s.category_id for s in ranked] == [3, 1, 2]


def test_build_result_prefills_only_above_half():
    strong = build_result([_s(1, 0.51, "x"), _s(2, 0.2)])
    assert (strong.category_id, strong.category_name) == (1, "C1")
    assert strong.reason == "x"

    weak = build_result([_s(1, 0.5)])
    assert weak.category_id is None and weak.category_name is None
    assert weak.confidence == pytest.approx(0.5)
    assert len(weak.suggestions) == 1


def test_build_result_keeps_at_most_five_suggestions():
    result = build_result(combine_suggestions(_s(i, 0.1 * i) for i in range(1, 9)))
    assert len(result.suggestions) == 5
    assert result.suggestions[0].category_id == 8


def test_no_suggestions_and_empty_result_reasons():
    none = build_result([])
    assert none.confidence == 0.0 and none.reason == NO_PATTERN_REASON
    assert none.suggestions == ()
    assert empty_result().reason == INSUFFICIENT_DATA_REASON


def test_suggestion_rejects_out_of_range_confidence():
    with pytest.raises(ValueError):
        _s(1, 1.2)
    with pytest.raises(ValueError):
        _s(1, True)  # type: ignore[arg-type]
