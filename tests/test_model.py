"""Tests for binary relations: support checks agree with pairwise evaluation."""

from datetime import date

import pytest

from core.model import DomainView, Relation, Slot


def _slots(days, minutes):
    return [Slot(date(2025, 1, d), m) for d in days for m in minutes]


DOMAIN_A = _slots([1, 2], [480, 500, 540])
DOMAIN_B = _slots([1, 2], [470, 510])


@pytest.mark.parametrize(
    "relation",
    [
        Relation("c", "constraint", "mustBeBefore", 0, 1),
        Relation("c", "constraint", "mustBeAfter", 0, 1),
        Relation("c", "constraint", "mustBeWithin", 0, 1, high=15),
        Relation("overlap:a|b", "overlap", "noOverlap", 0, 1, low=30, high=45),
        Relation("c", "constraint", "cantBeNextTo", 0, 1),
    ],
    ids=lambda r: r.kind,
)
@pytest.mark.parametrize("narrow_day", [None, 1])
def test_supported_matches_pairwise_allows(relation, narrow_day):
    other_b = [s for s in DOMAIN_B if narrow_day is None or s.date.day == narrow_day]
    other_a = [s for s in DOMAIN_A if narrow_day is None or s.date.day == narrow_day]
    view_b, view_a = DomainView(other_b), DomainView(other_a)
    for value in DOMAIN_A:
        expected = any(relation.allows(value, sb) for sb in other_b)
        assert relation.supported(value, True, view_b) == expected, value
    for value in DOMAIN_B:
        expected = any(relation.allows(sa, value) for sa in other_a)
        assert relation.supported(value, False, view_a) == expected, value


def test_ordering_ignores_other_days():
    before = Relation("c", "constraint", "mustBeBefore", 0, 1)
    assert before.allows(Slot(date(2025, 1, 2), 600), Slot(date(2025, 1, 1), 420))
    assert not before.allows(Slot(date(2025, 1, 1), 600), Slot(date(2025, 1, 1), 420))


def test_no_overlap_uses_each_duration():
    rel = Relation("overlap:a|b", "overlap", "noOverlap", 0, 1, low=30, high=45)
    day = date(2025, 1, 1)
    assert rel.allows(Slot(day, 480), Slot(day, 510))
    assert not rel.allows(Slot(day, 480), Slot(day, 509))
    assert rel.allows(Slot(day, 525), Slot(day, 480))
    assert not rel.allows(Slot(day, 524), Slot(day, 480))
    # untimed instances never collide
    assert rel.allows(Slot(day), Slot(day, 480))
