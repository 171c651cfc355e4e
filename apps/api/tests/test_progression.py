import pytest

from business_api.services.loyalty import PrizeCatalog, compute_progression


def _catalog(*thresholds: int) -> PrizeCatalog:
    return PrizeCatalog.from_prizes(
        [{"name": f"Prize {value}", "points_required": value} for value in thresholds]
    )


@pytest.mark.parametrize(
    ("stamps", "expected"),
    [
        (14, (0, 15)),
        (15, (15, 30)),
        (31, (30, 45)),
    ],
)
def test_single_threshold_repeats_as_step(stamps: int, expected: tuple[int, int]) -> None:
    progression = compute_progression(stamps, _catalog(15))

    assert (progression.stamps_last_prize, progression.stamps_next_prize) == expected
    assert progression.next_prize_name == "Prize 15"


def test_empty_catalog_uses_default_step_without_name() -> None:
    progression = compute_progression(0, PrizeCatalog())

    assert progression.stamps_last_prize == 0
    assert progression.stamps_next_prize == 15
    assert progression.next_prize_name is None


def test_default_step_is_configurable() -> None:
    progression = compute_progression(21, PrizeCatalog(), default_step=10)

    assert (progression.stamps_last_prize, progression.stamps_next_prize) == (20, 30)


def test_multi_threshold_within_catalog() -> None:
    progression = compute_progression(30, _catalog(10, 25, 50))

    assert progression.stamps_last_prize == 25
    assert progression.stamps_next_prize == 50
    assert progression.next_prize_name == "Prize 50"


def test_multi_threshold_boundary_counts_as_reached() -> None:
    progression = compute_progression(25, _catalog(50, 10, 25))

    assert progression.stamps_last_prize == 25
    assert progression.stamps_next_prize == 50


def test_multi_threshold_below_first_prize() -> None:
    progression = compute_progression(3, _catalog(10, 25, 50))

    assert progression.stamps_last_prize == 0
    assert progression.stamps_next_prize == 10
    assert progression.next_prize_name == "Prize 10"


def test_multi_threshold_at_maximum_wraps_from_last_prize() -> None:
    progression = compute_progression(50, _catalog(10, 25, 50))

    assert progression.stamps_last_prize == 50
    assert progression.stamps_next_prize == 60
    assert progression.next_prize_name == "Prize 10"


def test_multi_threshold_beyond_maximum_wraps_with_first_step() -> None:
    progression = compute_progression(60, _catalog(10, 25, 50))

    assert progression.stamps_last_prize == 60
    assert progression.stamps_next_prize == 70
    assert progression.next_prize_name == "Prize 10"


def test_catalog_ignores_invalid_thresholds_and_keeps_first_name() -> None:
    catalog = PrizeCatalog.from_prizes(
        [
            {"name": "Coffee", "pointsRequired": 10},
            {"name": "Duplicate", "points_required": 10},
            {"name": "Broken", "points_required": "n/a"},
            {"name": "Zero", "points_required": 0},
        ]
    )

    assert catalog.thresholds == (10,)
    assert catalog.name_for(10) == "Coffee"
