"""Map a customer's stamp balance onto a business's prize ladder."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

DEFAULT_PRIZE_STEP = 15


@dataclass(frozen=True, slots=True)
class Progression:
    """Where a stamp balance sits between two prize thresholds."""

    stamps_last_prize: int
    stamps_next_prize: int
    next_prize_name: Optional[str]


@dataclass(frozen=True, slots=True)
class PrizeCatalog:
    """Ascending, de-duplicated thresholds plus the prize name for each one."""

    thresholds: tuple[int, ...] = ()
    names: Mapping[int, str] = field(default_factory=dict)

    @classmethod
    def from_prizes(cls, prizes: Iterable[Any]) -> "PrizeCatalog":
        """Build from ORM prizes or mappings exposing ``points_required``/``name``.

        Non-positive or non-numeric thresholds are ignored. When two prizes share a
        threshold the first one seen supplies the name.
        """

        names: dict[int, str] = {}
        for prize in prizes:
            raw_points = _read(prize, "points_required", "pointsRequired")
            try:
                points = int(raw_points)
            except (TypeError, ValueError):
                continue
            if points <= 0:
                continue
            name = _read(prize, "name")
            names.setdefault(points, name)
        return cls(thresholds=tuple(sorted(names)), names=names)

    def name_for(self, threshold: int) -> Optional[str]:
        return self.names.get(threshold)


def _read(prize: Any, *keys: str) -> Any:
    for key in keys:
        if isinstance(prize, Mapping):
            if key in prize:
                return prize[key]
        elif hasattr(prize, key):
            return getattr(prize, key)
    return None


def _step_progression(stamps: int, step: int) -> tuple[int, int]:
    last = (stamps // step) * step
    return last, last + step


def compute_progression(
    stamps: int,
    catalog: PrizeCatalog,
    *,
    default_step: int = DEFAULT_PRIZE_STEP,
) -> Progression:
    """Return the last reached and next prize thresholds for ``stamps``.

    * no thresholds: fixed ``default_step`` ladder without a prize name;
    * one threshold ``t``: repeating ladder of step ``t``;
    * several thresholds: the greatest threshold ``<= stamps`` is "last" and the
      least threshold ``> stamps`` is "next" while ``stamps`` stays within the
      catalog; past the maximum threshold the first threshold repeats as the step.

    A balance equal to a threshold counts as having reached it.
    """

    stamps = max(int(stamps or 0), 0)
    thresholds = catalog.thresholds

    if not thresholds:
        last, following = _step_progression(stamps, default_step)
        return Progression(last, following, None)

    base_step = thresholds[0]
    if len(thresholds) == 1:
        last, following = _step_progression(stamps, base_step)
        return Progression(last, following, catalog.name_for(base_step))

    if stamps <= thresholds[-1]:
        last = max((t for t in thresholds if t <= stamps), default=0)
        following = next((t for t in thresholds if t > stamps), last + base_step)
    else:
        last, following = _step_progression(stamps, base_step)

    name = catalog.name_for(following)
    if name is None:
        name = catalog.name_for(base_step)
    return Progression(last, following, name)


__all__ = ["DEFAULT_PRIZE_STEP", "PrizeCatalog", "Progression", "compute_progression"]
