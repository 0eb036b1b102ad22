"""Lookup Tables - Immutable name-keyed reference data for the estimators.

MET values follow the Compendium of Physical Activities. Food baselines are
per-100g averages. Both tables are plain values: pass a different table to the
estimators to substitute reference data.
"""

import re
from dataclasses import dataclass
from typing import Generic, Iterable, Iterator, Mapping, Optional, TypeVar, Union


V = TypeVar("V")

_WHITESPACE = re.compile(r"[\s_]+")


def normalize_name(name: Optional[str]) -> str:
    """Lowercase, trim, and collapse runs of whitespace/underscores to one space."""
    return _WHITESPACE.sub(" ", (name or "").strip().lower())


@dataclass(frozen=True)
class TableMatch(Generic[V]):
    """Result of resolving a name against a table.

    `key` is None when nothing matched and the default was used.
    """

    key: Optional[str]
    value: V


class LookupTable(Generic[V]):
    """Ordered, read-only name -> value table with ranked fuzzy resolution.

    Resolution order for a query:
      1. exact match on the normalized name;
      2. keys contained in the query, longest key first, ties by table order;
      3. if `match_partial_query`, the query contained in a key, first in
         table order;
      4. the default value.
    """

    def __init__(
        self,
        entries: Union[Mapping[str, V], Iterable[tuple[str, V]]],
        default: V,
        *,
        match_partial_query: bool = False,
    ) -> None:
        items = entries.items() if isinstance(entries, Mapping) else entries
        ordered: dict[str, V] = {}
        for name, value in items:
            key = normalize_name(name)
            if key and key not in ordered:
                ordered[key] = value
        self._entries = tuple(ordered.items())
        self._index = dict(self._entries)
        self.default = default
        self.match_partial_query = match_partial_query

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return (key for key, _ in self._entries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_name(name) in self._index

    def __getitem__(self, name: str) -> V:
        return self._index[normalize_name(name)]

    def items(self) -> tuple[tuple[str, V], ...]:
        return self._entries

    def resolve(self, query: Optional[str]) -> TableMatch[V]:
        q = normalize_name(query)
        if not q:
            return TableMatch(None, self.default)

        if q in self._index:
            return TableMatch(q, self._index[q])

        best: Optional[tuple[str, V]] = None
        for key, value in self._entries:
            if key in q and (best is None or len(key) > len(best[0])):
                best = (key, value)
        if best is not None:
            return TableMatch(best[0], best[1])

        if self.match_partial_query:
            for key, value in self._entries:
                if q in key:
                    return TableMatch(key, value)

        return TableMatch(None, self.default)


@dataclass(frozen=True)
class NutrientProfile:
    """Nutrients per 100g."""

    calories: float
    protein: float
    carbs: float
    fat: float
    fiber: float = 0.0
    sugar: float = 0.0


DEFAULT_MET = 4.0
DEFAULT_WEIGHT_KG = 70.0

DEFAULT_MET_TABLE: LookupTable[float] = LookupTable(
    [
        # Cardio
        ("running", 9.8),
        ("running (slow, 5mph)", 8.3),
        ("running (moderate, 6mph)", 9.8),
        ("running (fast, 7.5mph)", 11.0),
        ("running (very fast, 10mph)", 14.5),
        ("jogging", 7.0),
        ("walking (slow)", 2.5),
        ("walking (moderate)", 3.5),
        ("walking (brisk)", 4.3),
        ("walking (uphill)", 6.0),
        ("cycling (leisure)", 4.0),
        ("cycling (moderate, 12-14mph)", 8.0),
        ("cycling (vigorous, 16-19mph)", 10.0),
        ("cycling (stationary, moderate)", 5.5),
        ("cycling (stationary, vigorous)", 8.8),
        ("swimming (leisure)", 6.0),
        ("swimming (laps, moderate)", 7.0),
        ("swimming (laps, vigorous)", 10.0),
        ("jump rope (moderate)", 10.0),
        ("jump rope (fast)", 12.3),
        ("stair climbing", 8.8),
        ("elliptical (moderate)", 5.0),
        ("elliptical (vigorous)", 6.5),
        ("rowing (moderate)", 7.0),
        ("rowing (vigorous)", 8.5),
        # HIIT and classes. Dance classes such as zumba are not listed and use DEFAULT_MET.
        ("hiit", 8.0),
        ("hiit (vigorous)", 10.0),
        ("circuit training", 8.0),
        ("aerobics (low impact)", 5.0),
        ("aerobics (high impact)", 7.0),
        ("cardio kickboxing", 7.0),
        ("tabata", 8.0),
        ("crossfit", 9.0),
        # Strength
        ("weight training (general)", 3.5),
        ("weight training (vigorous)", 6.0),
        ("bench press", 3.8),
        ("squat", 5.0),
        ("deadlift", 6.0),
        ("pull ups", 4.0),
        ("push ups", 3.8),
        ("sit ups", 2.8),
        ("plank", 3.0),
        ("dumbbell training", 3.5),
        ("barbell training", 5.0),
        ("kettlebell training", 8.0),
        ("bodyweight exercises", 4.0),
        ("resistance bands", 3.0),
        ("powerlifting", 6.0),
        # Flexibility and recovery
        ("yoga (hatha)", 2.5),
        ("yoga (vinyasa)", 4.0),
        ("yoga (power)", 4.5),
        ("stretching", 2.3),
        ("pilates", 3.0),
        ("pilates (vigorous)", 4.0),
        ("foam rolling", 2.0),
        ("meditation", 1.3),
        # Sports
        ("football (soccer)", 7.0),
        ("basketball", 6.5),
        ("cricket", 4.8),
        ("badminton", 5.5),
        ("tennis (singles)", 8.0),
        ("tennis (doubles)", 5.0),
        ("table tennis", 4.0),
        ("volleyball", 4.0),
        ("boxing (sparring)", 9.0),
        ("boxing (bag)", 6.0),
        ("martial arts (general)", 8.0),
        ("kabaddi", 7.0),
        ("hockey", 7.5),
        ("rugby", 8.3),
        # Other
        ("dancing (general)", 5.0),
        ("dancing (vigorous)", 7.0),
        ("hiking", 6.0),
        ("rock climbing", 8.0),
        ("skateboarding", 5.0),
        ("surfing", 3.0),
    ],
    default=DEFAULT_MET,
    match_partial_query=True,
)

DEFAULT_FOOD = NutrientProfile(calories=100, protein=5, carbs=15, fat=3)

DEFAULT_FOOD_TABLE: LookupTable[NutrientProfile] = LookupTable(
    [
        ("rice", NutrientProfile(calories=130, protein=2.7, carbs=28, fat=0.3)),
        ("chicken", NutrientProfile(calories=165, protein=31, carbs=0, fat=3.6)),
        ("egg", NutrientProfile(calories=155, protein=13, carbs=1.1, fat=11)),
        ("bread", NutrientProfile(calories=265, protein=9, carbs=49, fat=3.2)),
        ("milk", NutrientProfile(calories=42, protein=3.4, carbs=5, fat=1)),
        ("apple", NutrientProfile(calories=52, protein=0.3, carbs=14, fat=0.2)),
        ("banana", NutrientProfile(calories=89, protein=1.1, carbs=23, fat=0.3)),
        ("pasta", NutrientProfile(calories=131, protein=5, carbs=25, fat=1.1)),
        ("beef", NutrientProfile(calories=250, protein=26, carbs=0, fat=15)),
        ("fish", NutrientProfile(calories=100, protein=20, carbs=0, fat=2)),
    ],
    default=DEFAULT_FOOD,
)
