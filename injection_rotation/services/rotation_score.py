"""
Rotation quality score.

The score (0-100) combines three independent factors over the most recent window of injections:

- diversity (up to 40 points): distinct sites used in the window relative to every site in the catalog.
- repeat penalty (up to 30 points): share of consecutive injections that reuse the previous site.
- evenness (up to 30 points): how close the least-used site in the window is to the most-used one.

Diversity alone cannot tell "two sites ping-ponged with a third used once" apart from a good rotation,
which is why the other two factors exist.
"""
import math
from collections import Counter
from typing import Sequence

from injection_rotation.models.enums import ScoreLabel
from injection_rotation.models.injection import InjectionRecord, RotationBreakdown

DEFAULT_WINDOW_SIZE = 30
DIVERSITY_WEIGHT = 40
REPEAT_WEIGHT = 30
EVENNESS_WEIGHT = 30
PERFECT_SCORE = 100

GREAT_THRESHOLD = 75
FAIR_THRESHOLD = 50


def recent_window(history: Sequence[InjectionRecord], window_size: int = DEFAULT_WINDOW_SIZE) -> list:
    if window_size <= 0:
        return []
    return list(history[-window_size:])


def diversity_ratio(window: Sequence[InjectionRecord], catalog_size: int) -> float:
    if catalog_size <= 0:
        return 0.0
    return len({r.site_id for r in window}) / catalog_size


def repeat_penalty(window: Sequence[InjectionRecord]) -> float:
    if len(window) < 2:
        return 0.0
    repeats = sum(1 for prev, curr in zip(window, window[1:]) if curr.site_id == prev.site_id)
    return repeats / (len(window) - 1)


def evenness(window: Sequence[InjectionRecord]) -> float:
    counts = Counter(r.site_id for r in window)
    if not counts:
        return 1.0
    max_count = max(counts.values())
    min_count = min(counts.values())
    if max_count == 0:
        return 1.0
    return 1 - (max_count - min_count) / max_count


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_label(score: int) -> ScoreLabel:
    if score >= GREAT_THRESHOLD:
        return ScoreLabel.GREAT
    if score >= FAIR_THRESHOLD:
        return ScoreLabel.FAIR
    return ScoreLabel.POOR


def rotation_breakdown(
    history: Sequence[InjectionRecord],
    catalog_size: int,
    window_size: int = DEFAULT_WINDOW_SIZE,
) -> RotationBreakdown:
    if not history:
        return RotationBreakdown(score=PERFECT_SCORE, label=score_label(PERFECT_SCORE))

    window = recent_window(history, window_size)
    diversity = diversity_ratio(window, catalog_size)
    penalty = repeat_penalty(window)
    even = evenness(window)

    raw = diversity * DIVERSITY_WEIGHT + (1 - penalty) * REPEAT_WEIGHT + even * EVENNESS_WEIGHT
    score = _round_half_up(max(0.0, min(float(PERFECT_SCORE), raw)))

    return RotationBreakdown(
        score=score,
        label=score_label(score),
        window_size=len(window),
        diversity=diversity,
        repeat_penalty=penalty,
        evenness=even,
    )


def rotation_score(
    history: Sequence[InjectionRecord],
    catalog_size: int,
    window_size: int = DEFAULT_WINDOW_SIZE,
) -> int:
    return rotation_breakdown(history, catalog_size, window_size).score
