"""
Score aggregation.

Pure functions that turn per-answer scores into section and overall
percentages. Used by the linear report trigger and the panel report.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, NamedTuple

from interview_engine.models.report import ScoreSummary, SectionScore


class ScoredEntry(NamedTuple):
    """One graded item to aggregate."""

    section: str
    score: float
    max_score: float


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves away from zero (52.5 -> 53), unlike ``round``."""
    exponent = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP))


def percentage(score: float, max_score: float, digits: int = 1) -> float:
    """100 x score / max, 0 when there is nothing to score against."""
    if max_score <= 0:
        return 0.0
    return round_half_up(100 * score / max_score, digits)


def aggregate_scores(
    entries: Iterable[ScoredEntry],
    pass_threshold: float,
    digits: int = 1,
    score_digits: int = 2,
) -> ScoreSummary:
    """
    Group entries by section (first-seen order) and compute totals.

    Args:
        entries: Scored items
        pass_threshold: Overall percentage required to pass
        digits: Decimal places kept on percentages
        score_digits: Decimal places kept on section scores

    Returns:
        ScoreSummary with one SectionScore per section
    """
    sections: dict[str, list[float]] = {}
    total = 0.0
    max_total = 0.0

    for entry in entries:
        bucket = sections.setdefault(entry.section, [0.0, 0.0, 0])
        bucket[0] += entry.score
        bucket[1] += entry.max_score
        bucket[2] += 1
        total += entry.score
        max_total += entry.max_score

    section_scores = [
        SectionScore(
            section=name,
            score=round_half_up(score, score_digits),
            max_score=max_score,
            percentage=percentage(score, max_score, digits),
            question_count=int(count),
        )
        for name, (score, max_score, count) in sections.items()
    ]

    overall = percentage(total, max_total, digits)
    return ScoreSummary(
        total_score=round_half_up(total, score_digits),
        max_score=max_total,
        percentage=overall,
        passed=overall >= pass_threshold,
        pass_threshold=pass_threshold,
        sections=section_scores,
    )
