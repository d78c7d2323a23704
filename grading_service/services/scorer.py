# services/scorer.py
"""Aggregate per-question results into a score and a pass/fail verdict."""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..models.attempt import GradingStatus, QuestionResult
from ..models.quiz import QuestionBase


@dataclass(frozen=True)
class ScoreCard:
    score: float
    total_points: int
    passed: Optional[bool]

    @property
    def percentage(self) -> Optional[int]:
        return display_percentage(self.score, self.total_points)


def display_percentage(score: float, total_points: int) -> Optional[int]:
    """Round half-up to a whole percent. Presentation only, never used for pass/fail."""
    if total_points <= 0:
        return None
    return int(math.floor(score / total_points * 100 + 0.5))


def has_pending(results: Iterable[QuestionResult]) -> bool:
    return any(r.grading_status == GradingStatus.PENDING for r in results)


def score_results(
    questions: List[QuestionBase],
    results: List[QuestionResult],
    passing_score_percent: int,
) -> ScoreCard:
    return score_against_total(
        results, sum(q.points for q in questions), passing_score_percent
    )


def score_against_total(
    results: List[QuestionResult],
    total_points: int,
    passing_score_percent: int,
) -> ScoreCard:
    """Score results when the question set is known only through its point total"""
    score = sum(r.awarded_points for r in results)

    if has_pending(results):
        passed = None
    elif total_points == 0:
        # A zero-point quiz cannot be passed
        passed = False
    else:
        passed = (score / total_points * 100) >= passing_score_percent

    return ScoreCard(score=score, total_points=total_points, passed=passed)
