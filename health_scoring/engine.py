"""
Health Scoring - Engine.

============================================================
PURPOSE
============================================================
Composite 0-100 health judgment of an installation.

    scorer = HealthScorer()
    health = scorer.score(snapshot, config)
    health.overall, health.rating, health.recommendations

score() is a pure function of (snapshot, configuration): it reads
no clock, keeps no state between calls, and never raises for bad
input. A category whose evaluation fails scores 0 and says why.

============================================================
"""

import logging
from typing import Any, Dict, Optional, Sequence

from core.installation_config import InstallationConfig
from monitoring.models import Snapshot

from .config import HealthScoringConfig
from .models import (
    CategoryScore,
    HealthCategory,
    HealthFactor,
    HealthRating,
    HealthReport,
    HealthScore,
    HealthTrend,
    RecommendationPriority,
    TrendDirection,
)
from .recommendations import build_recommendations
from .scorers import BaseCategoryScorer, CategoryScorerFactory, clamp_score


logger = logging.getLogger(__name__)


class HealthScorer:
    """Weighted composite of the four category scorers."""

    def __init__(self, config: Optional[HealthScoringConfig] = None):
        self._config = config or HealthScoringConfig()
        self._scorers: Dict[HealthCategory, BaseCategoryScorer] = CategoryScorerFactory.create_all(self._config)

    @property
    def config(self) -> HealthScoringConfig:
        return self._config

    # =========================================================
    # SCORING
    # =========================================================

    def score(self, snapshot: Snapshot, config: Any = None) -> HealthScore:
        """
        Score a snapshot.

        Args:
            snapshot: Metrics snapshot
            config: InstallationConfig or the raw configuration mapping;
                None scores against an empty (unconfigured) document

        Returns:
            HealthScore with overall score, rating, breakdown and
            sorted recommendations
        """
        installation = InstallationConfig.coerce(config if config is not None else {})

        breakdown: Dict[HealthCategory, CategoryScore] = {}
        for category, scorer in self._scorers.items():
            breakdown[category] = self._score_category(scorer, snapshot, installation)

        overall = clamp_score(sum(s.score * s.weight for s in breakdown.values()))
        recommendations = build_recommendations(breakdown, self._config.acceptable_score)

        health = HealthScore(
            overall=overall,
            rating=self.rating(overall),
            breakdown=breakdown,
            recommendations=tuple(recommendations),
            timestamp=snapshot.timestamp,
        )
        self._log_evaluation(health)
        return health

    def _score_category(
        self,
        scorer: BaseCategoryScorer,
        snapshot: Snapshot,
        config: InstallationConfig,
    ) -> CategoryScore:
        try:
            return scorer.score(snapshot, config)
        except Exception as e:
            logger.error(f"Scoring {scorer.category.value} failed: {e}", exc_info=True)
            return CategoryScore(
                category=scorer.category,
                score=0,
                weight=scorer.weight,
                factors=(HealthFactor(
                    key="evaluation_error",
                    score=0.0,
                    description=f"Evaluation error: {e}",
                ),),
            )

    def rating(self, overall: float) -> HealthRating:
        return self._config.ratings.get_rating(overall)

    def _log_evaluation(self, health: HealthScore) -> None:
        message = (
            f"Health score {health.overall} ({health.rating.value}), "
            f"{len(health.recommendations)} recommendation(s)"
        )
        if health.rating in (HealthRating.POOR, HealthRating.CRITICAL):
            logger.warning(message)
        else:
            logger.debug(message)

    # =========================================================
    # REPORTS
    # =========================================================

    def generate_health_report(self, snapshot: Snapshot, config: Any = None) -> HealthReport:
        """Score plus the top recommendations and summary counts."""
        health = self.score(snapshot, config)
        recs = health.recommendations
        return HealthReport(
            score=health,
            recommendations=recs[:self._config.max_report_recommendations],
            critical_issues=sum(1 for r in recs if r.priority == RecommendationPriority.CRITICAL),
            high_priority_issues=sum(1 for r in recs if r.priority == RecommendationPriority.HIGH),
            total_recommendations=len(recs),
            categories={c.value: s.score for c, s in health.breakdown.items()},
        )

    def analyze_health_trend(
        self,
        current_score: float,
        historical_scores: Sequence[float],
    ) -> HealthTrend:
        """
        Compare the current score with the mean of recent ones.

        Args:
            current_score: Latest overall score
            historical_scores: Earlier overall scores, oldest first

        Returns:
            HealthTrend; insufficient_data with fewer than two history entries
        """
        if len(historical_scores) < 2:
            return HealthTrend(
                direction=TrendDirection.INSUFFICIENT_DATA,
                message="Not enough data for trend analysis",
            )

        recent = list(historical_scores)[-self._config.trend_window:]
        change = current_score - sum(recent) / len(recent)
        delta = self._config.trend_delta

        if change > delta:
            return HealthTrend(TrendDirection.IMPROVING, "System health is improving", change)
        if change < -delta:
            return HealthTrend(TrendDirection.DECLINING, "System health is declining", change)
        return HealthTrend(TrendDirection.STABLE, "System health is stable", change)


def rating(overall: float) -> HealthRating:
    """Rating with the default thresholds."""
    return HealthScoringConfig().ratings.get_rating(overall)
