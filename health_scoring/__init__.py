"""
Health Scoring Package.

============================================================
PURPOSE
============================================================
Weighted 0-100 health score of an installation, per-category
breakdown, qualitative rating, and prioritized recommendations.

Category weights:
- performance    0.35
- stability      0.25
- security       0.20
- configuration  0.20

============================================================
"""

from .models import (
    HealthCategory,
    HealthRating,
    RecommendationPriority,
    TrendDirection,
    HealthFactor,
    CategoryScore,
    Recommendation,
    HealthScore,
    HealthTrend,
    HealthReport,
)
from .config import (
    CategoryWeights,
    ResourceBreakpoints,
    PerformanceConfig,
    RatingThresholds,
    HealthScoringConfig,
)
from .scorers import (
    BaseCategoryScorer,
    PerformanceScorer,
    StabilityScorer,
    SecurityScorer,
    ConfigurationScorer,
    CategoryScorerFactory,
    resource_score,
    uptime_score,
)
from .recommendations import build_recommendations
from .engine import HealthScorer, rating


__all__ = [
    # Models
    "HealthCategory",
    "HealthRating",
    "RecommendationPriority",
    "TrendDirection",
    "HealthFactor",
    "CategoryScore",
    "Recommendation",
    "HealthScore",
    "HealthTrend",
    "HealthReport",

    # Config
    "CategoryWeights",
    "ResourceBreakpoints",
    "PerformanceConfig",
    "RatingThresholds",
    "HealthScoringConfig",

    # Scorers
    "BaseCategoryScorer",
    "PerformanceScorer",
    "StabilityScorer",
    "SecurityScorer",
    "ConfigurationScorer",
    "CategoryScorerFactory",
    "resource_score",
    "uptime_score",
    "build_recommendations",

    # Engine
    "HealthScorer",
    "rating",
]
