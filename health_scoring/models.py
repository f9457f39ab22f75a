"""
Health Scoring - Data Models.

============================================================
CORE DATA STRUCTURES
============================================================

- HealthCategory: performance / stability / security / configuration
- HealthRating: qualitative rating of the overall score
- HealthFactor: one sub-check that dragged a category down
- CategoryScore: score of one category with its factors
- Recommendation: actionable advice with a priority
- HealthScore: composite result of one scoring call
- HealthTrend / HealthReport: derived views over scores

All models are values: produced by a scoring call, never mutated.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


# =============================================================
# ENUMS
# =============================================================


class HealthCategory(str, Enum):
    """Scoring categories, in recommendation order."""
    PERFORMANCE = "performance"
    STABILITY = "stability"
    SECURITY = "security"
    CONFIGURATION = "configuration"


class HealthRating(str, Enum):
    """Qualitative rating of an overall score."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    CRITICAL = "critical"


class RecommendationPriority(str, Enum):
    """Recommendation priority; `weight` orders the final list."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def weight(self) -> int:
        return _PRIORITY_WEIGHTS[self]


_PRIORITY_WEIGHTS = {
    RecommendationPriority.CRITICAL: 4,
    RecommendationPriority.HIGH: 3,
    RecommendationPriority.MEDIUM: 2,
    RecommendationPriority.LOW: 1,
}


class TrendDirection(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"
    INSUFFICIENT_DATA = "insufficient_data"


# =============================================================
# SCORES
# =============================================================


@dataclass(frozen=True)
class HealthFactor:
    """
    A sub-check that scored below its acceptable level.

    `key` identifies the check (cpu, uptime, firewall, monitoring, ...);
    `value` is the raw reading when there is one; `issues` lists the
    configuration problems found by configuration checks.
    """
    key: str
    score: float
    description: str
    value: Optional[float] = None
    issues: Tuple[str, ...] = ()
    subjects: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "score": self.score,
            "description": self.description,
            "value": self.value,
            "issues": list(self.issues),
            "subjects": list(self.subjects),
        }


@dataclass(frozen=True)
class CategoryScore:
    """Score for one category."""
    category: HealthCategory
    score: int
    weight: float
    factors: Tuple[HealthFactor, ...] = ()

    @property
    def weighted_score(self) -> float:
        return self.score * self.weight

    def get_factor(self, key: str) -> Optional[HealthFactor]:
        for factor in self.factors:
            if factor.key == key:
                return factor
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "weight": self.weight,
            "factors": [f.to_dict() for f in self.factors],
        }


@dataclass(frozen=True)
class Recommendation:
    """Actionable advice derived from a low category score."""
    category: HealthCategory
    priority: RecommendationPriority
    title: str
    description: str
    action: str
    impact: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "priority": self.priority.value,
            "title": self.title,
            "description": self.description,
            "action": self.action,
            "impact": self.impact,
        }


@dataclass(frozen=True)
class HealthScore:
    """
    Composite health judgment of one snapshot.

    `timestamp` is the snapshot's timestamp, so identical inputs give
    identical scores.
    """
    overall: int
    rating: HealthRating
    breakdown: Dict[HealthCategory, CategoryScore]
    recommendations: Tuple[Recommendation, ...] = ()
    timestamp: Optional[datetime] = None

    def category_score(self, category: HealthCategory) -> int:
        return self.breakdown[category].score

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "rating": self.rating.value,
            "breakdown": {c.value: s.to_dict() for c, s in self.breakdown.items()},
            "recommendations": [r.to_dict() for r in self.recommendations],
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


# =============================================================
# DERIVED VIEWS
# =============================================================


@dataclass(frozen=True)
class HealthTrend:
    """Direction of recent overall scores."""
    direction: TrendDirection
    message: str
    change: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trend": self.direction.value,
            "message": self.message,
            "change": self.change,
        }


@dataclass(frozen=True)
class HealthReport:
    """Summary report built on one HealthScore."""
    score: HealthScore
    recommendations: Tuple[Recommendation, ...]
    critical_issues: int
    high_priority_issues: int
    total_recommendations: int
    categories: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.score.timestamp.isoformat() if self.score.timestamp else None,
            "score": self.score.overall,
            "rating": self.score.rating.value,
            "breakdown": {c.value: s.to_dict() for c, s in self.score.breakdown.items()},
            "recommendations": [r.to_dict() for r in self.recommendations],
            "summary": {
                "critical_issues": self.critical_issues,
                "high_priority_issues": self.high_priority_issues,
                "total_recommendations": self.total_recommendations,
                "categories": dict(self.categories),
            },
        }
