"""
Health Scoring - Configuration.

============================================================
CONFIGURABLE HEALTH SCORING
============================================================

All scoring parameters are configurable:
- Category weights
- Per-resource breakpoints (good / fair / poor)
- Rating thresholds
- Acceptable cutoff below which recommendations are produced
- Trend window

Configuration can be loaded from:
- Default values
- Environment variables (HEALTH_*)
- YAML config file

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from .models import HealthCategory, HealthRating


logger = logging.getLogger(__name__)


# =============================================================
# CATEGORY WEIGHTS
# =============================================================


@dataclass
class CategoryWeights:
    """
    Weights for each health category.

    All weights must sum to 1.0 for proper scoring.
    """
    performance: float = 0.35
    stability: float = 0.25
    security: float = 0.20
    configuration: float = 0.20

    def __post_init__(self) -> None:
        """Validate weights sum to 1.0."""
        total = self.total()
        if abs(total - 1.0) > 0.001:
            logger.warning(f"Category weights sum to {total}, normalizing to 1.0")
            self._normalize()

    def total(self) -> float:
        return self.performance + self.stability + self.security + self.configuration

    def _normalize(self) -> None:
        total = self.total()
        if total > 0:
            self.performance /= total
            self.stability /= total
            self.security /= total
            self.configuration /= total

    def get_weight(self, category: HealthCategory) -> float:
        return {
            HealthCategory.PERFORMANCE: self.performance,
            HealthCategory.STABILITY: self.stability,
            HealthCategory.SECURITY: self.security,
            HealthCategory.CONFIGURATION: self.configuration,
        }.get(category, 0.0)

    def to_dict(self) -> Dict[str, float]:
        return {
            "performance": self.performance,
            "stability": self.stability,
            "security": self.security,
            "configuration": self.configuration,
        }


# =============================================================
# RESOURCE BREAKPOINTS
# =============================================================


@dataclass
class ResourceBreakpoints:
    """
    Breakpoints of the performance curve for one resource.

    - usage <= good:         100
    - good < usage <= fair:  100 -> 80
    - fair < usage <= poor:  80 -> 60
    - usage > poor:          60 -> 0 at 100
    """
    good: float
    fair: float
    poor: float

    def __post_init__(self) -> None:
        if not self.good < self.fair < self.poor < 100:
            raise ValueError("breakpoints must satisfy good < fair < poor < 100")


@dataclass
class PerformanceConfig:
    """Resource weights inside the performance category, and breakpoints."""
    cpu_weight: float = 0.30
    memory_weight: float = 0.35
    disk_weight: float = 0.25
    temperature_weight: float = 0.10

    cpu: ResourceBreakpoints = field(default_factory=lambda: ResourceBreakpoints(70, 85, 95))
    memory: ResourceBreakpoints = field(default_factory=lambda: ResourceBreakpoints(75, 85, 95))
    disk: ResourceBreakpoints = field(default_factory=lambda: ResourceBreakpoints(80, 90, 95))
    temperature: ResourceBreakpoints = field(default_factory=lambda: ResourceBreakpoints(70, 80, 90))


# =============================================================
# RATING THRESHOLDS
# =============================================================


@dataclass
class RatingThresholds:
    """
    Rating of an overall score.

    - EXCELLENT: score >= excellent
    - GOOD:      score >= good
    - FAIR:      score >= fair
    - POOR:      score >= poor
    - CRITICAL:  below poor
    """
    excellent: float = 90.0
    good: float = 75.0
    fair: float = 60.0
    poor: float = 40.0

    def __post_init__(self) -> None:
        if not self.poor < self.fair < self.good < self.excellent:
            raise ValueError("rating thresholds must be strictly increasing")

    def get_rating(self, score: float) -> HealthRating:
        if score >= self.excellent:
            return HealthRating.EXCELLENT
        elif score >= self.good:
            return HealthRating.GOOD
        elif score >= self.fair:
            return HealthRating.FAIR
        elif score >= self.poor:
            return HealthRating.POOR
        else:
            return HealthRating.CRITICAL

    def to_dict(self) -> Dict[str, float]:
        return {
            "excellent": self.excellent,
            "good": self.good,
            "fair": self.fair,
            "poor": self.poor,
        }


# =============================================================
# MAIN CONFIGURATION
# =============================================================


@dataclass
class HealthScoringConfig:
    """
    Main configuration for health scoring.

    Combines all sub-configurations.
    """
    weights: CategoryWeights = field(default_factory=CategoryWeights)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    ratings: RatingThresholds = field(default_factory=RatingThresholds)

    # Category score below which recommendations are generated
    acceptable_score: float = 80.0

    # Trend analysis
    trend_window: int = 5
    trend_delta: float = 5.0

    # Report
    max_report_recommendations: int = 10

    @classmethod
    def from_env(cls) -> "HealthScoringConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - HEALTH_WEIGHT_PERFORMANCE
        - HEALTH_WEIGHT_STABILITY
        - HEALTH_WEIGHT_SECURITY
        - HEALTH_WEIGHT_CONFIGURATION
        - HEALTH_ACCEPTABLE_SCORE
        - HEALTH_TREND_WINDOW
        """
        config = cls()

        if os.getenv("HEALTH_WEIGHT_PERFORMANCE"):
            config.weights.performance = float(os.getenv("HEALTH_WEIGHT_PERFORMANCE"))
        if os.getenv("HEALTH_WEIGHT_STABILITY"):
            config.weights.stability = float(os.getenv("HEALTH_WEIGHT_STABILITY"))
        if os.getenv("HEALTH_WEIGHT_SECURITY"):
            config.weights.security = float(os.getenv("HEALTH_WEIGHT_SECURITY"))
        if os.getenv("HEALTH_WEIGHT_CONFIGURATION"):
            config.weights.configuration = float(os.getenv("HEALTH_WEIGHT_CONFIGURATION"))

        # Normalize weights after loading
        config.weights._normalize()

        if os.getenv("HEALTH_ACCEPTABLE_SCORE"):
            config.acceptable_score = float(os.getenv("HEALTH_ACCEPTABLE_SCORE"))
        if os.getenv("HEALTH_TREND_WINDOW"):
            config.trend_window = int(os.getenv("HEALTH_TREND_WINDOW"))

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "HealthScoringConfig":
        """Load configuration from YAML file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load YAML config from {path}: {e}")
            return cls()

        config = cls()

        if "weights" in data:
            w = data["weights"]
            config.weights = CategoryWeights(
                performance=w.get("performance", 0.35),
                stability=w.get("stability", 0.25),
                security=w.get("security", 0.20),
                configuration=w.get("configuration", 0.20),
            )

        if "breakpoints" in data:
            for resource, points in data["breakpoints"].items():
                if hasattr(config.performance, resource) and isinstance(points, Mapping):
                    setattr(config.performance, resource, ResourceBreakpoints(
                        good=points["good"], fair=points["fair"], poor=points["poor"],
                    ))

        if "ratings" in data:
            r = data["ratings"]
            config.ratings = RatingThresholds(
                excellent=r.get("excellent", 90.0),
                good=r.get("good", 75.0),
                fair=r.get("fair", 60.0),
                poor=r.get("poor", 40.0),
            )

        if "acceptable_score" in data:
            config.acceptable_score = float(data["acceptable_score"])
        if "trend_window" in data:
            config.trend_window = int(data["trend_window"])

        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weights": self.weights.to_dict(),
            "ratings": self.ratings.to_dict(),
            "acceptable_score": self.acceptable_score,
            "trend_window": self.trend_window,
            "trend_delta": self.trend_delta,
        }
