"""
Validation Models.

============================================================
PURPOSE
============================================================
Data models for installation validation runs.

- ValidationTest: a registered, independently runnable check
- TestOutcome: what a check reports back
- TestResult: one executed check, timed, with its final status
- ValidationSummary / ValidationReport: aggregates of one run

Results live for the duration of one run only; a new run starts
from an empty result list.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple


# ============================================================
# ENUMS
# ============================================================

class TestCategory(str, Enum):
    """Area of the installation a test covers."""
    __test__ = False

    SYSTEM = "system"
    HARDWARE = "hardware"
    NETWORK = "network"
    CONFIGURATION = "configuration"
    APPLICATIONS = "applications"
    SECURITY = "security"
    PERFORMANCE = "performance"
    METADATA = "metadata"


class TestPriority(str, Enum):
    """How much a failing test matters."""
    __test__ = False

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TestStatus(str, Enum):
    """Lifecycle / final status of a test result."""
    __test__ = False

    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    WARNING = "warning"      # Passed, with a caveat
    ERROR = "error"          # The test itself raised


# ============================================================
# TEST DEFINITION
# ============================================================

@dataclass
class TestOutcome:
    """
    Value returned by a test function.

    A passing outcome with a `warning` is reported as WARNING.
    """
    __test__ = False

    passed: bool
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)
    warning: Optional[str] = None


@dataclass
class ValidationFilter:
    """
    Selection of tests for a run.

    Empty criteria select everything; non-empty criteria intersect.
    """
    categories: Sequence[TestCategory] = ()
    priorities: Sequence[TestPriority] = ()
    test_ids: Sequence[str] = ()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ValidationFilter":
        data = data or {}
        return cls(
            categories=tuple(TestCategory(c) for c in data.get("categories") or ()),
            priorities=tuple(TestPriority(p) for p in data.get("priorities") or ()),
            test_ids=tuple(data.get("test_ids") or ()),
        )

    def matches(self, test: "ValidationTest") -> bool:
        if self.categories and test.category not in self.categories:
            return False
        if self.priorities and test.priority not in self.priorities:
            return False
        if self.test_ids and test.id not in self.test_ids:
            return False
        return True


TestFunction = Callable[[ValidationFilter], Awaitable[TestOutcome]]


@dataclass
class ValidationTest:
    """A registered validation test."""
    id: str
    name: str
    category: TestCategory
    priority: TestPriority
    description: str
    run: TestFunction

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "priority": self.priority.value,
            "description": self.description,
        }


# ============================================================
# RESULTS
# ============================================================

@dataclass
class TestResult:
    """Result of executing one validation test."""
    __test__ = False

    id: str
    name: str
    category: TestCategory
    priority: TestPriority
    description: str
    started_at: datetime

    status: TestStatus = TestStatus.RUNNING
    passed: bool = False
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)
    warning: Optional[str] = None
    error: Optional[str] = None

    completed_at: Optional[datetime] = None
    duration_ms: Optional[float] = None

    @classmethod
    def start(cls, test: ValidationTest, started_at: datetime) -> "TestResult":
        return cls(
            id=test.id,
            name=test.name,
            category=test.category,
            priority=test.priority,
            description=test.description,
            started_at=started_at,
        )

    def apply(self, outcome: TestOutcome) -> None:
        """Copy an outcome into this result and derive the status."""
        self.passed = bool(outcome.passed)
        self.message = outcome.message
        self.details = dict(outcome.details or {})
        self.recommendations = list(outcome.recommendations or [])
        self.warning = outcome.warning

        if self.passed and self.warning:
            self.status = TestStatus.WARNING
        elif self.passed:
            self.status = TestStatus.PASSED
        else:
            self.status = TestStatus.FAILED

    def fail_with_error(self, error: Exception) -> None:
        self.passed = False
        self.status = TestStatus.ERROR
        self.message = f"Test failed with error: {error}"
        self.error = str(error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "priority": self.priority.value,
            "description": self.description,
            "status": self.status.value,
            "passed": self.passed,
            "message": self.message,
            "details": self.details,
            "recommendations": list(self.recommendations),
            "warning": self.warning,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
        }


@dataclass
class BreakdownCounts:
    total: int = 0
    passed: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"total": self.total, "passed": self.passed, "failed": self.failed}


@dataclass
class ValidationSummary:
    """
    Aggregate of a result list.

    `passed` counts results whose passed flag is set (warnings
    included); `failed` and `errors` count by status.
    """
    total: int = 0
    passed: int = 0
    failed: int = 0
    warnings: int = 0
    errors: int = 0
    score: int = 0
    is_healthy: bool = True
    by_category: Dict[str, BreakdownCounts] = field(default_factory=dict)
    by_priority: Dict[str, BreakdownCounts] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "warnings": self.warnings,
            "errors": self.errors,
            "score": self.score,
            "is_healthy": self.is_healthy,
            "by_category": {k: v.to_dict() for k, v in self.by_category.items()},
            "by_priority": {k: v.to_dict() for k, v in self.by_priority.items()},
        }


@dataclass
class ValidationReport:
    """Everything one validation run produced."""
    success: bool
    summary: ValidationSummary
    results: Tuple[TestResult, ...]
    duration_ms: float
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "summary": self.summary.to_dict(),
            "results": [r.to_dict() for r in self.results],
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ValidationRecommendation:
    """A recommendation flattened out of a failed or warning result."""
    test_id: str
    test_name: str
    category: TestCategory
    priority: TestPriority
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test_id": self.test_id,
            "test_name": self.test_name,
            "category": self.category.value,
            "priority": self.priority.value,
            "recommendation": self.recommendation,
        }
