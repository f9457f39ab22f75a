"""
Alert Evaluator.

============================================================
PURPOSE
============================================================
Compares one snapshot against the alert thresholds.

evaluate() is a pure function of (snapshot, thresholds): it keeps
no history, applies no cooldown, and does not look at any later
snapshot. Cooldowns and deduplication belong to the notifiers.

============================================================
"""

import logging
from typing import List, Optional

from ..config import AlertThresholds
from ..models import Alert, Snapshot
from .rules import AlertRule, get_default_rules


logger = logging.getLogger(__name__)


class AlertEvaluator:
    """Runs every rule against a snapshot and concatenates the results."""

    def __init__(self, rules: Optional[List[AlertRule]] = None):
        self._rules = rules if rules is not None else get_default_rules()
        self._rules_by_id = {r.rule_id: r for r in self._rules}

    @property
    def rules(self) -> List[AlertRule]:
        return list(self._rules)

    def get_rule(self, rule_id: str) -> Optional[AlertRule]:
        return self._rules_by_id.get(rule_id)

    def evaluate(self, snapshot: Snapshot, thresholds: AlertThresholds) -> List[Alert]:
        """
        Evaluate all rules.

        A rule that raises is logged and skipped; the remaining rules
        still run.
        """
        alerts: List[Alert] = []
        for rule in self._rules:
            try:
                alerts.extend(rule.evaluate(snapshot, thresholds))
            except Exception as e:
                logger.error(f"Error evaluating rule {rule.rule_id}: {e}", exc_info=True)
        return alerts


_default_evaluator = AlertEvaluator()


def evaluate_alerts(snapshot: Snapshot, thresholds: Optional[AlertThresholds] = None) -> List[Alert]:
    """Evaluate the default rule set."""
    return _default_evaluator.evaluate(snapshot, thresholds or AlertThresholds())
