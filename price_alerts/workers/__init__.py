"""Workers package initialization."""
from price_alerts.workers.alert_evaluator import AlertEvaluator, EvaluationResult

__all__ = ["AlertEvaluator", "EvaluationResult"]
