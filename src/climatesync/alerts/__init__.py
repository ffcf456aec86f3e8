"""
Alerting

Threshold ladders, stateless evaluation, the per-key alert store and the
service that persists and broadcasts alert transitions.
"""

from .evaluator import AlertEvaluator, Evaluation, heat_index
from .service import AlertService, alert_payload, alert_topic
from .store import AlertStore, Transition, TransitionKind
from .thresholds import (
    DEFAULT_THRESHOLDS,
    ThresholdLadder,
    build_ladders,
    default_ladders,
    load_thresholds,
)

__all__ = [
    "AlertEvaluator",
    "Evaluation",
    "heat_index",
    "AlertService",
    "alert_payload",
    "alert_topic",
    "AlertStore",
    "Transition",
    "TransitionKind",
    "DEFAULT_THRESHOLDS",
    "ThresholdLadder",
    "build_ladders",
    "default_ladders",
    "load_thresholds",
]
