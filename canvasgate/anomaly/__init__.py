"""Behavioral anomaly detection."""

from .detector import ActivityType, AnomalyDetector, SecurityAlert, Severity, SubjectActivityWindow

__all__ = ["ActivityType", "AnomalyDetector", "SecurityAlert", "Severity", "SubjectActivityWindow"]
