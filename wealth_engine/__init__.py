"""Investment reconciliation and goal-projection engine for the finance dashboard."""

__version__ = "0.1.0"
