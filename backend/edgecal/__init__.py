"""Edge calibration engine: accuracy evaluation, weight learning, pattern detection and the improvement agent."""

__version__ = "0.1.0"
