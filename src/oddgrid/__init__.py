"""OddGrid - simulated trading against aggregated prediction-market venues."""

__version__ = "0.1.0"
