"""Storage backend for a calendar scheduler with recurring-series support."""

__version__ = "0.1.0"
