"""Technical signal screening and 3-month return prediction for a portfolio dashboard."""

__version__ = "0.1.0"
