"""newswatch — news-driven market alert pipeline."""

__version__ = "1.0.0"
