"""Sales dashboard data cache and date-range coordination service."""

__version__ = "0.1.0"
