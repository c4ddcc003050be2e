"""Health monitoring for the up/down 15-minute market-making bot."""

__version__ = "0.1.0"
