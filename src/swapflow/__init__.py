"""Swapflow: quote, approve and execute LI.FI swaps and bridges."""

__version__ = "0.1.0"
