"""Shipping rate quoting and label fulfillment engine."""

__version__ = "0.1.0"
