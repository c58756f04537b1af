"""Sentinel gateway: TAP request signing and x402 payment commitments"""

__version__ = "0.1.0"
