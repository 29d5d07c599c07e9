"""Peer-to-peer credit transfers with reservation, expiry and one-time redemption."""

__version__ = "0.1.0"
