"""Whale trade detection, wallet scoring, basket consensus and copy-signal gating."""

__version__ = "0.1.0"