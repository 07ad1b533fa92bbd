"""Rotate, stake and unstake POKT app stakes in batches."""

__version__ = "1.0.0"
