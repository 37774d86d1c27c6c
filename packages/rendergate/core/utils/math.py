"""Numeric helpers for request sizing and image statistics."""

from __future__ import annotations

import numpy as np


def clamp(value: int | float, lower: int | float, upper: int | float) -> int | float:
    """``value`` pulled into ``[lower, upper]``; the bound wins when ``value`` is outside."""
    if value < lower:
        return lower
    if value > upper:
        return upper
    return value


def shannon_entropy(values: np.ndarray) -> float:
    """Shannon entropy (bits) of the histogram of 8-bit values.

    Args:
        values: Array of uint8 samples (any shape)

    Returns:
        Entropy in bits, 0.0 for an empty or constant array
    """
    flat = np.asarray(values, dtype=np.uint8).ravel()
    if flat.size == 0:
        return 0.0
    counts = np.bincount(flat, minlength=256).astype(np.float64)
    probs = counts[counts > 0] / flat.size
    return float(-(probs * np.log2(probs)).sum())
