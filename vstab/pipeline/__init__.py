"""
Pipeline module - Whole-clip stabilization.

This module provides:
- stabilize: Analyze, smooth and correct a frame sequence in one call
- StabilizationResult: Raw motion, smoothed motion and corrections
"""

from vstab.pipeline.runner import StabilizationResult, stabilize

__all__ = [
    "StabilizationResult",
    "stabilize",
]
