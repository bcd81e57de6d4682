# tasks/__init__.py
from tasks.interstitial import (
    DEFAULT_TOTAL_SECONDS,
    InterstitialRunner,
    build_plan,
)

__all__ = [
    "DEFAULT_TOTAL_SECONDS",
    "InterstitialRunner",
    "build_plan",
]
