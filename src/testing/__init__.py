"""
Testing utilities for deployed POC stacks.
"""

from .smoke_tests import CheckResult, CheckStatus, SmokeTestRunner

__all__ = ["CheckResult", "CheckStatus", "SmokeTestRunner"]
