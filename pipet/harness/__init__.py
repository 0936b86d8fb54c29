"""Harness — rate limiting and command filtering around the brain."""
from pipet.harness.safety import BLOCKED_PATTERNS, RateLimiter, find_blocked_pattern

__all__ = ["BLOCKED_PATTERNS", "RateLimiter", "find_blocked_pattern"]
