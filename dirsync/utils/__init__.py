"""Shared utilities for configuration, logging, retries and timestamps"""

from dirsync.utils.generalized_time import format_generalized_time, parse_generalized_time
from dirsync.utils.retry import exponential_backoff_retry

__all__ = ["exponential_backoff_retry", "format_generalized_time", "parse_generalized_time"]
