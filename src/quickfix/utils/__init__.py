"""Shared utilities."""

from quickfix.utils.bundle import BundleDecodeError, BundleResourceError, load_bundled
from quickfix.utils.logging import bind_store_context, clear_store_context, get_logger, setup_logging
from quickfix.utils.metrics import get_metrics

__all__ = [
    "get_logger",
    "setup_logging",
    "bind_store_context",
    "clear_store_context",
    "get_metrics",
    "load_bundled",
    "BundleResourceError",
    "BundleDecodeError",
]
