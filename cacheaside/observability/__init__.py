"""
cacheaside - Observability Module

Logging configuration for the package.
"""

from .logging_setup import JSONFormatter, configure_logging

__all__ = [
    "JSONFormatter",
    "configure_logging",
]
