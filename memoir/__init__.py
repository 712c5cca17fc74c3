"""Memoir: long-term conversational memory for chat agents."""

from . import backends, memory, services, utils

__all__ = [
    "backends",
    "memory",
    "services",
    "utils",
]
