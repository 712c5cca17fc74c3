"""Utility subpackage exposing helper modules used across Memoir."""

from importlib import import_module as _import_module

caching = _import_module(".caching", __name__)
exceptions = _import_module(".exceptions", __name__)
logging_utils = _import_module(".logging_utils", __name__)
metrics = _import_module(".metrics", __name__)
safety = _import_module(".safety", __name__)

__all__ = [
    "caching",
    "exceptions",
    "logging_utils",
    "metrics",
    "safety",
]
