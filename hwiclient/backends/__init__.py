"""
Backends
********

This module contains the ways hwiclient can reach HWI.
Each backend is a subclass of :class:`~hwiclient.backends.base.Backend`.
"""

import importlib

from typing import Any, Optional

from .base import Backend
from ..errors import UnknownError
from ..marshal import invocation_lock

__all__ = [
    'python',
    'binary',
    'fixture',
]

_default_backend: Optional[Backend] = None


def get_backend(name: str, **kwargs: Any) -> Backend:
    """
    Construct a backend by name.

    :param name: One of :data:`__all__`
    :param kwargs: Passed to the backend's constructor
    :raises: UnknownError: if there is no backend with that name
    """
    module = name.lower()
    if module not in __all__:
        raise UnknownError(f"Unknown backend {name}")
    imported = importlib.import_module('.' + module, __package__)
    constructor = getattr(imported, module.capitalize() + 'Backend')
    return constructor(**kwargs)


def default_backend() -> Backend:
    """
    The process-wide backend used when a client is not given one. Created on first use; the in-process backend unless
    :func:`set_default_backend` chose another.
    """
    global _default_backend
    with invocation_lock():
        if _default_backend is None:
            _default_backend = get_backend("python")
        return _default_backend


def set_default_backend(backend: Optional[Backend]) -> None:
    """
    Replace the process-wide backend. ``None`` restores the in-process one on next use.
    """
    global _default_backend
    with invocation_lock():
        _default_backend = backend
