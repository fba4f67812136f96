"""Data backends for Zhuzh.

This package provides adapters for where people, projects, allocations and
time entries live:
- InMemoryBackend: dict-backed, for tests and throwaway sessions
- LocalBackend: YAML directory plus JSON records under .zhuzh/
- SupabaseBackend: async HTTP client for the hosted Postgres REST API

Usage:
    from zhuzh.core.backends import create_backend

    backend = create_backend(config)
    projects = await backend.find_active_projects(org_id)
    await backend.close()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import DataBackend

if TYPE_CHECKING:
    from ...config import AppConfig


# Exceptions
class BackendError(Exception):
    """Base exception for backend errors."""

    pass


class BackendUnavailableError(BackendError):
    """The backend could not be reached or is not configured."""

    pass


class BackendWriteError(BackendError):
    """A write was rejected or failed."""

    pass


def create_backend(config: "AppConfig") -> DataBackend:
    """Create the backend selected by configuration.

    Uses lazy imports to avoid loading unused dependencies.

    Args:
        config: Application configuration

    Returns:
        Configured DataBackend instance

    Raises:
        ValueError: If the backend name is unknown
        BackendUnavailableError: If Supabase is selected without credentials
    """
    if config.backend == "memory":
        from .memory import InMemoryBackend

        return InMemoryBackend()

    elif config.backend == "local":
        from .local import LocalBackend

        return LocalBackend(config.data_path)

    elif config.backend == "supabase":
        from .supabase import SupabaseBackend

        if not config.supabase_url or not config.supabase_key:
            raise BackendUnavailableError(
                "Supabase backend requires ZHUZH_SUPABASE_URL and ZHUZH_SUPABASE_KEY"
            )
        return SupabaseBackend(config.supabase_url, config.supabase_key)

    raise ValueError(f"Unknown backend: {config.backend}")


__all__ = [
    "BackendError",
    "BackendUnavailableError",
    "BackendWriteError",
    "DataBackend",
    "create_backend",
]
