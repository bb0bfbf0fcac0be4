"""
Core package for the codeassess grading service.

Holds the pieces every surface depends on (language registry, config,
error taxonomy, submission journal) so the broker, grading engine and
attempt runtime under ``apps/`` can import them without a web stack.
"""

from importlib import metadata


def get_version() -> str:
    """Return the installed project version."""
    try:
        return metadata.version("codeassess")
    except metadata.PackageNotFoundError:
        return "0.0.0"


__all__ = ["get_version"]
