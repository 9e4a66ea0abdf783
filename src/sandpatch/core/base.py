"""Base classes for configuration and state models.

Holds the pieces shared by config.py and log.py:
- Closeable protocol for anything owning an OS resource
- BaseCloseable, which closes its Closeable fields on exit
- BaseConfig and BaseState markers

Kept separate from config.py so that log.py can import them without
a circular dependency.
"""

from __future__ import annotations

import sys
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


@runtime_checkable
class Closeable(Protocol):
    """Protocol for objects that support close()."""

    def close(self) -> None:
        """Release resources."""
        ...


class BaseCloseable(BaseModel):
    """Pydantic model that closes its Closeable children.

    Usable as a context manager. On close() every field implementing
    Closeable is closed in declaration order; a failure in one child
    is reported on stderr and does not stop the others.

    State.__exit__() -> Config.close() -> Logger.close() -> Sink.close()
    """

    def close(self):
        """Close all closeable child objects."""
        for field_name in self.__class__.model_fields:
            child = getattr(self, field_name, None)
            if child is None:
                continue

            if isinstance(child, Closeable):
                try:
                    child.close()
                except Exception as e:
                    print(
                        f"Warning: Error closing {field_name}: {e}",
                        file=sys.stderr,
                    )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):  # noqa: U100
        self.close()
        return False


class BaseConfig(BaseCloseable):
    """Marker base for configuration sections (YAML/env/CLI)."""
    pass


class BaseState(BaseCloseable):
    """Marker base for runtime state sections."""
    pass


__all__ = ["Closeable", "BaseCloseable", "BaseConfig", "BaseState"]
