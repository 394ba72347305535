"""
Canonical protocol definitions for sqlspine.

Manifesto:
    The literalizer renders sub-selects and the pool hands out driver
    connections, but neither should import the concrete classes that
    provide them. These structural protocols are the contracts they
    depend on instead.

Architecture:
    ::

        protocols.py
        ├── Queryable       : anything that renders a SELECT (Dataset)
        └── ConnectionFactory : callable producing a raw driver connection

Tags:
    protocol, contracts, sqlspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Queryable(Protocol):
    """Object that can be embedded as a parenthesized sub-select."""

    def select_sql(self) -> str:
        """Render the SELECT statement for this query."""
        ...


@runtime_checkable
class ConnectionFactory(Protocol):
    """Zero-argument callable returning a new raw driver connection."""

    def __call__(self) -> Any:
        ...


__all__ = ["Queryable", "ConnectionFactory"]
