"""
Structural protocols shared across binstore.

Manifesto:
    Callers of the storage engine come from many places (HTTP handlers,
    background jobs, the CLI).  None of them should have to subclass an
    engine type just to say "this request belongs to user 7".  Protocols
    let any object with the right shape act as an ownership context.

Architecture:
    ::

        protocols.py
        ├── OwnershipContext  — exposes the optional owner id of a request
        └── UserContext       — ready-made frozen implementation

Guardrails:
    ❌ DON'T: Pass raw user ids into repository methods
    ✅ DO: Pass an OwnershipContext (or None for the unscoped view)

Tags:
    protocols, ownership, tenant-scope, binstore
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class OwnershipContext(Protocol):
    """Anything exposing a single ownership identifier.

    ``user_id`` of ``None`` means "no ownership scope": queries then see
    every row.
    """

    @property
    def user_id(self) -> Any:
        ...


@dataclass(frozen=True, slots=True)
class UserContext:
    """Minimal :class:`OwnershipContext` implementation."""

    user_id: int | None = None


def owner_id(ctx: OwnershipContext | None) -> Any:
    """Ownership id of *ctx*, or ``None`` when no context was supplied."""
    return None if ctx is None else ctx.user_id


__all__ = ["OwnershipContext", "UserContext", "owner_id"]
