"""Operator lookup consumed by the lifecycle manager and operator-only endpoints.

Identity lives outside consultbook; this module only defines the question
("is this actor the resource's operator?") and a gateway-header answer.
"""
from __future__ import annotations

from typing import FrozenSet, Iterable, Protocol


class OperatorDirectory(Protocol):
    async def is_operator(self, actor_id: str, resource_id: str) -> bool: ...


class StaticOperatorDirectory:
    """Answers from the resource ids an upstream gateway vouched for.

    The API builds one per request from the X-Actor-Id and X-Operator-Of headers.
    """

    def __init__(self, actor_id: str, operated_resources: Iterable[str] = ()) -> None:
        self.actor_id = actor_id
        self.operated_resources: FrozenSet[str] = frozenset(
            r.strip() for r in operated_resources if r and r.strip()
        )

    async def is_operator(self, actor_id: str, resource_id: str) -> bool:
        return actor_id == self.actor_id and resource_id in self.operated_resources
