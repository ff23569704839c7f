from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional
from milkcart.common.custom_exceptions import IllegalTransitionError


class TransitionTable:
    """Directed graph of legal status changes for one aggregate.

    A status with no outgoing edges is terminal. Anything not listed is rejected.
    """

    def __init__(self, aggregate: str, transitions: Mapping[str, Iterable[str]]):
        self.aggregate = aggregate
        self._edges: Dict[str, FrozenSet[str]] = {k: frozenset(v) for k, v in transitions.items()}

    @property
    def states(self) -> FrozenSet[str]:
        return frozenset(self._edges)

    def allowed(self, current: str) -> FrozenSet[str]:
        return self._edges.get(current, frozenset())

    def can(self, current: str, target: str) -> bool:
        return target in self.allowed(current)

    def is_terminal(self, status: str) -> bool:
        return not self.allowed(status)

    def sources_of(self, target: str) -> FrozenSet[str]:
        return frozenset(s for s, targets in self._edges.items() if target in targets)

    def ensure(self, current: str, target: str, details: Optional[Dict[str, Any]] = None) -> None:
        if not self.can(current, target):
            raise IllegalTransitionError(
                f"{self.aggregate} cannot move from '{current}' to '{target}'",
                details={"from": current, "to": target, **(details or {})},
            )
