"""
Named authorization gates.

The embedding application registers callables by name; the super-admin check
can be delegated to one of them by setting ``super_admin_gate``.
"""
from typing import Any, Callable, Dict

from permitted.utils.logger import get_logger

logger = get_logger(__name__)


class GateRegistry:
    def __init__(self):
        self._gates: Dict[str, Callable[[Any], bool]] = {}

    def define(self, name: str, check: Callable[[Any], bool]) -> None:
        self._gates[name] = check

    def has(self, name: str) -> bool:
        return name in self._gates

    def allows(self, name: str, principal: Any) -> bool:
        check = self._gates.get(name)
        if check is None:
            logger.warning(f"[Gates] Gate {name!r} is not defined; denying")
            return False
        return bool(check(principal))

    def forget(self, name: str) -> None:
        self._gates.pop(name, None)


# Application-wide registry
gates = GateRegistry()
