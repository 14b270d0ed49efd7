"""Policy for filesystem operations that have no object store equivalent.

Applies to user, chmod, chown, chtimes and walk. Append is not governed by
this policy: it always raises OperationNotImplementedError.
"""

from __future__ import annotations

import logging
from enum import Enum

from bucketfs.errors import OperationNotImplementedError, UnimplementedOperationFatal

logger = logging.getLogger(__name__)


class Behaviour(str, Enum):
    """Response to an unimplemented operation.

    FAIL_FAST: raise UnimplementedOperationFatal; intended for test/staging
        so missing-feature usage is caught early.
    REPORT: log a warning and raise OperationNotImplementedError.
    IGNORE: return normally with no result.
    """

    FAIL_FAST = "fail_fast"
    REPORT = "report"
    IGNORE = "ignore"

    @classmethod
    def parse(cls, value: object) -> Behaviour:
        """Parse a behaviour from its name or a legacy alias.

        Raises:
            ValueError: If the value names no behaviour.
        """
        if isinstance(value, Behaviour):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Behaviour must be a string, got {type(value).__name__}")
        normalized = value.strip().lower().replace("-", "_")
        normalized = _ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(b.value for b in cls)
            raise ValueError(f"Unknown behaviour {value!r}; expected one of: {valid}") from None


_ALIASES = {
    "panic": Behaviour.FAIL_FAST.value,
    "fail": Behaviour.FAIL_FAST.value,
    "warn": Behaviour.REPORT.value,
}


class UnimplementedPolicy:
    """Applies the configured Behaviour to unimplemented operations."""

    def __init__(self, behaviour: Behaviour | str) -> None:
        self._behaviour = Behaviour.parse(behaviour)

    @property
    def behaviour(self) -> Behaviour:
        return self._behaviour

    def unimplemented(self, operation: str) -> None:
        """Handle a call to an unimplemented operation.

        Returns normally only under IGNORE.

        Raises:
            UnimplementedOperationFatal: Under FAIL_FAST.
            OperationNotImplementedError: Under REPORT.
        """
        message = f"{operation} not implemented"
        if self._behaviour is Behaviour.FAIL_FAST:
            raise UnimplementedOperationFatal(operation, message)
        if self._behaviour is Behaviour.REPORT:
            logger.warning(message)
            raise OperationNotImplementedError(operation, message)
        logger.debug("Ignoring unimplemented operation: %s", operation)
