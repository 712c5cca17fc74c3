"""Named failure policies for memory operations.

Read-path operations degrade to a harmless fallback when a dependency fails;
write-path operations surface the failure so no data is lost silently.
Contract violations (:class:`ValidationError`) always propagate.
"""

from __future__ import annotations

import enum
import functools
import logging
from typing import Any, Callable, Dict, Type, TypeVar, cast

from memoir.utils.exceptions import MemoirError, ValidationError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class FailurePolicy(enum.Enum):
    DEGRADE = "degrade"
    PROPAGATE = "propagate"


OPERATION_POLICIES: Dict[str, FailurePolicy] = {
    "search": FailurePolicy.DEGRADE,
    "reformulate": FailurePolicy.DEGRADE,
    "insert": FailurePolicy.PROPAGATE,
    "list_all": FailurePolicy.PROPAGATE,
    "clear": FailurePolicy.PROPAGATE,
    "process": FailurePolicy.PROPAGATE,
    "rotate": FailurePolicy.PROPAGATE,
    "snapshot": FailurePolicy.PROPAGATE,
}


def policy_for(operation: str) -> FailurePolicy:
    try:
        return OPERATION_POLICIES[operation]
    except KeyError:
        raise KeyError(f"No failure policy registered for operation '{operation}'") from None


def apply_failure_policy(
    operation: str,
    *,
    error: Type[MemoirError] = MemoirError,
    fallback: Callable[..., Any] = lambda *args, **kwargs: None,
) -> Callable[[F], F]:
    """Enforce the registered policy for ``operation`` around a method.

    Under ``DEGRADE`` any failure is logged and ``fallback`` is called with the
    original arguments to produce the return value. Under ``PROPAGATE`` the
    failure is re-raised as ``error`` (unchanged if it already is one) with
    the original exception chained.
    """

    policy = policy_for(operation)

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except ValidationError:
                raise
            except Exception as exc:
                if policy is FailurePolicy.DEGRADE:
                    logger.warning(
                        "%s failed; degrading to fallback: %s",
                        operation,
                        exc,
                        extra={"operation": operation, "error_type": type(exc).__name__},
                    )
                    return fallback(*args, **kwargs)
                if isinstance(exc, error):
                    raise
                raise error(f"{operation} failed: {exc}") from exc

        return cast(F, wrapper)

    return decorator


__all__ = ["FailurePolicy", "OPERATION_POLICIES", "apply_failure_policy", "policy_for"]
