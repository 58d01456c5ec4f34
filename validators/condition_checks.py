# validators/condition_checks.py
"""
Trust-boundary check for the dump condition.

The condition comes from the operator's config file and is spliced verbatim
into `SELECT * FROM <table> WHERE <condition>`. It is NOT parameterized; a
free-form SQL fragment cannot be. What we do guarantee is that it stays a
single predicate: statement separators and comment markers are refused, so a
config value cannot append a second statement or comment out the rest of the
COPY.

Uso no fluxo:
1) load_config() produces TransferConfig.condition
2) dump() calls check_condition(condition) before building the query
"""

from __future__ import annotations

from typing import Optional, Tuple

from vctransfer.errors import ConditionRejectedError

FORBIDDEN_TOKENS: Tuple[str, ...] = (";", "--", "/*", "*/")


def check_condition(condition: Optional[str]) -> Optional[str]:
    """
    Return the stripped condition, or None when there is nothing to filter on.

    Raises:
        ConditionRejectedError: the condition contains a forbidden token.
    """
    if condition is None:
        return None
    cleaned = condition.strip()
    if not cleaned:
        return None

    for token in FORBIDDEN_TOKENS:
        if token in cleaned:
            raise ConditionRejectedError(
                f"Condition must be a single SQL predicate; found {token!r} in: {cleaned}"
            )
    return cleaned
