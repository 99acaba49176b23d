"""Comparison operator and join expression normalization."""

import re
from typing import Tuple

from querycore.exceptions import UnsafeJoinExpressionError, UnsupportedOperatorError

ALLOWED_OPERATORS = (
    '=', '!=', '<>', '<', '>', '<=', '>=',
    'LIKE',
    'IN', 'NOT IN',
    'IS', 'IS NOT',
)

# identifier-ish (dots and * allowed), comparison, identifier-ish; nothing else
JOIN_EXPRESSION = re.compile(
    r'^([A-Za-z_][A-Za-z0-9_.*]*)\s*(=|<>|!=|<=|>=|<|>)\s*([A-Za-z_][A-Za-z0-9_.*]*)$'
)


def normalize_operator(op: str) -> str:
    """Upper-case and trim ``op`` and check it against the allowed set.

    Raises:
        UnsupportedOperatorError: If the operator is not allowed.
    """
    normalized = ' '.join(op.strip().upper().split())
    if normalized not in ALLOWED_OPERATORS:
        raise UnsupportedOperatorError(normalized, ALLOWED_OPERATORS)
    return normalized


def parse_join_expr(expr: str) -> Tuple[str, str, str]:
    """Split a join condition into ``(left, operator, right)``.

    Only ``identifier op identifier`` is accepted; this is not an expression
    parser.

    Raises:
        UnsafeJoinExpressionError: If ``expr`` has any other shape.
    """
    match = JOIN_EXPRESSION.fullmatch(expr.strip())
    if not match:
        raise UnsafeJoinExpressionError(expr)
    return match.group(1), match.group(2), match.group(3)
