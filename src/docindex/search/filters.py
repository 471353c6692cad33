"""Attribute filters applied to chunks before ranking.

Two forms are accepted::

    {"category": "contracts", "company_name": ["Acme", "Beam"]}
    {"@and": [{"@eq": {"category": "contracts"}},
              {"@not": {"@contains": {"company_name": "inc"}}}]}

The plain form is an equality map (a list value means any-of). The
operator form nests ``@and``/``@or`` (lists), ``@not`` (one filter),
``@eq`` and ``@contains`` (field maps; ``@contains`` is a
case-insensitive substring test).
"""

from typing import Any, Callable, Mapping, Optional

from docindex.config import IDENTIFIER_PATTERN
from docindex.errors import QueryError
from docindex.models import Chunk

Predicate = Callable[[Chunk], bool]

_SCALARS = (str, int, float, bool)


def _field_value(chunk: Chunk, field: str) -> Optional[str]:
    if field == "document_id":
        return chunk.document_id
    if field in chunk.attributes:
        return chunk.attributes[field]
    return chunk.headers.get(field)


def _check_field(field: Any) -> str:
    if not isinstance(field, str) or not IDENTIFIER_PATTERN.match(field):
        raise QueryError(f"Invalid filter field: {field!r}")
    return field


def _check_values(field: str, value: Any) -> list[str]:
    values = value if isinstance(value, list) else [value]
    if not values:
        raise QueryError(f"Empty value list for filter field {field!r}")
    for v in values:
        if not isinstance(v, _SCALARS):
            raise QueryError(f"Unsupported value for filter field {field!r}: {v!r}")
    return [str(v) for v in values]


def _equality(fields: Any) -> Predicate:
    if not isinstance(fields, Mapping) or not fields:
        raise QueryError("Equality filter must be a non-empty object")

    tests = [(_check_field(f), set(_check_values(f, v))) for f, v in fields.items()]

    def predicate(chunk: Chunk) -> bool:
        return all(_field_value(chunk, f) in allowed for f, allowed in tests)

    return predicate


def _contains(fields: Any) -> Predicate:
    if not isinstance(fields, Mapping) or not fields:
        raise QueryError("@contains filter must be a non-empty object")

    tests = [
        (_check_field(f), [v.lower() for v in _check_values(f, v)])
        for f, v in fields.items()
    ]

    def predicate(chunk: Chunk) -> bool:
        for field, needles in tests:
            value = (_field_value(chunk, field) or "").lower()
            if not any(n in value for n in needles):
                return False
        return True

    return predicate


def _compile(node: Any) -> Predicate:
    if not isinstance(node, Mapping) or not node:
        raise QueryError(f"Filter must be a non-empty object, got {node!r}")

    operators = [key for key in node if isinstance(key, str) and key.startswith("@")]
    if not operators:
        return _equality(node)
    if len(node) != 1:
        raise QueryError("An operator filter must have exactly one key")

    op, arg = next(iter(node.items()))
    if op in ("@and", "@or"):
        if not isinstance(arg, list) or not arg:
            raise QueryError(f"{op} expects a non-empty list of filters")
        parts = [_compile(item) for item in arg]
        combine = all if op == "@and" else any
        return lambda chunk: combine(p(chunk) for p in parts)
    if op == "@not":
        inner = _compile(arg)
        return lambda chunk: not inner(chunk)
    if op == "@eq":
        return _equality(arg)
    if op == "@contains":
        return _contains(arg)
    raise QueryError(f"Unknown filter operator: {op}")


def compile_filter(filters: Optional[Mapping[str, Any]]) -> Predicate:
    """Compile a filter into a chunk predicate.

    Raises:
        QueryError: If the filter is malformed
    """
    if filters is None or (isinstance(filters, Mapping) and not filters):
        return lambda chunk: True
    return _compile(filters)
