"""Search request parsing and validation."""

import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from docindex.config import IDENTIFIER_PATTERN, SearchConfig
from docindex.errors import QueryError
from docindex.models import RESULT_COLUMNS
from docindex.search.filters import compile_filter

REQUEST_KEYS = {"query", "filters", "filter", "limit", "columns"}


@dataclass(frozen=True)
class QueryRequest:
    """A validated search request."""

    query: str
    filters: Optional[dict] = None
    limit: int = 10
    columns: Optional[tuple[str, ...]] = None

    @classmethod
    def from_dict(
        cls,
        payload: Union[Mapping[str, Any], str],
        config: Optional[SearchConfig] = None,
    ) -> "QueryRequest":
        """Build a request from ``{query, filters, limit, columns}``.

        Accepts a mapping or its JSON encoding. ``filter`` is accepted as
        an alias of ``filters``.

        Raises:
            QueryError: On any malformed field
        """
        config = config or SearchConfig()

        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                raise QueryError(f"Request is not valid JSON: {e}") from e
        if not isinstance(payload, Mapping):
            raise QueryError("Request must be an object")

        unknown = set(payload) - REQUEST_KEYS
        if unknown:
            raise QueryError(f"Unknown request keys: {sorted(unknown)}")
        if "filters" in payload and "filter" in payload:
            raise QueryError("Use either 'filters' or 'filter', not both")

        columns = payload.get("columns")
        if columns is not None:
            if not isinstance(columns, list) or not all(isinstance(c, str) for c in columns):
                raise QueryError("columns must be a list of strings")
            columns = tuple(columns)

        request = cls(
            query=payload.get("query"),
            filters=payload.get("filters", payload.get("filter")),
            limit=payload.get("limit", config.default_limit),
            columns=columns,
        )
        request.validate(config)
        return request

    def validate(self, config: Optional[SearchConfig] = None) -> "QueryRequest":
        """Check every field, raising QueryError with the reason."""
        config = config or SearchConfig()

        if not isinstance(self.query, str) or not self.query.strip():
            raise QueryError("query must be a non-empty string")
        if isinstance(self.limit, bool) or not isinstance(self.limit, int):
            raise QueryError(f"limit must be an integer, got {self.limit!r}")
        if not 1 <= self.limit <= config.max_limit:
            raise QueryError(f"limit must be between 1 and {config.max_limit}")
        if self.filters is not None and not isinstance(self.filters, Mapping):
            raise QueryError("filters must be an object")
        compile_filter(self.filters)

        for column in self.columns or ():
            if column not in RESULT_COLUMNS and not IDENTIFIER_PATTERN.match(column):
                raise QueryError(f"Invalid column: {column!r}")
        return self
