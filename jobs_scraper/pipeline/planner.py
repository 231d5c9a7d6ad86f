"""Query planner: layer options, default the locations, validate.

Layer order (lowest to highest priority):
  1. built-in defaults (QueryOptions field defaults)
  2. run-level overrides passed to ``plan_queries``
  3. per-query overrides

Mappings merge key by key; lists and scalars from a higher layer replace the
lower one wholesale. Validation covers the whole batch before anything is
returned, so one bad query means no query runs.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel, ValidationError

from jobs_scraper.core.config import DEFAULT_LOCATION, Query, QueryOptions
from jobs_scraper.core.errors import QueryValidationError

logger = logging.getLogger(__name__)

RawQuery = Query | Mapping[str, Any] | str
RawOptions = QueryOptions | Mapping[str, Any]


def plan_queries(
    queries: RawQuery | Sequence[RawQuery],
    options: RawOptions | None = None,
) -> list[Query]:
    """Merge option layers for every query and validate the result.

    Args:
        queries: One query or a sequence. A query is a ``Query``, a mapping
            with ``query``/``text`` and ``options`` keys, or bare query text.
        options: Run-level overrides applied under each query's own options.

    Returns:
        Planned, frozen queries in input order.

    Raises:
        QueryValidationError: naming the first offending field.
    """
    if isinstance(queries, (Query, Mapping, str)):
        queries = [queries]

    run_layer = _as_layer(options, "options")
    planned: list[Query] = []

    for position, raw in enumerate(queries):
        text, query_layer = _split_query(raw, position)
        merged = deep_merge(deep_merge({}, run_layer), query_layer)
        if not merged.get("locations"):
            merged["locations"] = [DEFAULT_LOCATION]
        planned.append(_validate(text, merged, position))

    logger.debug("Planned %d queries", len(planned))
    return planned


def deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` updated with ``override``; nested mappings merge, the rest replace."""
    result = dict(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(dict(current), value)
        elif isinstance(value, Mapping):
            result[key] = deep_merge({}, value)
        elif isinstance(value, list):
            result[key] = list(value)
        else:
            result[key] = value
    return result


def _split_query(raw: RawQuery, position: int) -> tuple[str | None, dict[str, Any]]:
    if isinstance(raw, str):
        return raw, {}
    if isinstance(raw, Query):
        return raw.text, _as_layer(raw.options, f"queries[{position}].options")
    if isinstance(raw, Mapping):
        unknown = set(raw) - {"query", "text", "options"}
        if unknown:
            raise QueryValidationError(f"queries[{position}].{sorted(unknown)[0]}", "unknown field")
        text = raw.get("query", raw.get("text"))
        if text is not None and not isinstance(text, str):
            raise QueryValidationError(f"queries[{position}].query", "must be a string")
        return text, _as_layer(raw.get("options"), f"queries[{position}].options")
    raise QueryValidationError(f"queries[{position}]", f"unsupported query type {type(raw).__name__}")


def _as_layer(options: RawOptions | None, param: str) -> dict[str, Any]:
    """Only explicitly set fields of a model count as overrides."""
    if options is None:
        return {}
    if isinstance(options, BaseModel):
        return options.model_dump(exclude_unset=True)
    if isinstance(options, Mapping):
        return dict(options)
    raise QueryValidationError(param, f"must be a mapping, got {type(options).__name__}")


def _validate(text: str | None, merged: dict[str, Any], position: int) -> Query:
    try:
        return Query.model_validate({"text": text, "options": merged})
    except ValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(part) for part in first["loc"])
        raise QueryValidationError(f"queries[{position}].{loc}", first["msg"]) from e
