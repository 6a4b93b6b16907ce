from typing import Any, Mapping, Optional
from urllib.parse import quote
import json

DEFAULT_PREFIX = "blog"

def _component(value: Any) -> str:
    # Percent-encoding removes ':' from every component, so joining stays injective
    text = str(value)
    if not text:
        raise ValueError("Cache key components must not be empty")
    return quote(text, safe="")

def cache_key(
    kind: str,
    identifier: Any,
    query: Optional[Mapping[str, Any]] = None,
    prefix: str = DEFAULT_PREFIX
) -> str:
    """Build the cache key for an entity, optionally narrowed by a query.

    ``{prefix}:{kind}:{id}`` or ``{prefix}:{kind}:{id}:q:{descriptor}``,
    where the descriptor is the query serialized as canonical JSON.
    """
    parts = [_component(prefix), _component(getattr(kind, "value", kind)), _component(identifier)]
    if query is not None:
        descriptor = json.dumps(dict(query), sort_keys=True, separators=(",", ":"), default=str)
        parts.extend(["q", _component(descriptor)])
    return ":".join(parts)
