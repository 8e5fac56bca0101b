"""Order schema definitions so base types are processed before derived types.

Depth is the length of the parent chain; a composed schema without an explicit
parent uses its first interface as the parent for this purpose only. Schemas
sort by (depth, backend type name, schema key).
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Mapping

from .errors import CyclicInheritanceError
from .models import SchemaDefinition

logger = logging.getLogger(__name__)


def inheritance_depth(
    name: str,
    schemas: Mapping[str, SchemaDefinition],
    cache: dict[str, int] | None = None,
) -> int:
    """Count the ancestors of ``name`` by walking its parent chain to the root.

    A parent that is not defined in ``schemas`` ends the chain. Raises
    ``CyclicInheritanceError`` if the chain revisits a schema.
    """
    if cache is not None and name in cache:
        return cache[name]

    chain = [name]
    depth = 0
    current = schemas.get(name)
    while current is not None:
        parent = current.effective_parent
        if parent is None or parent not in schemas:
            break
        if parent in chain:
            raise CyclicInheritanceError(chain + [parent])
        if cache is not None and parent in cache:
            depth += 1 + cache[parent]
            break
        chain.append(parent)
        depth += 1
        current = schemas[parent]

    if cache is not None:
        cache[name] = depth
    return depth


def sort_models(
    names: Iterable[str],
    schemas: Mapping[str, SchemaDefinition],
    to_model_name: Callable[[str], str],
) -> list[str]:
    """Return ``names`` ordered by (inheritance depth, type name, schema key)."""
    cache: dict[str, int] = {}
    return sorted(
        names,
        key=lambda n: (inheritance_depth(n, schemas, cache), to_model_name(n), n),
    )


def select_models(
    schemas: Mapping[str, SchemaDefinition],
    import_mapping: Mapping[str, str],
    ignore_import_mapping: bool = False,
    allow: Iterable[str] | None = None,
) -> list[str]:
    """Pick the schema keys that should be processed this run.

    Schemas with an import mapping are provided externally and are dropped
    unless the backend ignores import mappings. ``allow`` restricts the result
    to the named schemas.
    """
    allowed = set(allow) if allow else None
    selected = []
    for name in schemas:
        if allowed is not None and name not in allowed:
            continue
        if not ignore_import_mapping and name in import_mapping:
            logger.info("Model %s not imported due to import mapping", name)
            continue
        selected.append(name)
    return selected
