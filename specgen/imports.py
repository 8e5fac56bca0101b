"""Map abstract type references to target-language import statements."""

from __future__ import annotations

from typing import Callable, Iterable, Mapping

ModelImporter = Callable[[str], "str | None"]


def resolve_import(
    name: str,
    import_mapping: Mapping[str, str],
    to_model_import: ModelImporter,
) -> str | None:
    """Return the import for ``name``: an explicit mapping wins over the backend default."""
    mapping = import_mapping.get(name)
    if mapping is None:
        mapping = to_model_import(name)
    return mapping


def model_imports(
    names: Iterable[str],
    import_mapping: Mapping[str, str],
    instantiation_types: Mapping[str, str],
    default_includes: Iterable[str],
    to_model_import: ModelImporter,
) -> list[dict[str, str]]:
    """Build the sorted import list for a model file.

    Each referenced name contributes its import statement and, if it has one,
    the import for its instantiation type. Imports the target language provides
    implicitly (``default_includes``) are dropped.
    """
    includes = set(default_includes)
    resolved: set[str] = set()
    for name in names:
        mapping = resolve_import(name, import_mapping, to_model_import)
        if mapping is not None and mapping not in includes:
            resolved.add(mapping)
        instantiation = instantiation_types.get(name)
        if instantiation is not None and instantiation not in includes:
            resolved.add(instantiation)
    return [{"import": s} for s in sorted(resolved)]


def operation_imports(
    names: Iterable[str],
    import_mapping: Mapping[str, str],
    to_model_import: ModelImporter,
) -> list[dict[str, str]]:
    """Build the sorted, duplicate-free import list for an operation group."""
    resolved: set[str] = set()
    for name in set(names):
        mapping = resolve_import(name, import_mapping, to_model_import)
        if mapping is not None:
            resolved.add(mapping)
    return [{"import": s} for s in sorted(resolved)]
