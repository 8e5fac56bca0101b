"""Partition operations into tag groups.

Handles:
- Untagged operations (grouped under "default")
- Spec-level tag definitions vs. bare tag names
- Path-level parameter propagation (shadowed by operation-level parameters)
- Per-operation security resolution
- Per-group ordering and nickname de-duplication
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

from .errors import OperationGroupError
from .models import HTTP_METHODS, CodegenOperation, OperationDefinition, Parameter, PathItem, SpecDefinition, Tag
from .security import apply_security

if TYPE_CHECKING:
    from .backend import CodegenBackend

logger = logging.getLogger(__name__)

DEFAULT_TAG = "default"


def resolve_tags(operation: OperationDefinition, spec: SpecDefinition) -> list[Tag]:
    """Map an operation's tag names to tag definitions."""
    declared = {tag.name: tag for tag in spec.tags}
    tags = [declared.get(name) or Tag(name=name) for name in operation.tags]
    if not tags:
        tags.append(Tag(name=DEFAULT_TAG))
    return tags


def merge_path_parameters(
    operation: OperationDefinition,
    path_parameters: tuple[Parameter, ...],
) -> OperationDefinition:
    """Append path-level parameters the operation does not already declare.

    Returns a copy; the input operation is left untouched.
    """
    if not path_parameters:
        return operation
    declared = {p.identity for p in operation.parameters}
    inherited = tuple(p for p in path_parameters if p.identity not in declared)
    if not inherited:
        return operation
    return dataclasses.replace(operation, parameters=operation.parameters + inherited)


def process_operation(
    path_item: PathItem,
    method: str,
    operation: OperationDefinition,
    spec: SpecDefinition,
    backend: CodegenBackend,
    groups: dict[str, list[CodegenOperation]],
) -> None:
    """Transform one operation and add it to every tag group it belongs to."""
    tags = resolve_tags(operation, spec)
    operation = merge_path_parameters(operation, path_item.parameters)

    for tag in tags:
        try:
            codegen_operation = backend.from_operation(path_item.path, method, operation, spec)
            codegen_operation.tags = list(tags)
            backend.add_operation_to_group(
                backend.sanitize_tag(tag.name), path_item.path, operation, codegen_operation, groups
            )
            apply_security(codegen_operation, operation, spec, backend.from_security)
        except OperationGroupError:
            raise
        except Exception as exc:
            raise OperationGroupError(
                tag=tag.name,
                method=method,
                path=path_item.path,
                definitions=spec.schemas.keys(),
                operation_id=operation.operation_id,
                reason=str(exc),
            ) from exc


def process_paths(spec: SpecDefinition, backend: CodegenBackend) -> dict[str, list[CodegenOperation]]:
    """Group every operation in ``spec`` by tag; groups are keyed in sorted order."""
    groups: dict[str, list[CodegenOperation]] = {}
    for path_item in spec.paths.values():
        for method in HTTP_METHODS:
            operation = path_item.operations.get(method)
            if operation is None:
                continue
            logger.debug("Processing operation %s %s", method.upper(), path_item.path)
            process_operation(path_item, method, operation, spec, backend, groups)
    return dict(sorted(groups.items()))


def sort_operations(operations: list[CodegenOperation]) -> list[CodegenOperation]:
    """Order a group's operations by operation id; ties keep encounter order."""
    return sorted(operations, key=lambda op: op.operation_id or "")


def deduplicate_nicknames(operations: list[CodegenOperation]) -> None:
    """Make nicknames unique within a group by appending ``_N`` to repeats.

    ``N`` counts collisions across the whole group, so ``x, y, x, x`` becomes
    ``x, y, x_1, x_2``.
    """
    seen: set[str] = set()
    counter = 0
    for operation in operations:
        nickname = operation.nickname
        if nickname in seen:
            counter += 1
            operation.nickname = f"{nickname}_{counter}"
        seen.add(nickname)


def mark_has_more(items: list) -> None:
    """Flag every item but the last with ``has_more``."""
    for index, item in enumerate(items):
        item.has_more = index < len(items) - 1
