"""Attach minimally-scoped security requirements to operations."""

from __future__ import annotations

from typing import Callable, Mapping, Sequence

from .models import CodegenOperation, CodegenSecurity, OperationDefinition, SecurityScheme, SpecDefinition

Requirements = Sequence[Mapping[str, Sequence[str]]]


def effective_requirements(operation: OperationDefinition, spec: SpecDefinition) -> Requirements | None:
    """An operation's own requirements win; otherwise the spec-wide ones apply."""
    if operation.security is not None:
        return operation.security
    return spec.security


def resolve_auth_methods(
    requirements: Requirements | None,
    definitions: Mapping[str, SecurityScheme],
) -> dict[str, SecurityScheme]:
    """Look up each required scheme, narrowing OAuth2 scopes to the requested ones.

    Requirement names with no matching definition are ignored.
    """
    if not requirements or not definitions:
        return {}
    auth_methods: dict[str, SecurityScheme] = {}
    for requirement in requirements:
        for scheme_name, scopes in requirement.items():
            definition = definitions.get(scheme_name)
            if definition is None:
                continue
            if definition.is_oauth2:
                auth_methods[scheme_name] = definition.restrict_scopes(list(scopes or ()))
            else:
                auth_methods[scheme_name] = definition
    return auth_methods


def apply_security(
    codegen_operation: CodegenOperation,
    operation: OperationDefinition,
    spec: SpecDefinition,
    from_security: Callable[[Mapping[str, SecurityScheme]], list[CodegenSecurity]],
) -> None:
    """Set ``auth_methods``/``has_auth_methods`` on ``codegen_operation``."""
    auth_methods = resolve_auth_methods(
        effective_requirements(operation, spec), spec.security_definitions
    )
    if not auth_methods:
        return
    codegen_operation.auth_methods = from_security(auth_methods)
    codegen_operation.has_auth_methods = True
