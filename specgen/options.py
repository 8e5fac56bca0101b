"""Run-level generation options.

Options are built once by the caller and resolved into an immutable
``ResolvedOptions`` before any stage runs:

  - no top-level switch set        -> models, apis and supporting files
  - any top-level switch set       -> the unset ones default to False
  - an allow-list (models=[...])   -> implies its switch is set
  - tests/docs switches            -> default True, only ever turned off explicitly
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from .errors import ConfigurationError

ALL_SUPPORTING_FILES = "true"


def _freeze(names: Iterable[str] | None) -> frozenset[str] | None:
    if names is None:
        return None
    cleaned = frozenset(n.strip() for n in names if n and n.strip())
    return cleaned or None


def parse_name_list(value: str | None) -> tuple[str, ...] | None:
    """Split a comma-separated allow-list; empty input means no restriction."""
    if not value:
        return None
    return tuple(n.strip() for n in value.split(",") if n.strip()) or None


@dataclass(frozen=True)
class GenerationOptions:
    generate_models: bool | None = None
    generate_apis: bool | None = None
    generate_supporting_files: bool | None = None
    generate_model_tests: bool = True
    generate_model_docs: bool = True
    generate_api_tests: bool = True
    generate_api_docs: bool = True
    generate_metadata: bool = True
    models: tuple[str, ...] | None = None
    apis: tuple[str, ...] | None = None
    supporting_files: tuple[str, ...] | None = None
    input_spec: str | None = None
    properties: Mapping[str, Any] = field(default_factory=dict)

    def resolve(self) -> ResolvedOptions:
        """Apply the switch defaulting rules and freeze the result."""
        models = self.generate_models
        if models is None and self.models:
            models = True
        apis = self.generate_apis
        if apis is None and self.apis:
            apis = True
        supporting = self.generate_supporting_files
        if supporting is None and self.supporting_files:
            supporting = True

        if models is None and apis is None and supporting is None:
            models = apis = supporting = True
        else:
            models = bool(models)
            apis = bool(apis)
            supporting = bool(supporting)

        supporting_names = _freeze(self.supporting_files)
        if supporting_names and ALL_SUPPORTING_FILES in {n.lower() for n in supporting_names}:
            if len(supporting_names) > 1:
                raise ConfigurationError(
                    f"'{ALL_SUPPORTING_FILES}' cannot be combined with named supporting files"
                )
            supporting_names = None

        return ResolvedOptions(
            generate_models=models,
            generate_apis=apis,
            generate_supporting_files=supporting,
            generate_model_tests=self.generate_model_tests,
            generate_model_docs=self.generate_model_docs,
            generate_api_tests=self.generate_api_tests,
            generate_api_docs=self.generate_api_docs,
            generate_metadata=self.generate_metadata,
            models=_freeze(self.models),
            apis=_freeze(self.apis),
            supporting_files=supporting_names,
            input_spec=self.input_spec,
            properties=MappingProxyType(dict(self.properties)),
        )


@dataclass(frozen=True)
class ResolvedOptions:
    generate_models: bool
    generate_apis: bool
    generate_supporting_files: bool
    generate_model_tests: bool
    generate_model_docs: bool
    generate_api_tests: bool
    generate_api_docs: bool
    generate_metadata: bool
    models: frozenset[str] | None
    apis: frozenset[str] | None
    supporting_files: frozenset[str] | None
    input_spec: str | None
    properties: Mapping[str, Any]

    @property
    def exclude_tests(self) -> bool:
        return not self.generate_api_tests and not self.generate_model_tests

    def template_flags(self) -> dict[str, Any]:
        """Switches exposed to templates so project files can reference tests/docs."""
        flags: dict[str, Any] = {
            "generateApiTests": self.generate_api_tests,
            "generateModelTests": self.generate_model_tests,
            "generateApiDocs": self.generate_api_docs,
            "generateModelDocs": self.generate_model_docs,
            "generateApis": self.generate_apis,
            "generateModels": self.generate_models,
        }
        if self.exclude_tests:
            flags["excludeTests"] = True
        return flags
