"""Data types for the parsed API description and its generated representations.

The first half of this module holds the read-only input graph produced by
``loader.parse_spec``. The second half holds the backend-built representations
handed to templates, plus the per-run ``GenerationContext``.
"""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Vendor extensions understood by the pipeline itself
SKIP_EXTENSION = "x-codegen-ignore"
IMPORT_MAPPING_EXTENSION = "x-codegen-import-mapping"

HTTP_METHODS = ("get", "head", "put", "post", "delete", "patch", "options")


# ---------------------------------------------------------------------------
# Input graph
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Parameter:
    name: str
    location: str
    required: bool = False
    description: str = ""
    type: str | None = None
    format: str | None = None
    schema: dict[str, Any] | None = None
    items: dict[str, Any] | None = None
    default: Any = None
    enum: tuple[Any, ...] | None = None

    @property
    def identity(self) -> tuple[str, str]:
        """A parameter is uniquely identified by its name and location."""
        return (self.name, self.location)


@dataclass(frozen=True)
class Tag:
    name: str
    description: str | None = None
    external_docs: dict[str, Any] | None = None


@dataclass(frozen=True)
class SecurityScheme:
    type: str
    description: str = ""
    param_name: str | None = None
    location: str | None = None
    flow: str | None = None
    authorization_url: str | None = None
    token_url: str | None = None
    scopes: dict[str, str] = field(default_factory=dict)

    @property
    def is_oauth2(self) -> bool:
        return self.type == "oauth2"

    def restrict_scopes(self, requested: list[str]) -> SecurityScheme:
        """Return a copy holding only the requested scopes this scheme declares."""
        scopes = {s: self.scopes[s] for s in requested if s in self.scopes}
        return dataclasses.replace(self, scopes=scopes)


@dataclass(frozen=True)
class Response:
    code: str
    description: str = ""
    schema: dict[str, Any] | None = None


@dataclass(frozen=True)
class SchemaDefinition:
    name: str
    type: str | None = None
    description: str = ""
    properties: dict[str, dict[str, Any]] = field(default_factory=dict)
    required: tuple[str, ...] = ()
    parent: str | None = None
    interfaces: tuple[str, ...] = ()
    discriminator: str | None = None
    items: dict[str, Any] | None = None
    enum: tuple[Any, ...] | None = None
    format: str | None = None
    additional_properties: dict[str, Any] | None = None
    vendor_extensions: dict[str, Any] = field(default_factory=dict)

    @property
    def skip(self) -> bool:
        return SKIP_EXTENSION in self.vendor_extensions

    @property
    def import_override(self) -> str | None:
        value = self.vendor_extensions.get(IMPORT_MAPPING_EXTENSION)
        return str(value) if value is not None else None

    @property
    def effective_parent(self) -> str | None:
        """The parent used for depth computation: the parent, else the first interface."""
        if self.parent:
            return self.parent
        if self.interfaces:
            return self.interfaces[0]
        return None


@dataclass(frozen=True)
class OperationDefinition:
    method: str
    path: str
    operation_id: str | None = None
    summary: str = ""
    description: str = ""
    tags: tuple[str, ...] = ()
    parameters: tuple[Parameter, ...] = ()
    security: tuple[dict[str, list[str]], ...] | None = None
    consumes: tuple[str, ...] = ()
    produces: tuple[str, ...] = ()
    responses: tuple[Response, ...] = ()
    deprecated: bool = False
    vendor_extensions: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PathItem:
    path: str
    operations: dict[str, OperationDefinition] = field(default_factory=dict)
    parameters: tuple[Parameter, ...] = ()


@dataclass(frozen=True)
class Info:
    title: str | None = None
    version: str | None = None
    description: str | None = None
    terms_of_service: str | None = None
    contact_name: str | None = None
    contact_email: str | None = None
    contact_url: str | None = None
    license_name: str | None = None
    license_url: str | None = None
    vendor_extensions: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SpecDefinition:
    info: Info | None = None
    host: str | None = None
    base_path: str | None = None
    schemes: tuple[str, ...] = ()
    consumes: tuple[str, ...] = ()
    produces: tuple[str, ...] = ()
    schemas: dict[str, SchemaDefinition] = field(default_factory=dict)
    paths: dict[str, PathItem] = field(default_factory=dict)
    security: tuple[dict[str, list[str]], ...] | None = None
    security_definitions: dict[str, SecurityScheme] = field(default_factory=dict)
    tags: tuple[Tag, ...] = ()
    external_docs: dict[str, Any] | None = None
    vendor_extensions: dict[str, Any] = field(default_factory=dict)
    source: str | None = None


# ---------------------------------------------------------------------------
# Backend representations
# ---------------------------------------------------------------------------

@dataclass
class CodegenProperty:
    name: str
    base_name: str
    datatype: str
    description: str = ""
    required: bool = False
    complex_type: str | None = None
    is_primitive_type: bool = True
    is_list_container: bool = False
    is_map_container: bool = False
    default_value: str | None = None
    enum_values: list[Any] | None = None
    read_only: bool = False
    has_more: bool = False


@dataclass
class CodegenModel:
    name: str
    classname: str
    class_filename: str
    description: str = ""
    parent: str | None = None
    interfaces: list[str] = field(default_factory=list)
    vars: list[CodegenProperty] = field(default_factory=list)
    imports: set[str] = field(default_factory=set)
    data_type: str | None = None
    discriminator: str | None = None
    enum_values: list[Any] | None = None
    is_alias: bool = False
    has_more_models: bool = False
    vendor_extensions: dict[str, Any] = field(default_factory=dict)

    @property
    def required_vars(self) -> list[CodegenProperty]:
        return [v for v in self.vars if v.required]

    @property
    def optional_vars(self) -> list[CodegenProperty]:
        return [v for v in self.vars if not v.required]

    @property
    def has_vars(self) -> bool:
        return bool(self.vars)

    @property
    def is_enum(self) -> bool:
        return bool(self.enum_values)


@dataclass
class CodegenParameter:
    base_name: str
    param_name: str
    datatype: str
    location: str
    description: str = ""
    required: bool = False
    default_value: str | None = None
    has_more: bool = False

    @property
    def is_path_param(self) -> bool:
        return self.location == "path"

    @property
    def is_query_param(self) -> bool:
        return self.location == "query"

    @property
    def is_header_param(self) -> bool:
        return self.location == "header"

    @property
    def is_body_param(self) -> bool:
        return self.location == "body"

    @property
    def is_form_param(self) -> bool:
        return self.location == "formData"


@dataclass
class CodegenSecurity:
    name: str
    type: str
    description: str = ""
    key_param_name: str | None = None
    key_location: str | None = None
    flow: str | None = None
    authorization_url: str | None = None
    token_url: str | None = None
    scopes: list[dict[str, str]] = field(default_factory=list)
    has_more: bool = False

    @property
    def is_basic(self) -> bool:
        return self.type == "basic"

    @property
    def is_api_key(self) -> bool:
        return self.type == "apiKey"

    @property
    def is_oauth(self) -> bool:
        return self.type == "oauth2"

    @property
    def is_key_in_header(self) -> bool:
        return self.key_location == "header"

    @property
    def is_key_in_query(self) -> bool:
        return self.key_location == "query"


@dataclass
class CodegenOperation:
    path: str
    http_method: str
    operation_id: str
    nickname: str
    summary: str = ""
    notes: str = ""
    tags: list[Tag] = field(default_factory=list)
    all_params: list[CodegenParameter] = field(default_factory=list)
    return_type: str | None = None
    return_base_type: str | None = None
    imports: set[str] = field(default_factory=set)
    consumes: list[str] = field(default_factory=list)
    produces: list[str] = field(default_factory=list)
    auth_methods: list[CodegenSecurity] = field(default_factory=list)
    has_auth_methods: bool = False
    deprecated: bool = False
    has_more: bool = False
    vendor_extensions: dict[str, Any] = field(default_factory=dict)

    def _params_in(self, location: str) -> list[CodegenParameter]:
        return [p for p in self.all_params if p.location == location]

    @property
    def path_params(self) -> list[CodegenParameter]:
        return self._params_in("path")

    @property
    def query_params(self) -> list[CodegenParameter]:
        return self._params_in("query")

    @property
    def header_params(self) -> list[CodegenParameter]:
        return self._params_in("header")

    @property
    def form_params(self) -> list[CodegenParameter]:
        return self._params_in("formData")

    @property
    def body_param(self) -> CodegenParameter | None:
        body = self._params_in("body")
        return body[0] if body else None


# ---------------------------------------------------------------------------
# Per-run state
# ---------------------------------------------------------------------------

class ModelOutcome(enum.Enum):
    GENERATE = "generate"
    SKIP = "skip"
    ERROR = "error"


@dataclass
class ModelResult:
    """Outcome of processing one schema into a template context."""

    name: str
    outcome: ModelOutcome
    context: dict[str, Any] | None = None
    error: BaseException | None = None


@dataclass(frozen=True)
class RenderedArtifact:
    path: Path
    content: str


@dataclass
class GenerationContext:
    """Mutable state threaded through a single generation run."""

    options: Any
    import_mapping: dict[str, str] = field(default_factory=dict)
    processed_models: dict[str, dict[str, Any]] = field(default_factory=dict)
    all_models: list[dict[str, Any]] = field(default_factory=list)
    all_operations: list[dict[str, Any]] = field(default_factory=list)
    files: list[Path] = field(default_factory=list)
    bundle: dict[str, Any] = field(default_factory=dict)
