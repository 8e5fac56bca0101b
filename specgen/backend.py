"""Language backend interface and its default implementation.

The pipeline talks to a backend only through ``CodegenBackend``. A backend
knows how to name things in its target language, how to turn schemas and
operations into template-ready representations, which templates to render
for each file category, and which hooks to run between stages.

``DefaultBackend`` implements the whole interface with language-neutral
behaviour; concrete backends subclass it and override naming, type mapping
and template registries. Backends are looked up by name through
``get_backend``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol, runtime_checkable

import jinja2

from .errors import ConfigurationError
from .models import (
    CodegenModel,
    CodegenOperation,
    CodegenParameter,
    CodegenProperty,
    CodegenSecurity,
    OperationDefinition,
    Parameter,
    SchemaDefinition,
    SecurityScheme,
    SpecDefinition,
)
from .naming import build_operation_id, camel_to_snake, sanitize_identifier, to_camel_case, to_pascal_case
from .operations import mark_has_more

TEMPLATE_DIR = Path(__file__).parent / "templates"
COMMON_TEMPLATE_DIR = TEMPLATE_DIR / "_common"

REF_PREFIXES = ("#/definitions/", "#/components/schemas/")


@dataclass(frozen=True)
class SupportingFile:
    """A non-model, non-api output file.

    ``template_file`` ending in ``.j2`` is rendered with the bundle; anything
    else is copied verbatim. Global files are read from the common template
    directory shared by all backends.
    """

    template_file: str
    destination_filename: str
    folder: str = ""
    is_global: bool = False

    def __str__(self) -> str:
        folder = f"{self.folder}/" if self.folder else ""
        return f"{self.template_file} -> {folder}{self.destination_filename}"


@runtime_checkable
class CodegenBackend(Protocol):
    """Capabilities the pipeline needs from a language backend."""

    output_dir: Path
    template_dir: Path
    common_template_dir: Path
    model_package: str
    api_package: str
    import_mapping: dict[str, str]
    instantiation_types: dict[str, str]
    default_includes: set[str]
    skip_alias_generation: bool
    ignore_import_mapping: bool
    ignore_file_override: Path | None
    model_template_files: dict[str, str]
    model_test_template_files: dict[str, str]
    model_doc_template_files: dict[str, str]
    api_template_files: dict[str, str]
    api_test_template_files: dict[str, str]
    api_doc_template_files: dict[str, str]
    supporting_files: list[SupportingFile]

    # naming
    def escape_text(self, text: str | None) -> str: ...
    def to_model_name(self, name: str) -> str: ...
    def to_model_import(self, name: str) -> str | None: ...
    def to_api_name(self, tag: str) -> str: ...
    def to_api_var_name(self, tag: str) -> str: ...
    def to_api_filename(self, tag: str) -> str: ...
    def to_api_import(self, tag: str) -> str: ...
    def sanitize_tag(self, tag: str) -> str: ...
    def model_filename(self, template_name: str, model_name: str) -> Path: ...
    def model_test_filename(self, template_name: str, model_name: str) -> Path: ...
    def model_doc_filename(self, template_name: str, model_name: str) -> Path: ...
    def api_filename(self, template_name: str, tag: str) -> Path: ...
    def api_test_filename(self, template_name: str, tag: str) -> Path: ...
    def api_doc_filename(self, template_name: str, tag: str) -> Path: ...

    # transformation
    def from_model(
        self, name: str, schema: SchemaDefinition, all_schemas: Mapping[str, SchemaDefinition]
    ) -> CodegenModel: ...
    def from_operation(
        self, path: str, method: str, operation: OperationDefinition, spec: SpecDefinition
    ) -> CodegenOperation: ...
    def from_security(self, schemes: Mapping[str, SecurityScheme]) -> list[CodegenSecurity]: ...
    def add_operation_to_group(
        self,
        tag: str,
        path: str,
        operation: OperationDefinition,
        codegen_operation: CodegenOperation,
        groups: dict[str, list[CodegenOperation]],
    ) -> None: ...

    # hooks
    def preprocess_spec(self, spec: SpecDefinition) -> None: ...
    def postprocess_spec(self, spec: SpecDefinition) -> None: ...
    def post_process_models(self, context: dict[str, Any]) -> dict[str, Any]: ...
    def post_process_all_models(self, models: dict[str, dict[str, Any]]) -> dict[str, dict[str, Any]]: ...
    def post_process_operations(self, context: dict[str, Any]) -> dict[str, Any]: ...
    def post_process_operations_with_models(
        self, context: dict[str, Any], all_models: list[dict[str, Any]]
    ) -> dict[str, Any]: ...
    def post_process_supporting_file_data(self, bundle: dict[str, Any]) -> dict[str, Any]: ...
    def process_compiler(self, env: jinja2.Environment) -> jinja2.Environment: ...

    # policy
    def should_overwrite(self, path: Path) -> bool: ...


def ref_name(ref: str) -> str:
    """Return the schema key a ``$ref`` points at."""
    for prefix in REF_PREFIXES:
        if ref.startswith(prefix):
            return ref[len(prefix):]
    return ref.rsplit("/", 1)[-1]


class DefaultBackend:
    """Language-neutral backend; subclasses override naming and templates."""

    name = "default"

    type_mapping: dict[str, str] = {
        "string": "string",
        "integer": "integer",
        "number": "number",
        "boolean": "boolean",
        "object": "object",
        "file": "file",
    }
    list_declaration = "array<{item}>"
    map_declaration = "map<string, {value}>"
    any_type = "object"

    def __init__(
        self,
        output_dir: Path | str,
        *,
        template_dir: Path | str | None = None,
        model_package: str = "models",
        api_package: str = "api",
        skip_overwrite: bool = False,
        ignore_file_override: Path | str | None = None,
        import_mapping: Mapping[str, str] | None = None,
        skip_alias_generation: bool = False,
        ignore_import_mapping: bool = False,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.template_dir = Path(template_dir) if template_dir else TEMPLATE_DIR / self.name
        self.common_template_dir = COMMON_TEMPLATE_DIR
        self.model_package = model_package
        self.api_package = api_package
        self.skip_overwrite = skip_overwrite
        self.ignore_file_override = Path(ignore_file_override) if ignore_file_override else None
        self.import_mapping: dict[str, str] = dict(import_mapping or {})
        self.instantiation_types: dict[str, str] = {}
        self.default_includes: set[str] = set()
        self.skip_alias_generation = skip_alias_generation
        self.ignore_import_mapping = ignore_import_mapping
        self.model_template_files: dict[str, str] = {}
        self.model_test_template_files: dict[str, str] = {}
        self.model_doc_template_files: dict[str, str] = {}
        self.api_template_files: dict[str, str] = {}
        self.api_test_template_files: dict[str, str] = {}
        self.api_doc_template_files: dict[str, str] = {}
        self.supporting_files: list[SupportingFile] = []

    # -- naming -------------------------------------------------------------

    def escape_text(self, text: str | None) -> str:
        """Collapse whitespace and escape quotes for embedding in source."""
        if text is None:
            return ""
        text = re.sub(r"\s+", " ", text).strip()
        return text.replace("\\", "\\\\").replace('"', '\\"')

    def to_model_name(self, name: str) -> str:
        return sanitize_identifier(to_pascal_case(name), prefix="Model")

    def to_model_filename(self, name: str) -> str:
        return self.to_model_name(name)

    def to_model_import(self, name: str) -> str | None:
        return f"{self.model_package}.{self.to_model_name(name)}"

    def to_model_test_filename(self, name: str) -> str:
        return self.to_model_filename(name) + "Test"

    def to_model_doc_filename(self, name: str) -> str:
        return self.to_model_name(name)

    def to_api_name(self, tag: str) -> str:
        return to_pascal_case(tag) + "Api" if tag else "DefaultApi"

    def to_api_var_name(self, tag: str) -> str:
        return to_camel_case(tag) or "default"

    def to_api_filename(self, tag: str) -> str:
        return self.to_api_name(tag)

    def to_api_import(self, tag: str) -> str:
        return f"{self.api_package}.{self.to_api_name(tag)}"

    def to_api_test_filename(self, tag: str) -> str:
        return self.to_api_filename(tag) + "Test"

    def to_api_doc_filename(self, tag: str) -> str:
        return self.to_api_name(tag)

    def to_operation_name(self, operation_id: str) -> str:
        return sanitize_identifier(to_camel_case(operation_id), prefix="call_")

    def to_param_name(self, name: str) -> str:
        return sanitize_identifier(to_camel_case(name), prefix="param_")

    def to_var_name(self, name: str) -> str:
        return sanitize_identifier(to_camel_case(name), prefix="var_")

    def sanitize_tag(self, tag: str) -> str:
        return to_pascal_case(tag) or "Default"

    # -- output folders -----------------------------------------------------

    def _package_folder(self, package: str) -> Path:
        return self.output_dir.joinpath(*package.split("."))

    def model_file_folder(self) -> Path:
        return self._package_folder(self.model_package)

    def api_file_folder(self) -> Path:
        return self._package_folder(self.api_package)

    def model_test_file_folder(self) -> Path:
        return self.output_dir / "test"

    def api_test_file_folder(self) -> Path:
        return self.output_dir / "test"

    def model_doc_file_folder(self) -> Path:
        return self.output_dir / "docs"

    def api_doc_file_folder(self) -> Path:
        return self.output_dir / "docs"

    def model_filename(self, template_name: str, model_name: str) -> Path:
        suffix = self.model_template_files[template_name]
        return self.model_file_folder() / (self.to_model_filename(model_name) + suffix)

    def model_test_filename(self, template_name: str, model_name: str) -> Path:
        suffix = self.model_test_template_files[template_name]
        return self.model_test_file_folder() / (self.to_model_test_filename(model_name) + suffix)

    def model_doc_filename(self, template_name: str, model_name: str) -> Path:
        suffix = self.model_doc_template_files[template_name]
        return self.model_doc_file_folder() / (self.to_model_doc_filename(model_name) + suffix)

    def api_filename(self, template_name: str, tag: str) -> Path:
        suffix = self.api_template_files[template_name]
        return self.api_file_folder() / (self.to_api_filename(tag) + suffix)

    def api_test_filename(self, template_name: str, tag: str) -> Path:
        suffix = self.api_test_template_files[template_name]
        return self.api_test_file_folder() / (self.to_api_test_filename(tag) + suffix)

    def api_doc_filename(self, template_name: str, tag: str) -> Path:
        suffix = self.api_doc_template_files[template_name]
        return self.api_doc_file_folder() / (self.to_api_doc_filename(tag) + suffix)

    # -- types --------------------------------------------------------------

    def get_type_declaration(
        self,
        schema: Mapping[str, Any] | None,
        schemas: Mapping[str, SchemaDefinition],
        imports: set[str],
    ) -> tuple[str, str | None]:
        """Return (declared type, complex model type or None) for a property schema.

        Model references are added to ``imports``. Raises ``ValueError`` for a
        ``$ref`` that does not name a known schema.
        """
        if not schema:
            return self.any_type, None

        if "$ref" in schema:
            target = ref_name(schema["$ref"])
            if target not in schemas:
                raise ValueError(f"Unknown schema reference '{schema['$ref']}'")
            model = self.to_model_name(target)
            imports.add(model)
            return model, model

        schema_type = schema.get("type")
        if schema_type == "array":
            item, complex_type = self.get_type_declaration(schema.get("items"), schemas, imports)
            return self.list_declaration.format(item=item), complex_type

        if schema_type == "object" and isinstance(schema.get("additionalProperties"), dict):
            value, complex_type = self.get_type_declaration(
                schema["additionalProperties"], schemas, imports
            )
            return self.map_declaration.format(value=value), complex_type

        fmt = schema.get("format")
        if fmt and f"{schema_type}:{fmt}" in self.type_mapping:
            return self.type_mapping[f"{schema_type}:{fmt}"], None
        return self.type_mapping.get(schema_type or "object", self.any_type), None

    def to_default_value(self, schema: Mapping[str, Any]) -> str | None:
        default = schema.get("default")
        if default is None:
            return None
        if isinstance(default, str):
            return f'"{self.escape_text(default)}"'
        return str(default)

    def from_property(
        self,
        name: str,
        schema: Mapping[str, Any],
        required: bool,
        schemas: Mapping[str, SchemaDefinition],
        imports: set[str],
    ) -> CodegenProperty:
        datatype, complex_type = self.get_type_declaration(schema, schemas, imports)
        return CodegenProperty(
            name=self.to_var_name(name),
            base_name=name,
            datatype=datatype,
            description=self.escape_text(schema.get("description")),
            required=required,
            complex_type=complex_type,
            is_primitive_type=complex_type is None,
            is_list_container=schema.get("type") == "array",
            is_map_container=schema.get("type") == "object" and "additionalProperties" in schema,
            default_value=self.to_default_value(schema),
            enum_values=list(schema["enum"]) if "enum" in schema else None,
            read_only=bool(schema.get("readOnly", False)),
        )

    # -- transformation -----------------------------------------------------

    def from_model(
        self,
        name: str,
        schema: SchemaDefinition,
        all_schemas: Mapping[str, SchemaDefinition],
    ) -> CodegenModel:
        imports: set[str] = set()
        model = CodegenModel(
            name=name,
            classname=self.to_model_name(name),
            class_filename=self.to_model_filename(name),
            description=self.escape_text(schema.description),
            discriminator=schema.discriminator,
            vendor_extensions=dict(schema.vendor_extensions),
        )
        if schema.parent:
            model.parent = self.to_model_name(schema.parent)
            imports.add(model.parent)
        for interface in schema.interfaces:
            classname = self.to_model_name(interface)
            model.interfaces.append(classname)
            imports.add(classname)

        if schema.enum:
            model.enum_values = list(schema.enum)
            model.data_type = self.type_mapping.get(schema.type or "string", self.any_type)
        elif not schema.properties and not schema.parent and not schema.interfaces and (
            schema.type not in (None, "object") or schema.additional_properties is not None
        ):
            alias_schema: dict[str, Any] = {"type": schema.type or "object"}
            if schema.items is not None:
                alias_schema["items"] = schema.items
            if schema.additional_properties is not None:
                alias_schema["additionalProperties"] = schema.additional_properties
            if schema.format:
                alias_schema["format"] = schema.format
            model.data_type, _ = self.get_type_declaration(alias_schema, all_schemas, imports)
            model.is_alias = True

        required = set(schema.required)
        for prop_name, prop_schema in schema.properties.items():
            model.vars.append(
                self.from_property(prop_name, prop_schema, prop_name in required, all_schemas, imports)
            )
        mark_has_more(model.vars)
        imports.discard(model.classname)
        model.imports = imports
        return model

    def from_parameter(
        self,
        parameter: Parameter,
        schemas: Mapping[str, SchemaDefinition],
        imports: set[str],
    ) -> CodegenParameter:
        if parameter.schema is not None:
            schema: Mapping[str, Any] = parameter.schema
        else:
            schema = {"type": parameter.type or "string"}
            if parameter.items is not None:
                schema["items"] = parameter.items
            if parameter.format:
                schema["format"] = parameter.format
            if parameter.default is not None:
                schema["default"] = parameter.default
        datatype, _ = self.get_type_declaration(schema, schemas, imports)
        return CodegenParameter(
            base_name=parameter.name,
            param_name=self.to_param_name(parameter.name),
            datatype=datatype,
            location=parameter.location,
            description=self.escape_text(parameter.description),
            required=parameter.required or parameter.location == "path",
            default_value=self.to_default_value(schema),
        )

    def from_operation(
        self,
        path: str,
        method: str,
        operation: OperationDefinition,
        spec: SpecDefinition,
    ) -> CodegenOperation:
        operation_id = operation.operation_id or build_operation_id(method, path)
        imports: set[str] = set()
        params = [self.from_parameter(p, spec.schemas, imports) for p in operation.parameters]
        mark_has_more(params)

        return_type = return_base_type = None
        for response in sorted(operation.responses, key=lambda r: (not r.code.startswith("2"), r.code)):
            if not response.code.startswith("2") and response.code != "default":
                continue
            if response.schema:
                return_type, return_base_type = self.get_type_declaration(
                    response.schema, spec.schemas, imports
                )
                if return_base_type is None:
                    return_base_type = return_type
            break

        return CodegenOperation(
            path=path,
            http_method=method.upper(),
            operation_id=operation_id,
            nickname=self.to_operation_name(operation_id),
            summary=self.escape_text(operation.summary),
            notes=self.escape_text(operation.description),
            all_params=params,
            return_type=return_type,
            return_base_type=return_base_type,
            imports=imports,
            consumes=list(operation.consumes or spec.consumes),
            produces=list(operation.produces or spec.produces),
            deprecated=operation.deprecated,
            vendor_extensions=dict(operation.vendor_extensions),
        )

    def from_security(self, schemes: Mapping[str, SecurityScheme]) -> list[CodegenSecurity]:
        securities = []
        for name, scheme in schemes.items():
            securities.append(
                CodegenSecurity(
                    name=name,
                    type=scheme.type,
                    description=self.escape_text(scheme.description),
                    key_param_name=scheme.param_name,
                    key_location=scheme.location,
                    flow=scheme.flow,
                    authorization_url=scheme.authorization_url,
                    token_url=scheme.token_url,
                    scopes=[{"scope": k, "description": v} for k, v in scheme.scopes.items()],
                )
            )
        mark_has_more(securities)
        return securities

    def add_operation_to_group(
        self,
        tag: str,
        path: str,
        operation: OperationDefinition,
        codegen_operation: CodegenOperation,
        groups: dict[str, list[CodegenOperation]],
    ) -> None:
        groups.setdefault(tag, []).append(codegen_operation)

    # -- hooks --------------------------------------------------------------

    def preprocess_spec(self, spec: SpecDefinition) -> None:
        pass

    def postprocess_spec(self, spec: SpecDefinition) -> None:
        pass

    def post_process_models(self, context: dict[str, Any]) -> dict[str, Any]:
        return context

    def post_process_all_models(self, models: dict[str, dict[str, Any]]) -> dict[str, dict[str, Any]]:
        return models

    def post_process_operations(self, context: dict[str, Any]) -> dict[str, Any]:
        return context

    def post_process_operations_with_models(
        self, context: dict[str, Any], all_models: list[dict[str, Any]]
    ) -> dict[str, Any]:
        return context

    def post_process_supporting_file_data(self, bundle: dict[str, Any]) -> dict[str, Any]:
        return bundle

    def process_compiler(self, env: jinja2.Environment) -> jinja2.Environment:
        env.filters.setdefault("snake", camel_to_snake)
        return env

    # -- policy -------------------------------------------------------------

    def should_overwrite(self, path: Path) -> bool:
        return not (self.skip_overwrite and Path(path).exists())


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_BACKENDS: dict[str, type[DefaultBackend]] = {}


def register_backend(name: str) -> Callable[[type[DefaultBackend]], type[DefaultBackend]]:
    """Class decorator making a backend available to ``get_backend``."""
    def _register(cls: type[DefaultBackend]) -> type[DefaultBackend]:
        cls.name = name
        _BACKENDS[name] = cls
        return cls
    return _register


def available_backends() -> list[str]:
    from . import python_backend  # noqa: F401  (registers itself)

    return sorted(_BACKENDS)


def get_backend(name: str, output_dir: Path | str, **kwargs: Any) -> DefaultBackend:
    """Instantiate the backend registered as ``name``."""
    if name not in available_backends():
        raise ConfigurationError(
            f"Unknown backend '{name}'. Available: {', '.join(available_backends())}"
        )
    return _BACKENDS[name](output_dir, **kwargs)
