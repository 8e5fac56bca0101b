"""Build template contexts from the parsed spec and backend representations.

One builder per artifact category:
- base_context:        spec info, server location, run flags, user properties
- process_model:       one schema -> model file context (ModelResult)
- build_api_context:   one tag group -> api file context
- build_bundle:        everything -> supporting file context
"""

from __future__ import annotations

import datetime
import itertools
import logging
from typing import TYPE_CHECKING, Any, Mapping

from .imports import model_imports, operation_imports
from .models import CodegenOperation, ModelOutcome, ModelResult, SchemaDefinition, SpecDefinition
from .operations import deduplicate_nicknames, mark_has_more, sort_operations
from .options import ResolvedOptions
from .version import generator_version

if TYPE_CHECKING:
    from .backend import CodegenBackend

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_SCHEME = "https"
DEFAULT_VERSION = "1.0.0"
DEFAULT_DESCRIPTION = "No description provided (generated by specgen)"


def info_context(spec: SpecDefinition, backend: CodegenBackend) -> dict[str, Any]:
    """Expose the spec's info block to templates, filling required defaults."""
    info = spec.info
    context: dict[str, Any] = {}
    if info is None:
        return context
    escape = backend.escape_text

    if info.title is not None:
        context["appName"] = escape(info.title)

    if info.version is not None:
        context["appVersion"] = context["version"] = escape(info.version)
    else:
        logger.warning("Missing required field info version. Default version set to %s", DEFAULT_VERSION)
        context["appVersion"] = context["version"] = DEFAULT_VERSION

    if not info.description:
        logger.warning("Missing info description. Using a placeholder description")
        context["appDescription"] = context["unescapedAppDescription"] = DEFAULT_DESCRIPTION
    else:
        context["appDescription"] = escape(info.description)
        context["unescapedAppDescription"] = info.description

    optional = {
        "infoEmail": info.contact_email,
        "infoName": info.contact_name,
        "infoUrl": info.contact_url,
        "licenseInfo": info.license_name,
        "licenseUrl": info.license_url,
        "termsOfService": info.terms_of_service,
    }
    for key, value in optional.items():
        if value is not None:
            context[key] = escape(value)
    if info.vendor_extensions:
        context["info-extensions"] = info.vendor_extensions
    return context


def scheme(spec: SpecDefinition, backend: CodegenBackend) -> str:
    return backend.escape_text(spec.schemes[0] if spec.schemes else DEFAULT_SCHEME)


def host_without_base_path(spec: SpecDefinition, backend: CodegenBackend) -> str:
    host = spec.host
    if not host:
        logger.warning("'host' not defined in the spec. Default to '%s'.", DEFAULT_HOST)
        host = DEFAULT_HOST
    return f"{scheme(spec, backend)}://{host}"


def server_context(spec: SpecDefinition, backend: CodegenBackend) -> dict[str, Any]:
    """Scheme, host and base path variants shared by api files and the bundle."""
    escape = backend.escape_text
    without_base = host_without_base_path(spec, backend)
    host = without_base
    if spec.base_path and spec.base_path != "/":
        host += spec.base_path
    return {
        "scheme": scheme(spec, backend),
        "hostWithoutBasePath": without_base,
        "basePath": escape(host),
        "basePathWithoutHost": escape(spec.base_path or ""),
        "contextPath": escape(spec.base_path or ""),
    }


def base_context(
    spec: SpecDefinition,
    backend: CodegenBackend,
    options: ResolvedOptions,
    now: datetime.datetime | None = None,
) -> dict[str, Any]:
    """Keys every template sees: user properties, run flags and spec info."""
    now = now or datetime.datetime.now()
    context: dict[str, Any] = dict(options.properties)
    context.update(options.template_flags())
    context.update({
        "generatorVersion": generator_version(),
        "generatedDate": now.isoformat(),
        "generatedYear": str(now.year),
        "generatorClass": f"{type(backend).__module__}.{type(backend).__name__}",
        "inputSpec": options.input_spec or spec.source,
        "modelPackage": backend.model_package,
        "apiPackage": backend.api_package,
    })
    if spec.vendor_extensions:
        context["vendorExtensions"] = dict(spec.vendor_extensions)
    context.update(info_context(spec, backend))
    return context


def process_model(
    name: str,
    schema: SchemaDefinition,
    schemas: Mapping[str, SchemaDefinition],
    backend: CodegenBackend,
    import_mapping: Mapping[str, str],
    base: Mapping[str, Any],
) -> ModelResult:
    """Turn one schema into a model file context.

    Schemas flagged with ``x-codegen-ignore`` come back as ``SKIP``; any failure
    comes back as ``ERROR`` with the exception attached.
    """
    if schema.skip:
        logger.debug("Skipping model %s", name)
        return ModelResult(name, ModelOutcome.SKIP)
    try:
        model = backend.from_model(name, schema, schemas)
        imports = model_imports(
            model.imports,
            import_mapping,
            backend.instantiation_types,
            backend.default_includes,
            backend.to_model_import,
        )
        context = dict(base)
        context.update({
            "package": backend.model_package,
            "models": [{"model": model, "importPath": backend.to_model_import(model.classname)}],
            "imports": imports,
            "hasImports": bool(imports),
        })
        context = backend.post_process_models(context)
        context["classname"] = backend.to_model_name(name)
    except Exception as exc:
        return ModelResult(name, ModelOutcome.ERROR, error=exc)
    return ModelResult(name, ModelOutcome.GENERATE, context=context)


def mime_types(media_types: tuple[str, ...] | list[str]) -> list[dict[str, Any]]:
    """Media type entries with ``hasMore`` on all but the last."""
    last = len(media_types) - 1
    return [
        {"mediaType": media_type, "hasMore": index < last}
        for index, media_type in enumerate(media_types)
    ]


def build_api_context(
    tag: str,
    operations: list[CodegenOperation],
    spec: SpecDefinition,
    backend: CodegenBackend,
    import_mapping: Mapping[str, str],
    all_models: list[dict[str, Any]],
    base: Mapping[str, Any],
) -> dict[str, Any]:
    """Build the context for one tag group's api files."""
    operations = sort_operations(operations)
    deduplicate_nicknames(operations)
    mark_has_more(operations)

    imports = operation_imports(
        itertools.chain.from_iterable(op.imports for op in operations),
        import_mapping,
        backend.to_model_import,
    )

    context = dict(base)
    context.update({
        "operations": {
            "classname": backend.to_api_name(tag),
            "pathPrefix": backend.to_api_var_name(tag),
            "operation": operations,
        },
        "package": backend.api_package,
        "imports": imports,
        "hasImport": bool(imports),
        "sortParamsByRequiredFlag": _as_bool(base.get("sortParamsByRequiredFlag", True)),
    })
    context = backend.post_process_operations(context)
    context = backend.post_process_operations_with_models(context, all_models)
    mark_has_more(context["operations"]["operation"])

    context.update(server_context(spec, backend))
    context.update({
        "baseName": tag,
        "classname": backend.to_api_name(tag),
        "classVarName": backend.to_api_var_name(tag),
        "importPath": backend.to_api_import(tag),
        "classFilename": backend.to_api_filename(tag),
    })
    for source, media_types in (("consumes", spec.consumes), ("produces", spec.produces)):
        if media_types:
            context[source] = mime_types(media_types)
            context["has" + source.capitalize()] = True
    return context


def build_bundle(
    spec: SpecDefinition,
    backend: CodegenBackend,
    all_operations: list[dict[str, Any]],
    all_models: list[dict[str, Any]],
    base: Mapping[str, Any],
) -> dict[str, Any]:
    """Build the context shared by every supporting file."""
    bundle = dict(base)
    bundle.update(server_context(spec, backend))
    if spec.host:
        bundle["host"] = spec.host
    bundle.update({
        "spec": spec,
        "apiInfo": {"apis": all_operations},
        "models": all_models,
        "apiFolder": backend.api_package.replace(".", "/"),
    })
    if spec.security_definitions:
        auth_methods = backend.from_security(spec.security_definitions)
        if auth_methods:
            bundle["authMethods"] = auth_methods
            bundle["hasAuthMethods"] = True
    if spec.external_docs:
        bundle["externalDocs"] = spec.external_docs

    for index, entry in enumerate(all_models):
        entry["model"].has_more_models = index < len(all_models) - 1

    return backend.post_process_supporting_file_data(bundle)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)
