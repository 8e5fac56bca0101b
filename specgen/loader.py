"""Load an API description and parse it into a ``SpecDefinition``.

Reads JSON or YAML from disk or over HTTP. Swagger 2.0 documents are read
natively; OpenAPI 3 documents are mapped onto the same structure
(components.schemas, components.securitySchemes, first server URL).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx
import yaml

from .errors import ConfigurationError
from .models import (
    HTTP_METHODS,
    Info,
    OperationDefinition,
    Parameter,
    PathItem,
    Response,
    SchemaDefinition,
    SecurityScheme,
    SpecDefinition,
    Tag,
)

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_SECONDS = 30.0


def _is_url(location: str) -> bool:
    return urlparse(location).scheme in ("http", "https")


def _decode(text: str, name: str) -> dict[str, Any]:
    if name.endswith((".yaml", ".yml")):
        document = yaml.safe_load(text)
    else:
        try:
            document = json.loads(text)
        except json.JSONDecodeError:
            document = yaml.safe_load(text)
    if not isinstance(document, dict):
        raise ConfigurationError(f"{name} does not contain an API description object")
    return document


def load_document(location: str | Path, client: httpx.Client | None = None) -> dict[str, Any]:
    """Load the raw API description from a file path or an http(s) URL."""
    location = str(location)
    if _is_url(location):
        owns_client = client is None
        client = client or httpx.Client(timeout=HTTP_TIMEOUT_SECONDS, follow_redirects=True)
        try:
            response = client.get(location)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ConfigurationError(f"Could not fetch {location}: {exc}") from exc
        finally:
            if owns_client:
                client.close()
        return _decode(response.text, urlparse(location).path)

    path = Path(location)
    if not path.is_file():
        raise ConfigurationError(f"Input spec not found: {path}")
    with open(path, encoding="utf-8") as f:
        return _decode(f.read(), path.name)


def load_spec(location: str | Path, client: httpx.Client | None = None) -> SpecDefinition:
    """Load and parse the API description at ``location``."""
    return parse_spec(load_document(location, client), source=str(location))


def resolve_ref(document: dict[str, Any], ref: str) -> dict[str, Any]:
    """Resolve a local $ref pointer in the document."""
    if not ref.startswith("#/"):
        raise ConfigurationError(f"Only local references are supported: {ref}")
    node: Any = document
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        try:
            node = node[part]
        except (KeyError, TypeError) as exc:
            raise ConfigurationError(f"Unresolvable reference: {ref}") from exc
    return node


def _extensions(node: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in node.items() if k.startswith("x-")}


def _ref_key(ref: str) -> str:
    return ref.rsplit("/", 1)[-1]


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

def get_schemas(document: dict[str, Any]) -> dict[str, Any]:
    """Extract schema definitions from either spec flavour."""
    if "definitions" in document:
        return document.get("definitions") or {}
    return document.get("components", {}).get("schemas", {}) or {}


def parse_schema(name: str, node: dict[str, Any], raw_schemas: dict[str, Any]) -> SchemaDefinition:
    """Build a ``SchemaDefinition``; allOf references become interfaces or the parent.

    A referenced schema that declares a discriminator is the parent; the other
    references are interfaces. Inline allOf members contribute properties.
    """
    properties = dict(node.get("properties", {}))
    required = list(node.get("required", []))
    parent = None
    interfaces: list[str] = []

    for member in node.get("allOf", []):
        if "$ref" in member:
            key = _ref_key(member["$ref"])
            target = raw_schemas.get(key, {})
            if parent is None and "discriminator" in target:
                parent = key
            else:
                interfaces.append(key)
        else:
            properties.update(member.get("properties", {}))
            required.extend(member.get("required", []))

    discriminator = node.get("discriminator")
    if isinstance(discriminator, dict):
        discriminator = discriminator.get("propertyName")

    additional = node.get("additionalProperties")
    enum = node.get("enum")
    schema_type = node.get("type")
    if schema_type is None and (properties or "allOf" in node):
        schema_type = "object"

    return SchemaDefinition(
        name=name,
        type=schema_type,
        description=node.get("description", "") or "",
        properties=properties,
        required=tuple(dict.fromkeys(required)),
        parent=parent,
        interfaces=tuple(interfaces),
        discriminator=discriminator,
        items=node.get("items"),
        enum=tuple(enum) if enum is not None else None,
        format=node.get("format"),
        additional_properties=additional if isinstance(additional, dict) else None,
        vendor_extensions=_extensions(node),
    )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def parse_parameter(document: dict[str, Any], node: dict[str, Any]) -> Parameter:
    if "$ref" in node:
        node = resolve_ref(document, node["$ref"])
    location = node.get("in", "query")
    schema = node.get("schema")
    if location == "body" or (schema and "$ref" in schema):
        # Typed by its schema; nothing to lift onto the parameter itself
        source: dict[str, Any] = {}
    else:
        source, schema = (schema or node), None
    enum = source.get("enum")
    return Parameter(
        name=node["name"],
        location=location,
        required=bool(node.get("required", False)),
        description=node.get("description", "") or "",
        type=source.get("type"),
        format=source.get("format"),
        schema=schema,
        items=source.get("items"),
        default=source.get("default"),
        enum=tuple(enum) if enum is not None else None,
    )


def _request_body_parameter(document: dict[str, Any], node: dict[str, Any]) -> tuple[Parameter | None, tuple[str, ...]]:
    """Map an OpenAPI 3 requestBody onto a body parameter plus its media types."""
    if "$ref" in node:
        node = resolve_ref(document, node["$ref"])
    content = node.get("content", {})
    if not content:
        return None, ()
    media_type = "application/json" if "application/json" in content else next(iter(content))
    schema = content[media_type].get("schema") or {}
    parameter = Parameter(
        name=node.get("x-body-name", "body"),
        location="body",
        required=bool(node.get("required", False)),
        description=node.get("description", "") or "",
        schema=schema,
    )
    return parameter, tuple(content)


def parse_responses(node: dict[str, Any]) -> tuple[Response, ...]:
    responses = []
    for code, response in (node or {}).items():
        schema = response.get("schema")
        if schema is None and "content" in response:
            for media in response["content"].values():
                if media.get("schema"):
                    schema = media["schema"]
                    break
        responses.append(Response(str(code), response.get("description", "") or "", schema))
    return tuple(responses)


def _security(node: list[dict[str, Any]] | None) -> tuple[dict[str, list[str]], ...] | None:
    if node is None:
        return None
    return tuple({name: list(scopes or []) for name, scopes in req.items()} for req in node)


def parse_operation(document: dict[str, Any], path: str, method: str, node: dict[str, Any]) -> OperationDefinition:
    parameters = [parse_parameter(document, p) for p in node.get("parameters", [])]
    consumes = tuple(node.get("consumes", ()))
    if "requestBody" in node:
        body, media_types = _request_body_parameter(document, node["requestBody"])
        if body is not None:
            parameters.append(body)
            consumes = consumes or media_types
    produces = tuple(node.get("produces", ()))
    if not produces:
        media = {m for r in (node.get("responses") or {}).values() for m in r.get("content", {})}
        produces = tuple(sorted(media))
    return OperationDefinition(
        method=method,
        path=path,
        operation_id=node.get("operationId"),
        summary=node.get("summary", "") or "",
        description=node.get("description", "") or "",
        tags=tuple(node.get("tags", ())),
        parameters=tuple(parameters),
        security=_security(node.get("security")),
        consumes=consumes,
        produces=produces,
        responses=parse_responses(node.get("responses", {})),
        deprecated=bool(node.get("deprecated", False)),
        vendor_extensions=_extensions(node),
    )


def get_paths(document: dict[str, Any]) -> dict[str, Any]:
    """Extract paths from the document."""
    return document.get("paths", {}) or {}


def parse_paths(document: dict[str, Any]) -> dict[str, PathItem]:
    paths = {}
    for path, node in get_paths(document).items():
        if "$ref" in node:
            node = resolve_ref(document, node["$ref"])
        operations = {
            method: parse_operation(document, path, method, node[method])
            for method in HTTP_METHODS
            if method in node
        }
        parameters = tuple(parse_parameter(document, p) for p in node.get("parameters", []))
        paths[path] = PathItem(path=path, operations=operations, parameters=parameters)
    return paths


# ---------------------------------------------------------------------------
# Security and metadata
# ---------------------------------------------------------------------------

def parse_security_scheme(node: dict[str, Any]) -> SecurityScheme:
    scheme_type = node.get("type", "")
    flow = node.get("flow")
    authorization_url = node.get("authorizationUrl")
    token_url = node.get("tokenUrl")
    scopes = dict(node.get("scopes", {}) or {})
    if scheme_type == "http" and node.get("scheme") == "basic":
        scheme_type = "basic"
    if "flows" in node and node["flows"]:
        flow, flow_node = next(iter(node["flows"].items()))
        authorization_url = flow_node.get("authorizationUrl")
        token_url = flow_node.get("tokenUrl")
        scopes = dict(flow_node.get("scopes", {}) or {})
    return SecurityScheme(
        type=scheme_type,
        description=node.get("description", "") or "",
        param_name=node.get("name"),
        location=node.get("in"),
        flow=flow,
        authorization_url=authorization_url,
        token_url=token_url,
        scopes=scopes,
    )


def parse_info(node: dict[str, Any] | None) -> Info | None:
    if node is None:
        return None
    contact = node.get("contact") or {}
    license_ = node.get("license") or {}
    return Info(
        title=node.get("title"),
        version=None if node.get("version") is None else str(node["version"]),
        description=node.get("description"),
        terms_of_service=node.get("termsOfService"),
        contact_name=contact.get("name"),
        contact_email=contact.get("email"),
        contact_url=contact.get("url"),
        license_name=license_.get("name"),
        license_url=license_.get("url"),
        vendor_extensions=_extensions(node),
    )


def _server_location(document: dict[str, Any]) -> tuple[tuple[str, ...], str | None, str | None]:
    """Return (schemes, host, base path) for either spec flavour."""
    if "servers" not in document:
        return tuple(document.get("schemes", ())), document.get("host"), document.get("basePath")
    servers = document.get("servers") or []
    if not servers:
        return (), None, None
    url = urlparse(servers[0].get("url", ""))
    schemes = (url.scheme,) if url.scheme else ()
    return schemes, url.netloc or None, url.path or None


def parse_spec(document: dict[str, Any], source: str | None = None) -> SpecDefinition:
    """Parse a raw API description document."""
    raw_schemas = get_schemas(document)
    schemas = {name: parse_schema(name, node or {}, raw_schemas) for name, node in raw_schemas.items()}

    if "securityDefinitions" in document:
        raw_security = document.get("securityDefinitions") or {}
    else:
        raw_security = document.get("components", {}).get("securitySchemes", {}) or {}

    schemes, host, base_path = _server_location(document)
    tags = tuple(
        Tag(name=t["name"], description=t.get("description"), external_docs=t.get("externalDocs"))
        for t in document.get("tags", []) or []
    )

    logger.debug("Parsed %d schemas and %d paths from %s", len(schemas), len(get_paths(document)), source)
    return SpecDefinition(
        info=parse_info(document.get("info")),
        host=host,
        base_path=base_path,
        schemes=schemes,
        consumes=tuple(document.get("consumes", ())),
        produces=tuple(document.get("produces", ())),
        schemas=schemas,
        paths=parse_paths(document),
        security=_security(document.get("security")),
        security_definitions={name: parse_security_scheme(node) for name, node in raw_security.items()},
        tags=tags,
        external_docs=document.get("externalDocs"),
        vendor_extensions=_extensions(document),
        source=source,
    )
