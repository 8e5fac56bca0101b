"""Naming-policy functions shared by backends.

Every function here is a pure ``str -> str`` transform.

Default operation ids are derived from HTTP method + path when a spec omits
``operationId``:
  - GET collection      -> list_{plural}
  - GET collection/{id} -> get_{singular}
  - POST collection     -> create_{singular}
  - PUT collection/{id} -> update_{singular}
  - DELETE col/{id}     -> delete_{singular}

Examples:
  GET    /pets               -> list_pets
  GET    /pets/{petId}       -> get_pet
  POST   /pets               -> create_pet
  DELETE /pets/{petId}       -> delete_pet
  GET    /store/inventory    -> list_store_inventory
  POST   /users/{id}/avatar  -> create_users_avatar

Namespaced tags (``ComAcmeV1Pets``) carry a package path in their leading
words, up to and including the first version number:
  strip_through_first_digit("ComAcmeV1PetsApi") -> "PetsApi"
  camel_to_path("ComAcmeV1PetsApi")             -> "com/acme/v1/PetsApi"
"""

from __future__ import annotations

import keyword
import re

_METHOD_VERBS: dict[str, str] = {
    "get": "list",
    "post": "create",
    "put": "update",
    "delete": "delete",
    "patch": "update",
    "head": "head",
    "options": "options",
}

# Irregular plural/singular mappings
_PLURALS: dict[str, str] = {
    "person": "people",
    "child": "children",
    "index": "indices",
    "status": "statuses",
    "address": "addresses",
    "category": "categories",
    "directory": "directories",
    "entry": "entries",
    "policy": "policies",
}

_SINGULARS: dict[str, str] = {v: k for k, v in _PLURALS.items()}


def pluralize(word: str) -> str:
    """Return the plural form of a resource name."""
    if word in _PLURALS:
        return _PLURALS[word]
    if word in _SINGULARS:
        return word
    if word.endswith("s"):
        return word
    return word + "s"


def singularize(word: str) -> str:
    """Return the singular form of a resource name."""
    if word in _SINGULARS:
        return _SINGULARS[word]
    if word in _PLURALS:
        return word
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("ses"):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def camel_to_snake(name: str) -> str:
    """Convert camelCase or PascalCase to snake_case."""
    s1 = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    return re.sub(r"([a-z\d])([A-Z])", r"\1_\2", s1).lower()


def _words(name: str) -> list[str]:
    return [w for w in re.split(r"[^A-Za-z0-9]+", camel_to_snake(name).replace("_", " ")) if w]


def to_pascal_case(name: str) -> str:
    """Convert any identifier-ish string to PascalCase."""
    return "".join(w[:1].upper() + w[1:] for w in _words(name))


def to_camel_case(name: str) -> str:
    """Convert any identifier-ish string to camelCase."""
    pascal = to_pascal_case(name)
    return pascal[:1].lower() + pascal[1:]


def to_snake_case(name: str) -> str:
    """Convert any identifier-ish string to snake_case."""
    return "_".join(_words(name))


def sanitize_identifier(name: str, prefix: str = "_") -> str:
    """Make ``name`` a valid Python identifier, prefixing digits and keywords."""
    cleaned = re.sub(r"\W", "_", name)
    cleaned = re.sub(r"_+", "_", cleaned).strip("_") or "_"
    if cleaned[0].isdigit() or keyword.iskeyword(cleaned):
        cleaned = prefix + cleaned
    return cleaned


def sanitize_segment(segment: str) -> str:
    """Sanitize a path segment for use in an identifier."""
    name = camel_to_snake(segment)
    name = re.sub(r"[.\-]", "_", name)
    name = re.sub(r"[^a-z0-9_]", "", name)
    name = re.sub(r"_+", "_", name)
    return name.strip("_")


def _extract_path_parts(path: str) -> list[str]:
    """Extract literal path segments, dropping {params}."""
    return [p for p in path.strip("/").split("/") if p and not p.startswith("{")]


def build_operation_id(method: str, path: str) -> str:
    """Build an operation id from HTTP method and path.

    Returns a name like 'list_pets' or 'get_pet'.
    """
    method_lower = method.lower()
    parts = [sanitize_segment(p) for p in _extract_path_parts(path)]
    parts = [p for p in parts if p]
    has_id = any(p.startswith("{") for p in path.split("/") if p)

    if method_lower == "get":
        verb = "get" if has_id else "list"
    else:
        verb = _METHOD_VERBS.get(method_lower, method_lower)

    if not parts:
        return f"{verb}_root"

    if len(parts) == 1:
        resource = parts[0]
        if verb == "list":
            resource = pluralize(resource)
        elif has_id or verb == "create":
            resource = singularize(resource)
        return f"{verb}_{resource}"

    return f"{verb}_{'_'.join(parts)}"


def strip_through_first_digit(name: str) -> str:
    """Drop everything up to and including the first digit.

    Names without a digit are returned unchanged.
    """
    match = re.search(r"\d", name)
    if match is None:
        return name
    return name[match.end():]


def camel_to_path(name: str, separator: str = "/") -> str:
    """Turn the leading CamelCase words of ``name`` into lowercase path segments.

    Words are split until the first digit; the digit closes the last package
    segment and the remainder is kept verbatim as the final segment. Names
    without a digit are returned unchanged.
    """
    match = re.search(r"\d", name)
    if match is None:
        return name
    head = name[:match.end()]
    tail = name[match.end():]
    segments = [w.lower() for w in re.findall(r"[A-Z]?[a-z]*\d?", head) if w]
    if tail:
        segments.append(tail)
    return separator.join(segments)
