"""Python client backend.

Generates a package of dataclass models and httpx-based API classes:

    {package}/
        __init__.py
        api_client.py
        configuration.py
        model_base.py
        api/{tag}_api.py
        models/{model}.py
    docs/{Model}.md, docs/{Tag}Api.md
    test/test_{model}.py, test/test_{tag}_api.py
    README.md, pyproject.toml, .gitignore, LICENSE
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Mapping

from .backend import DefaultBackend, SupportingFile, register_backend
from .models import HTTP_METHODS, SchemaDefinition, SpecDefinition
from .naming import camel_to_path, sanitize_identifier, strip_through_first_digit, to_pascal_case, to_snake_case
from .operations import resolve_tags

# Built-in types that need an import statement, keyed by qualified name so
# they never collide with schema names
_TYPE_IMPORTS: dict[str, str] = {
    "typing.Any": "from typing import Any",
    "datetime.datetime": "from datetime import datetime",
    "datetime.date": "from datetime import date",
}

NAMESPACE_INIT_TEMPLATE = "namespace_init.py.j2"


@register_backend("python")
class PythonClientBackend(DefaultBackend):
    """Backend producing a Python 3 client package."""

    type_mapping = {
        "string": "str",
        "integer": "int",
        "number": "float",
        "boolean": "bool",
        "object": "dict[str, Any]",
        "file": "bytes",
        "string:date-time": "datetime",
        "string:date": "date",
        "string:binary": "bytes",
    }
    list_declaration = "list[{item}]"
    map_declaration = "dict[str, {value}]"
    any_type = "Any"

    def __init__(
        self,
        output_dir: Path | str,
        *,
        package_name: str = "openapi_client",
        project_name: str | None = None,
        namespaced_tags: bool = False,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("model_package", f"{package_name}.models")
        kwargs.setdefault("api_package", f"{package_name}.api")
        super().__init__(output_dir, **kwargs)
        self.package_name = package_name
        self.project_name = project_name or package_name.replace("_", "-")
        self.namespaced_tags = namespaced_tags
        self.default_includes = {"from typing import Any"}

        self.model_template_files = {"model.py.j2": ".py"}
        self.model_test_template_files = {"model_test.py.j2": ".py"}
        self.model_doc_template_files = {"model_doc.md.j2": ".md"}
        self.api_template_files = {"api.py.j2": ".py"}
        self.api_test_template_files = {"api_test.py.j2": ".py"}
        self.api_doc_template_files = {"api_doc.md.j2": ".md"}

        package_folder = package_name.replace(".", "/")
        self.supporting_files = [
            SupportingFile("README.md.j2", "README.md"),
            SupportingFile("pyproject.toml.j2", "pyproject.toml"),
            SupportingFile("package_init.py.j2", "__init__.py", package_folder),
            SupportingFile("models_init.py.j2", "__init__.py", f"{package_folder}/models"),
            SupportingFile("api_init.py.j2", "__init__.py", f"{package_folder}/api"),
            SupportingFile("model_base.py.j2", "model_base.py", package_folder),
            SupportingFile("configuration.py.j2", "configuration.py", package_folder),
            SupportingFile("api_client.py.j2", "api_client.py", package_folder),
            SupportingFile("gitignore", ".gitignore"),
            SupportingFile("LICENSE", "LICENSE", is_global=True),
        ]

    # -- naming -------------------------------------------------------------

    def to_model_name(self, name: str) -> str:
        return sanitize_identifier(to_pascal_case(name), prefix="Model")

    def to_model_filename(self, name: str) -> str:
        return sanitize_identifier(to_snake_case(self.to_model_name(name)), prefix="model_")

    def to_model_import(self, name: str) -> str | None:
        if name in _TYPE_IMPORTS:
            return _TYPE_IMPORTS[name]
        return f"from {self.model_package}.{self.to_model_filename(name)} import {self.to_model_name(name)}"

    def to_model_test_filename(self, name: str) -> str:
        return f"test_{self.to_model_filename(name)}"

    def to_api_name(self, tag: str) -> str:
        name = to_pascal_case(tag) or "Default"
        if self.namespaced_tags:
            name = strip_through_first_digit(name) or name
        return name + "Api"

    def to_api_filename(self, tag: str) -> str:
        return to_snake_case(self.to_api_name(tag))

    def api_namespace(self, tag: str) -> list[str]:
        """Package segments a namespaced tag adds below the api package."""
        if not self.namespaced_tags:
            return []
        segments = camel_to_path(to_pascal_case(tag)).split("/")[:-1]
        return [sanitize_identifier(s, prefix="v") for s in segments]

    def to_api_import(self, tag: str) -> str:
        module = ".".join([self.api_package, *self.api_namespace(tag), self.to_api_filename(tag)])
        return f"from {module} import {self.to_api_name(tag)}"

    def to_api_test_filename(self, tag: str) -> str:
        return f"test_{self.to_api_filename(tag)}"

    def to_operation_name(self, operation_id: str) -> str:
        return sanitize_identifier(to_snake_case(operation_id), prefix="call_")

    def to_param_name(self, name: str) -> str:
        return sanitize_identifier(to_snake_case(name), prefix="param_")

    def to_var_name(self, name: str) -> str:
        return sanitize_identifier(to_snake_case(name), prefix="var_")

    def api_filename(self, template_name: str, tag: str) -> Path:
        path = super().api_filename(template_name, tag)
        return path.parent.joinpath(*self.api_namespace(tag), path.name)

    # -- types --------------------------------------------------------------

    def get_type_declaration(
        self,
        schema: Mapping[str, Any] | None,
        schemas: Mapping[str, SchemaDefinition],
        imports: set[str],
    ) -> tuple[str, str | None]:
        datatype, complex_type = super().get_type_declaration(schema, schemas, imports)
        words = set(re.findall(r"\w+", datatype))
        for qualified in _TYPE_IMPORTS:
            if qualified.rpartition(".")[2] in words:
                imports.add(qualified)
        return datatype, complex_type

    def to_default_value(self, schema: Mapping[str, Any]) -> str | None:
        default = schema.get("default")
        if default is None:
            return None
        if isinstance(default, bool):
            return "True" if default else "False"
        return super().to_default_value(schema)

    # -- hooks --------------------------------------------------------------

    def preprocess_spec(self, spec: SpecDefinition) -> None:
        """Register an __init__.py for every package folder namespaced tags create."""
        self.supporting_files = [
            s for s in self.supporting_files if s.template_file != NAMESPACE_INIT_TEMPLATE
        ]
        if not self.namespaced_tags:
            return
        api_folder = self.api_package.replace(".", "/")
        folders: set[str] = set()
        for path_item in spec.paths.values():
            for method in HTTP_METHODS:
                operation = path_item.operations.get(method)
                if operation is None:
                    continue
                for tag in resolve_tags(operation, spec):
                    namespace = self.api_namespace(self.sanitize_tag(tag.name))
                    for depth in range(1, len(namespace) + 1):
                        folders.add("/".join([api_folder, *namespace[:depth]]))
        for folder in sorted(folders):
            self.supporting_files.append(SupportingFile(NAMESPACE_INIT_TEMPLATE, "__init__.py", folder))

    def post_process_models(self, context: dict[str, Any]) -> dict[str, Any]:
        context["packageName"] = self.package_name
        return context

    def post_process_operations(self, context: dict[str, Any]) -> dict[str, Any]:
        """Required parameters first when sortParamsByRequiredFlag is set."""
        context["packageName"] = self.package_name
        if context.get("sortParamsByRequiredFlag", True):
            for operation in context["operations"]["operation"]:
                operation.all_params.sort(key=lambda p: not p.required)
                for index, param in enumerate(operation.all_params):
                    param.has_more = index < len(operation.all_params) - 1
        return context

    def post_process_supporting_file_data(self, bundle: dict[str, Any]) -> dict[str, Any]:
        bundle["packageName"] = self.package_name
        bundle["projectName"] = self.project_name
        return bundle

    def process_compiler(self, env):
        env = super().process_compiler(env)
        env.filters["pascal"] = to_pascal_case
        env.filters["snake_case"] = to_snake_case
        env.filters["identifier"] = sanitize_identifier
        return env
