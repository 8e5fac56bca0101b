"""End-to-end generation of the petstore fixture through the Python backend."""

import ast
import json
import subprocess
import sys
from pathlib import Path

import pytest

from specgen.errors import ConfigurationError, CyclicInheritanceError, ModelGenerationError, OperationGroupError
from specgen.loader import load_spec, parse_spec
from specgen.options import GenerationOptions
from specgen.pipeline import METADATA_DIR, VERSION_FILENAME, Generator, generate
from specgen.python_backend import PythonClientBackend
from specgen.version import generator_version

PETSTORE = Path(__file__).parent / "fixtures" / "petstore.json"

MODEL_FILES = {
    "animal.py", "category.py", "dog.py", "error.py", "order.py",
    "order_status.py", "pet.py", "pet_names.py", "tag.py",
}
API_FILES = {"default_api.py", "pet_api.py", "store_api.py"}
SUPPORTING_FILES = {
    "README.md",
    "pyproject.toml",
    ".gitignore",
    "LICENSE",
    "openapi_client/__init__.py",
    "openapi_client/models/__init__.py",
    "openapi_client/api/__init__.py",
    "openapi_client/model_base.py",
    "openapi_client/configuration.py",
    "openapi_client/api_client.py",
}


def _relative(files, root):
    return {p.relative_to(root).as_posix() for p in files}


class TestFullGeneration:
    """Generate everything with default options."""

    @pytest.fixture(autouse=True)
    def _generate(self, tmp_path):
        self.out = tmp_path / "out"
        self.spec = load_spec(PETSTORE)
        self.files = generate(self.spec, PythonClientBackend(self.out))
        self.written = _relative(self.files, self.out)

    def read(self, relative):
        return (self.out / relative).read_text(encoding="utf-8")

    def test_model_files(self):
        models = {p.split("/")[-1] for p in self.written if p.startswith("openapi_client/models/")}
        assert models - {"__init__.py"} == MODEL_FILES

    def test_skipped_and_mapped_models_absent(self):
        assert "openapi_client/models/internal.py" not in self.written
        assert "openapi_client/models/money.py" not in self.written

    def test_api_files(self):
        apis = {p.split("/")[-1] for p in self.written if p.startswith("openapi_client/api/")}
        assert apis - {"__init__.py"} == API_FILES

    def test_tests_and_docs(self):
        assert "test/test_pet.py" in self.written
        assert "test/test_pet_api.py" in self.written
        assert "docs/Pet.md" in self.written
        assert "docs/PetApi.md" in self.written

    def test_supporting_files(self):
        assert SUPPORTING_FILES <= self.written

    def test_metadata(self):
        assert ".specgen-ignore" in self.written
        assert self.read(f"{METADATA_DIR}/{VERSION_FILENAME}") == generator_version()

    def test_returned_files_exist(self):
        assert all(p.is_file() for p in self.files)
        assert len(self.files) == len(set(self.files))

    def test_generated_python_parses(self):
        for relative in self.written:
            if relative.endswith(".py"):
                ast.parse(self.read(relative), filename=relative)

    def test_model_contents(self):
        pet = self.read("openapi_client/models/pet.py")
        assert "from openapi_client.models.category import Category" in pet
        assert "class Pet(ApiModel):" in pet
        assert 'photo_urls: list[str] = field(metadata={"json": "photoUrls"})' in pet
        assert "class Dog(Animal):" in self.read("openapi_client/models/dog.py")
        status = self.read("openapi_client/models/order_status.py")
        assert "class OrderStatus(str, Enum):" in status
        assert 'PLACED = "placed"' in status
        assert "PetNames = list[str]" in self.read("openapi_client/models/pet_names.py")

    def test_api_contents(self):
        pet_api = self.read("openapi_client/api/pet_api.py")
        assert "from openapi_client.models.pet import Pet" in pet_api
        assert "def add_pet(self, *, body: Pet) -> Pet:" in pet_api
        assert "def list_pets(self, *, status: list[str] | None = None, limit: int | None = 20) -> list[Pet]:" in pet_api
        assert 'auth_settings=["petstore_auth"],' in pet_api
        assert 'path_params={ "petId": pet_id },' in pet_api

    def test_docs_list_narrowed_scopes(self):
        doc = self.read("docs/PetApi.md")
        assert "`write:pets`, `read:pets`" in doc
        assert "admin:pets" not in doc

    def test_readme_lists_everything(self):
        readme = self.read("README.md")
        assert "*PetApi* | [**add_pet**]" in readme
        assert "[Dog](docs/Dog.md)" in readme
        assert "All URIs are relative to *https://petstore.example.com/v2*" in readme

    def test_models_init_in_dependency_order(self):
        lines = [l for l in self.read("openapi_client/models/__init__.py").splitlines() if l.startswith("from")]
        names = [line.rsplit(" ", 1)[-1] for line in lines]
        assert names.index("Animal") < names.index("Dog")
        assert names[-1] == "Dog"


class TestSelectiveGeneration:
    """Test the option switches and allow-lists."""

    def run(self, out, **options):
        return _relative(generate(load_spec(PETSTORE), PythonClientBackend(out), GenerationOptions(**options)), out)

    def test_models_only(self, tmp_path):
        written = self.run(tmp_path, generate_models=True)
        assert "openapi_client/models/pet.py" in written
        assert not any(p.startswith("openapi_client/api/") for p in written)
        assert "README.md" not in written
        # metadata belongs to the supporting files stage
        assert ".specgen-ignore" not in written

    def test_model_allow_list(self, tmp_path):
        written = self.run(tmp_path, models=("Pet",), generate_model_tests=False, generate_model_docs=False)
        assert written == {"openapi_client/models/pet.py"}

    def test_api_allow_list_uses_sanitized_tags(self, tmp_path):
        written = self.run(tmp_path, apis=("Store",), generate_api_tests=False, generate_api_docs=False)
        assert written == {"openapi_client/api/store_api.py"}

    def test_supporting_allow_list(self, tmp_path):
        written = self.run(tmp_path, supporting_files=("README.md",), generate_metadata=False)
        assert written == {"README.md"}

    def test_no_metadata(self, tmp_path):
        written = self.run(tmp_path, generate_supporting_files=True, generate_metadata=False)
        assert ".specgen-ignore" not in written
        assert f"{METADATA_DIR}/{VERSION_FILENAME}" not in written

    def test_skip_alias_generation(self, tmp_path):
        backend = PythonClientBackend(tmp_path, skip_alias_generation=True)
        written = _relative(generate(load_spec(PETSTORE), backend), tmp_path)
        assert "openapi_client/models/pet_names.py" not in written
        assert "PetNames" not in (tmp_path / "openapi_client" / "models" / "__init__.py").read_text()

    def test_schema_named_like_builtin_type(self, tmp_path):
        spec = parse_spec({
            "swagger": "2.0",
            "definitions": {"date": {"type": "object", "properties": {"day": {"type": "string", "format": "date"}}}},
        })
        written = _relative(generate(spec, PythonClientBackend(tmp_path), GenerationOptions(generate_models=True)), tmp_path)
        assert "openapi_client/models/date.py" in written
        source = (tmp_path / "openapi_client" / "models" / "date.py").read_text()
        assert "from datetime import date" in source
        assert "class Date(ApiModel):" in source


class TestNamespacedGeneration:
    """Generate with tags that carry a package path up to their version."""

    @pytest.fixture(autouse=True)
    def _generate(self, tmp_path):
        document = json.loads(PETSTORE.read_text(encoding="utf-8"))
        renamed = {"pet": "ComAcmeV1Pet", "store": "ComAcmeV1Store"}
        for path_item in document["paths"].values():
            for operation in path_item.values():
                if isinstance(operation, dict) and "tags" in operation:
                    operation["tags"] = [renamed.get(t, t) for t in operation["tags"]]
        self.out = tmp_path / "out"
        files = generate(parse_spec(document), PythonClientBackend(self.out, namespaced_tags=True))
        self.written = _relative(files, self.out)

    def test_api_modules_in_namespace(self):
        assert "openapi_client/api/com/acme/v1/pet_api.py" in self.written
        assert "openapi_client/api/com/acme/v1/store_api.py" in self.written
        assert "openapi_client/api/default_api.py" in self.written

    def test_namespace_folders_are_packages(self):
        for folder in ("com", "com/acme", "com/acme/v1"):
            assert f"openapi_client/api/{folder}/__init__.py" in self.written

    def test_api_package_imports(self):
        """The generated api package imports from a fresh interpreter."""
        result = subprocess.run(
            [sys.executable, "-c", "import openapi_client.api as api; print(api.PetApi.__module__)"],
            cwd=self.out,
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0, result.stderr
        assert result.stdout.strip() == "openapi_client.api.com.acme.v1.pet_api"


class TestRegeneration:
    """Test what a second run over the same directory leaves alone."""

    def test_tests_and_docs_not_overwritten(self, tmp_path):
        spec = load_spec(PETSTORE)
        generate(spec, PythonClientBackend(tmp_path))
        (tmp_path / "test" / "test_pet.py").write_text("# mine\n")
        (tmp_path / "docs" / "Pet.md").write_text("mine\n")
        (tmp_path / "openapi_client" / "models" / "pet.py").write_text("# stale\n")

        written = _relative(generate(spec, PythonClientBackend(tmp_path)), tmp_path)

        assert (tmp_path / "test" / "test_pet.py").read_text() == "# mine\n"
        assert (tmp_path / "docs" / "Pet.md").read_text() == "mine\n"
        assert "class Pet(ApiModel):" in (tmp_path / "openapi_client" / "models" / "pet.py").read_text()
        assert "test/test_pet.py" not in written

    def test_ignore_file_kept_and_applied(self, tmp_path):
        (tmp_path / ".specgen-ignore").write_text("README.md\nopenapi_client/models/pet.py\n")
        written = _relative(generate(load_spec(PETSTORE), PythonClientBackend(tmp_path)), tmp_path)
        assert "README.md" not in written
        assert "openapi_client/models/pet.py" not in written
        assert ".specgen-ignore" not in written
        assert (tmp_path / ".specgen-ignore").read_text().startswith("README.md")
        assert f"{METADATA_DIR}/{VERSION_FILENAME}" in written

    def test_skip_overwrite(self, tmp_path):
        spec = load_spec(PETSTORE)
        generate(spec, PythonClientBackend(tmp_path))
        (tmp_path / "README.md").write_text("custom\n")
        written = _relative(generate(spec, PythonClientBackend(tmp_path, skip_overwrite=True)), tmp_path)
        assert (tmp_path / "README.md").read_text() == "custom\n"
        assert "README.md" not in written


class TestFailures:
    """Test error reporting."""

    def test_missing_inputs(self, tmp_path):
        with pytest.raises(ConfigurationError, match="missing spec input or backend"):
            Generator(None, PythonClientBackend(tmp_path))
        with pytest.raises(ConfigurationError):
            Generator(load_spec(PETSTORE), None)

    def test_bad_model(self, tmp_path):
        spec = parse_spec({
            "swagger": "2.0",
            "definitions": {"Broken": {"type": "object", "properties": {"x": {"$ref": "#/definitions/Nope"}}}},
        })
        with pytest.raises(ModelGenerationError, match="Could not process model 'Broken'") as excinfo:
            generate(spec, PythonClientBackend(tmp_path))
        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_cycle(self, tmp_path):
        spec = parse_spec({
            "swagger": "2.0",
            "definitions": {
                "A": {"allOf": [{"$ref": "#/definitions/B"}]},
                "B": {"allOf": [{"$ref": "#/definitions/A"}]},
            },
        })
        with pytest.raises(CyclicInheritanceError):
            generate(spec, PythonClientBackend(tmp_path))

    def test_bad_operation(self, tmp_path):
        spec = parse_spec({
            "swagger": "2.0",
            "definitions": {"Pet": {"type": "object"}},
            "paths": {
                "/pets": {
                    "get": {
                        "tags": ["pet"],
                        "operationId": "listPets",
                        "responses": {"200": {"description": "ok", "schema": {"$ref": "#/definitions/Nope"}}},
                    }
                }
            },
        })
        with pytest.raises(OperationGroupError) as excinfo:
            generate(spec, PythonClientBackend(tmp_path), GenerationOptions(generate_apis=True))
        error = excinfo.value
        assert error.tag == "pet"
        assert error.operation_id == "listPets"
        assert error.definitions == ["Pet"]
        assert "Resource: get /pets" in str(error)
