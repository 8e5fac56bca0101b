"""Tests for loading and parsing API descriptions."""

import json
from pathlib import Path

import httpx
import pytest
import yaml

from specgen.errors import ConfigurationError
from specgen.loader import load_document, load_spec, parse_spec, resolve_ref

PETSTORE = Path(__file__).parent / "fixtures" / "petstore.json"

OPENAPI3 = {
    "openapi": "3.0.3",
    "info": {"title": "Pets", "version": "2.1"},
    "servers": [{"url": "https://api.example.com/v1"}],
    "paths": {
        "/pets": {
            "post": {
                "operationId": "createPet",
                "requestBody": {
                    "required": True,
                    "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}},
                },
                "responses": {
                    "201": {
                        "description": "created",
                        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}},
                    }
                },
            }
        }
    },
    "components": {
        "schemas": {
            "Pet": {
                "type": "object",
                "discriminator": {"propertyName": "petType"},
                "properties": {"petType": {"type": "string"}},
            },
            "Cat": {"allOf": [{"$ref": "#/components/schemas/Pet"}, {"properties": {"lives": {"type": "integer"}}}]},
        },
        "securitySchemes": {
            "basic": {"type": "http", "scheme": "basic"},
            "oauth": {
                "type": "oauth2",
                "flows": {
                    "authorizationCode": {
                        "authorizationUrl": "https://example.com/auth",
                        "tokenUrl": "https://example.com/token",
                        "scopes": {"read": "read access"},
                    }
                },
            },
        },
    },
}


class TestLoadPetstore:
    """Test parsing the Swagger 2.0 fixture."""

    @classmethod
    def setup_class(cls):
        cls.spec = load_spec(PETSTORE)

    def test_info(self):
        assert self.spec.info.title == "Swagger Petstore"
        assert self.spec.info.version == "1.0.0"
        assert self.spec.info.license_name == "Apache 2.0"

    def test_server_location(self):
        assert self.spec.host == "petstore.example.com"
        assert self.spec.base_path == "/v2"
        assert self.spec.schemes == ("https",)

    def test_source_recorded(self):
        assert self.spec.source == str(PETSTORE)

    def test_schemas(self):
        assert "Pet" in self.spec.schemas
        assert self.spec.schemas["Pet"].required == ("name", "photoUrls")

    def test_allof_with_discriminator_is_parent(self):
        dog = self.spec.schemas["Dog"]
        assert dog.parent == "Animal"
        assert dog.interfaces == ()
        assert "breed" in dog.properties
        assert dog.type == "object"

    def test_vendor_extensions(self):
        assert self.spec.schemas["Internal"].skip
        assert self.spec.schemas["Money"].import_override == "from decimal import Decimal as Money"

    def test_path_level_parameters(self):
        item = self.spec.paths["/pet/{petId}"]
        assert [p.name for p in item.parameters] == ["petId"]
        assert set(item.operations) == {"get", "delete"}

    def test_security(self):
        assert self.spec.security == ({"api_key": []},)
        oauth = self.spec.security_definitions["petstore_auth"]
        assert oauth.is_oauth2
        assert len(oauth.scopes) == 3

    def test_explicit_empty_operation_security(self):
        assert self.spec.paths["/health"].operations["get"].security == ()


class TestLoadFormats:
    """Test loading from YAML, URLs and bad inputs."""

    def test_yaml(self, tmp_path):
        with open(PETSTORE, encoding="utf-8") as f:
            document = json.load(f)
        target = tmp_path / "petstore.yaml"
        target.write_text(yaml.safe_dump(document))
        assert load_document(target) == document

    def test_url(self):
        body = PETSTORE.read_text(encoding="utf-8")

        def handler(request):
            assert request.url.path == "/specs/petstore.json"
            return httpx.Response(200, text=body)

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            spec = load_spec("https://example.com/specs/petstore.json", client=client)
        assert spec.info.title == "Swagger Petstore"
        assert spec.source == "https://example.com/specs/petstore.json"

    def test_url_error(self):
        with httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(404))) as client:
            with pytest.raises(ConfigurationError, match="Could not fetch"):
                load_document("https://example.com/missing.json", client=client)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_document(tmp_path / "nope.json")

    def test_not_an_object(self, tmp_path):
        target = tmp_path / "list.json"
        target.write_text("[1, 2, 3]")
        with pytest.raises(ConfigurationError):
            load_document(target)


class TestOpenAPI3:
    """Test mapping an OpenAPI 3 document onto the same structure."""

    @classmethod
    def setup_class(cls):
        cls.spec = parse_spec(OPENAPI3)

    def test_server_url_split(self):
        assert self.spec.schemes == ("https",)
        assert self.spec.host == "api.example.com"
        assert self.spec.base_path == "/v1"

    def test_request_body_becomes_body_parameter(self):
        operation = self.spec.paths["/pets"].operations["post"]
        [body] = operation.parameters
        assert body.location == "body"
        assert body.required
        assert body.schema == {"$ref": "#/components/schemas/Pet"}
        assert operation.consumes == ("application/json",)
        assert operation.produces == ("application/json",)

    def test_response_schema_from_content(self):
        [response] = self.spec.paths["/pets"].operations["post"].responses
        assert response.code == "201"
        assert response.schema == {"$ref": "#/components/schemas/Pet"}

    def test_discriminator_object(self):
        assert self.spec.schemas["Pet"].discriminator == "petType"
        assert self.spec.schemas["Cat"].parent == "Pet"

    def test_security_schemes(self):
        basic = self.spec.security_definitions["basic"]
        assert basic.type == "basic"
        oauth = self.spec.security_definitions["oauth"]
        assert oauth.flow == "authorizationCode"
        assert oauth.token_url == "https://example.com/token"
        assert oauth.scopes == {"read": "read access"}


class TestResolveRef:
    def test_local(self):
        document = {"parameters": {"limit": {"name": "limit", "in": "query"}}}
        assert resolve_ref(document, "#/parameters/limit")["name"] == "limit"

    def test_remote_rejected(self):
        with pytest.raises(ConfigurationError):
            resolve_ref({}, "other.json#/definitions/Pet")

    def test_unresolvable(self):
        with pytest.raises(ConfigurationError, match="Unresolvable"):
            resolve_ref({"definitions": {}}, "#/definitions/Pet")

    def test_parameter_reference(self):
        document = {
            "swagger": "2.0",
            "parameters": {"limit": {"name": "limit", "in": "query", "type": "integer", "default": 10}},
            "paths": {"/pets": {"get": {"parameters": [{"$ref": "#/parameters/limit"}], "responses": {}}}},
        }
        [param] = parse_spec(document).paths["/pets"].operations["get"].parameters
        assert param.name == "limit"
        assert param.type == "integer"
        assert param.default == 10
