"""Shared fixtures for specgen tests.

The petstore fixture is a Swagger 2.0 document covering inheritance,
enums, aliases, vendor extensions, path-level parameters and OAuth2
scope narrowing. Output always goes to a per-test ``tmp_path``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from specgen.loader import load_spec, parse_spec
from specgen.models import SpecDefinition
from specgen.python_backend import PythonClientBackend

FIXTURES = Path(__file__).parent / "fixtures"
PETSTORE = FIXTURES / "petstore.json"


def load_petstore_document() -> dict[str, Any]:
    with open(PETSTORE, encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture(scope="session")
def petstore() -> SpecDefinition:
    """The parsed petstore fixture, shared across the session (it is immutable)."""
    return load_spec(PETSTORE)


@pytest.fixture
def petstore_document() -> dict[str, Any]:
    """A fresh raw copy of the petstore document, safe to mutate."""
    return load_petstore_document()


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "out"


@pytest.fixture
def backend(output_dir: Path) -> PythonClientBackend:
    return PythonClientBackend(output_dir)


def spec_from(document: dict[str, Any]) -> SpecDefinition:
    """Parse an inline document (helper for tests that tweak the fixture)."""
    return parse_spec(document, source="inline")
