"""Exceptions raised by the generation pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable


class GeneratorError(Exception):
    """Base exception for generation failures."""


class ConfigurationError(GeneratorError):
    """Raised when the run cannot start or the input is structurally invalid."""


class CyclicInheritanceError(ConfigurationError):
    """Raised when a schema's parent/interface chain loops back on itself."""

    def __init__(self, chain: list[str]) -> None:
        self.chain = chain
        super().__init__(f"Cyclic inheritance: {' -> '.join(chain)}")


class ModelGenerationError(GeneratorError):
    """Raised when a single schema cannot be processed or written."""

    def __init__(self, model_name: str, message: str | None = None) -> None:
        self.model_name = model_name
        if message is None:
            message = (
                f"Could not process model '{model_name}'."
                " Please make sure that your schema is correct!"
            )
        super().__init__(message)


class OperationGroupError(GeneratorError):
    """Raised when an operation in a tag group fails to transform."""

    def __init__(
        self,
        tag: str,
        method: str | None = None,
        path: str | None = None,
        definitions: Iterable[str] = (),
        operation_id: str | None = None,
        reason: str = "",
    ) -> None:
        self.tag = tag
        self.method = method
        self.path = path
        self.operation_id = operation_id
        self.definitions = sorted(definitions)
        lines = ["Could not process operation:", f"  Tag: {tag}"]
        if operation_id:
            lines.append(f"  Operation: {operation_id}")
        if method and path:
            lines.append(f"  Resource: {method} {path}")
        lines.append(f"  Definitions: {', '.join(self.definitions)}")
        if reason:
            lines.append(f"  Exception: {reason}")
        super().__init__("\n".join(lines))


class SupportingFileError(GeneratorError):
    """Raised when a supporting file cannot be generated."""

    def __init__(self, descriptor: object, message: str | None = None) -> None:
        self.descriptor = descriptor
        super().__init__(message or f"Could not generate supporting file '{descriptor}'")


class TemplateIOError(GeneratorError):
    """Raised when a template cannot be read or a destination cannot be written."""

    def __init__(self, path: Path | str, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"[{path}] {message}")
