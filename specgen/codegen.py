"""Render templates and write generated output.

Every candidate file goes through the same gate, in order:
  1. overwrite policy (backend.should_overwrite, or never for tests/docs)
  2. ignore rules (.specgen-ignore)
  3. render and write
Files stopped at 1 or 2 are logged and not returned.
"""

from __future__ import annotations

import enum
import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping

import jinja2

from .errors import TemplateIOError
from .ignore import IgnoreMatcher
from .models import RenderedArtifact

if TYPE_CHECKING:
    from .backend import CodegenBackend

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".j2"
COMMON_PREFIX = "_common"


class OverwritePolicy(enum.Enum):
    BACKEND = "backend"  # ask backend.should_overwrite
    NEVER = "never"      # leave existing files alone (tests, docs)


class TemplateRenderer:
    """Jinja2 environment resolving templates against the backend, then shared templates.

    Templates include partials by logical name (``{% include "partials/header.j2" %}``);
    the backend's template directory is searched first, so a backend can
    shadow a shared partial. ``_common/<name>`` always addresses the shared copy.
    Undefined keys render as empty strings.
    """

    def __init__(self, backend: CodegenBackend) -> None:
        backend_loader = jinja2.FileSystemLoader(str(backend.template_dir))
        common_loader = jinja2.FileSystemLoader(str(backend.common_template_dir))
        env = jinja2.Environment(
            loader=jinja2.ChoiceLoader([
                backend_loader,
                common_loader,
                jinja2.PrefixLoader({COMMON_PREFIX: common_loader}),
            ]),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=jinja2.Undefined,
        )
        self.env = backend.process_compiler(env)

    def render(self, template_name: str, context: Mapping[str, Any]) -> str:
        try:
            template = self.env.get_template(template_name)
        except jinja2.TemplateNotFound as exc:
            raise TemplateIOError(template_name, f"Template not found: {exc.name}") from exc
        return template.render(context)


class TemplateProcessor:
    """Apply the overwrite/ignore gate and write rendered files."""

    def __init__(self, backend: CodegenBackend, ignore: IgnoreMatcher, renderer: TemplateRenderer | None = None) -> None:
        self.backend = backend
        self.ignore = ignore
        self.renderer = renderer or TemplateRenderer(backend)

    def _allowed(self, path: Path, policy: OverwritePolicy) -> bool:
        if policy is OverwritePolicy.NEVER:
            if path.exists():
                logger.info("File exists. Skipped overwriting %s", path)
                return False
        elif not self.backend.should_overwrite(path):
            logger.info("Skipped overwriting %s", path)
            return False
        if not self.ignore.allows(path):
            logger.info("Skipped generation of %s due to rule in ignore file", path)
            return False
        return True

    def process_template_to_file(
        self,
        context: Mapping[str, Any],
        template_name: str,
        output_path: Path,
        policy: OverwritePolicy = OverwritePolicy.BACKEND,
    ) -> Path | None:
        """Render ``template_name`` to ``output_path`` unless the gate stops it."""
        output_path = Path(output_path)
        if not self._allowed(output_path, policy):
            return None
        artifact = RenderedArtifact(output_path, self.renderer.render(template_name, context))
        return self.write(artifact)

    def copy_to_file(self, source: Path, output_path: Path) -> Path | None:
        """Copy a non-template file verbatim, through the same gate."""
        output_path = Path(output_path)
        if not self._allowed(output_path, OverwritePolicy.BACKEND):
            return None
        if not source.is_file():
            raise TemplateIOError(source, "can't open file for input")
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, output_path)
        except OSError as exc:
            raise TemplateIOError(output_path, f"Could not write file: {exc}") from exc
        logger.info("writing file %s", output_path)
        return output_path

    def write(self, artifact: RenderedArtifact) -> Path:
        try:
            artifact.path.parent.mkdir(parents=True, exist_ok=True)
            with open(artifact.path, "w", encoding="utf-8") as f:
                f.write(artifact.content)
        except OSError as exc:
            raise TemplateIOError(artifact.path, f"Could not write file: {exc}") from exc
        logger.info("writing file %s", artifact.path)
        return artifact.path
