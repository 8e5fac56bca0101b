"""Top-level generation sequence.

    resolve options -> preprocess spec -> models -> apis -> bundle
    -> supporting files (+ metadata) -> postprocess spec

Every stage runs to completion before the next starts. The first failure
aborts the run; files already written stay on disk.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .backend import CodegenBackend, SupportingFile
from .codegen import COMMON_PREFIX, TEMPLATE_SUFFIX, OverwritePolicy, TemplateProcessor
from .context_builder import base_context, build_api_context, build_bundle, process_model
from .errors import (
    ConfigurationError,
    ModelGenerationError,
    OperationGroupError,
    SupportingFileError,
    TemplateIOError,
)
from .ignore import IGNORE_FILENAME, load_ignore_matcher
from .models import GenerationContext, ModelOutcome, RenderedArtifact, SpecDefinition
from .operations import process_paths
from .options import GenerationOptions
from .topology import select_models, sort_models
from .version import generator_version

logger = logging.getLogger(__name__)

METADATA_DIR = ".specgen"
VERSION_FILENAME = "VERSION"


class Generator:
    """Run one generation of ``spec`` through ``backend``."""

    def __init__(
        self,
        spec: SpecDefinition | None,
        backend: CodegenBackend | None,
        options: GenerationOptions | None = None,
    ) -> None:
        if spec is None or backend is None:
            raise ConfigurationError("missing spec input or backend!")
        self.spec = spec
        self.backend = backend
        self.options = (options or GenerationOptions()).resolve()
        self.processor = TemplateProcessor(
            backend, load_ignore_matcher(backend.output_dir, backend.ignore_file_override)
        )
        self.context = GenerationContext(options=self.options)
        self.base: dict[str, Any] = {}

    def generate(self) -> list[Path]:
        """Run every stage in order and return the files written."""
        self.context = GenerationContext(
            options=self.options, import_mapping=self._initial_import_mapping()
        )
        self.backend.preprocess_spec(self.spec)
        self.base = base_context(self.spec, self.backend, self.options)

        self.generate_models()
        self.generate_apis()
        self.context.bundle = build_bundle(
            self.spec, self.backend, self.context.all_operations, self.context.all_models, self.base
        )
        self.generate_supporting_files()

        self.backend.postprocess_spec(self.spec)
        logger.info("Generated %d files in %s", len(self.context.files), self.backend.output_dir)
        return list(self.context.files)

    def _initial_import_mapping(self) -> dict[str, str]:
        """Backend mappings plus per-schema ``x-codegen-import-mapping`` overrides."""
        mapping = dict(self.backend.import_mapping)
        for name, schema in self.spec.schemas.items():
            override = schema.import_override
            if override is not None:
                mapping[name] = override
        return mapping

    def _record(self, written: Path | None) -> None:
        if written is not None:
            self.context.files.append(written)

    # -- models -------------------------------------------------------------

    def generate_models(self) -> None:
        if not self.options.generate_models or not self.spec.schemas:
            return
        backend = self.backend
        schemas = self.spec.schemas
        import_mapping = self.context.import_mapping

        names = select_models(
            schemas, import_mapping, backend.ignore_import_mapping, self.options.models
        )
        contexts: dict[str, dict[str, Any]] = {}
        for name in names:
            result = process_model(name, schemas[name], schemas, backend, import_mapping, self.base)
            if result.outcome is ModelOutcome.ERROR:
                error = ModelGenerationError(name)
                logger.error("%s", error)
                raise error from result.error
            if result.outcome is ModelOutcome.SKIP:
                continue
            contexts[name] = result.context

        ordered = {name: contexts[name] for name in sort_models(contexts, schemas, backend.to_model_name)}
        self.context.processed_models = backend.post_process_all_models(ordered)

        for name, context in self.context.processed_models.items():
            try:
                self._generate_model_files(name, context)
            except Exception as exc:
                raise ModelGenerationError(name, f"Could not generate model '{name}': {exc}") from exc

    def _generate_model_files(self, name: str, context: dict[str, Any]) -> None:
        backend = self.backend
        entry = context["models"][0]
        if backend.skip_alias_generation and entry["model"].is_alias:
            return
        self.context.all_models.append(entry)

        for template_name in backend.model_template_files:
            self._record(self.processor.process_template_to_file(
                context, template_name, backend.model_filename(template_name, name)
            ))
        if self.options.generate_model_tests:
            for template_name in backend.model_test_template_files:
                self._record(self.processor.process_template_to_file(
                    context,
                    template_name,
                    backend.model_test_filename(template_name, name),
                    OverwritePolicy.NEVER,
                ))
        if self.options.generate_model_docs:
            for template_name in backend.model_doc_template_files:
                self._record(self.processor.process_template_to_file(
                    context,
                    template_name,
                    backend.model_doc_filename(template_name, name),
                    OverwritePolicy.NEVER,
                ))

    # -- apis ---------------------------------------------------------------

    def generate_apis(self) -> None:
        if not self.options.generate_apis:
            return
        groups = process_paths(self.spec, self.backend)
        if self.options.apis:
            groups = {tag: ops for tag, ops in groups.items() if tag in self.options.apis}

        for tag, operations in groups.items():
            try:
                self._generate_api_files(tag, operations)
            except OperationGroupError:
                raise
            except Exception as exc:
                raise OperationGroupError(
                    tag=tag, definitions=self.spec.schemas.keys(), reason=str(exc)
                ) from exc

    def _generate_api_files(self, tag: str, operations: list) -> None:
        backend = self.backend
        context = build_api_context(
            tag,
            operations,
            self.spec,
            backend,
            self.context.import_mapping,
            self.context.all_models,
            self.base,
        )
        all_operations = self.context.all_operations
        all_operations.append(dict(context))
        for index, entry in enumerate(all_operations):
            entry["hasMore"] = index < len(all_operations) - 1

        for template_name in backend.api_template_files:
            self._record(self.processor.process_template_to_file(
                context, template_name, backend.api_filename(template_name, tag)
            ))
        if self.options.generate_api_tests:
            for template_name in backend.api_test_template_files:
                self._record(self.processor.process_template_to_file(
                    context,
                    template_name,
                    backend.api_test_filename(template_name, tag),
                    OverwritePolicy.NEVER,
                ))
        if self.options.generate_api_docs:
            for template_name in backend.api_doc_template_files:
                self._record(self.processor.process_template_to_file(
                    context,
                    template_name,
                    backend.api_doc_filename(template_name, tag),
                    OverwritePolicy.NEVER,
                ))

    # -- supporting files ---------------------------------------------------

    def generate_supporting_files(self) -> None:
        if not self.options.generate_supporting_files:
            return
        allowed = self.options.supporting_files
        for support in self.backend.supporting_files:
            if allowed is not None and support.destination_filename not in allowed:
                continue
            try:
                self._generate_supporting_file(support)
            except Exception as exc:
                error = SupportingFileError(support, f"Could not generate supporting file '{support}': {exc}")
                logger.error("%s", error)
                raise error from exc

        if self.options.generate_metadata:
            self._generate_metadata()

    def _supporting_source(self, support: SupportingFile) -> Path:
        """Locate a verbatim-copied supporting file."""
        if support.is_global:
            return self.backend.common_template_dir / support.template_file
        source = self.backend.template_dir / support.template_file
        if not source.is_file():
            source = self.backend.common_template_dir / support.template_file
        return source

    def _generate_supporting_file(self, support: SupportingFile) -> None:
        folder = self.backend.output_dir
        if support.folder:
            folder = folder.joinpath(*support.folder.split("/"))
        output_path = folder.joinpath(*support.destination_filename.split("/"))

        if support.template_file.endswith(TEMPLATE_SUFFIX):
            template_name = support.template_file
            if support.is_global:
                template_name = f"{COMMON_PREFIX}/{template_name}"
            self._record(self.processor.process_template_to_file(
                self.context.bundle, template_name, output_path
            ))
        else:
            self._record(self.processor.copy_to_file(self._supporting_source(support), output_path))

    def _generate_metadata(self) -> None:
        output_dir = self.backend.output_dir

        ignore_target = output_dir / IGNORE_FILENAME
        if not ignore_target.exists():
            source = self.backend.common_template_dir / IGNORE_FILENAME
            try:
                with open(source, encoding="utf-8") as f:
                    contents = f.read()
                self._record(self.processor.write(RenderedArtifact(ignore_target, contents)))
            except (OSError, TemplateIOError) as exc:
                raise SupportingFileError(IGNORE_FILENAME) from exc

        version_target = output_dir / METADATA_DIR / VERSION_FILENAME
        try:
            self._record(self.processor.write(RenderedArtifact(version_target, generator_version())))
        except TemplateIOError as exc:
            raise SupportingFileError(str(version_target)) from exc


def generate(
    spec: SpecDefinition | None,
    backend: CodegenBackend | None,
    options: GenerationOptions | None = None,
) -> list[Path]:
    """Generate every enabled artifact for ``spec`` and return the written paths."""
    return Generator(spec, backend, options).generate()
