"""Code generation module for requestgen.

This module provides the main Codegen class that orchestrates the generation
of request builder modules from annotated request type declarations.
"""

import ast
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from requestgen.codegen.ast_utils import _all, _const
from requestgen.codegen.classifier import FieldClassifier
from requestgen.codegen.declarations import GENERATED_MARKER, ConstantCatalog, DeclarationSet
from requestgen.codegen.emitter import CodeEmitter, GeneratedUnit
from requestgen.codegen.fields import (
    TEMPLATE_LOCALS,
    CapabilityLevel,
    RequestMetadata,
    TypeDescriptor,
)
from requestgen.codegen.file_writer import PythonFileWriter, validate_source
from requestgen.codegen.imports import ImportResolver, RenameNames
from requestgen.codegen.introspector import TypeDeclaration, TypeIntrospector, is_client_type
from requestgen.codegen.rules import RuleResolver
from requestgen.config import GenerateConfig
from requestgen.exceptions import ConfigError, TypeResolutionError

logger = logging.getLogger(__name__)

__all__ = ['Codegen', 'GenerationResult', 'HEADER']

HEADER = f'{GENERATED_MARKER}; DO NOT EDIT.'


@dataclass
class GenerationResult:
    """Outcome of one generation pass.

    Attributes:
        units: Generated units of the types that succeeded, in request order.
        errors: Errors of the types that failed, keyed by type selector.
        source: The generated module, or None when no type succeeded.
        output: Where the module was written, if it was.
    """

    units: list[GeneratedUnit] = field(default_factory=list)
    errors: dict[str, Exception] = field(default_factory=dict)
    source: str | None = None
    output: Path | None = None

    @property
    def ok(self) -> bool:
        return not self.errors


class Codegen:
    """Generates request builder code for a set of declared request types.

    Each requested type runs through introspection, classification, rule
    resolution and emission on its own: a type failing with ConfigError or
    TypeResolutionError is reported in the result and the other types are
    still emitted. Units are merged in request order.

    Attributes:
        config: The GenerateConfig describing the target.
        declarations: The parsed declaration modules (loaded on demand).

    Example:
        >>> from requestgen.config import GenerateConfig
        >>> from requestgen.codegen.codegen import Codegen
        >>>
        >>> config = GenerateConfig(
        ...     source='./example/api',
        ...     types=['PlaceOrderRequest'],
        ...     method='POST',
        ...     url='/api/v1/orders',
        ... )
        >>> result = Codegen(config).generate()
        # Creates ./example/api/place_order_request_requestgen.py
    """

    def __init__(self, config: GenerateConfig, declarations: DeclarationSet | None = None):
        self.config = config
        self._declarations = declarations
        self._catalog: ConstantCatalog | None = None

    @property
    def declarations(self) -> DeclarationSet:
        if self._declarations is None:
            self._declarations = DeclarationSet.load(self.config.source, self.config.module)
        return self._declarations

    def generate(self) -> GenerationResult:
        """Generate the module and write it unless ``stdout`` is set."""
        result = self.build()
        if result.source is not None and not self.config.stdout:
            output = Path(self.config.output) if self.config.output else self.config.default_output()
            PythonFileWriter().write_source(result.source, output)
            result.output = output
            logger.info('wrote %s', output)
        return result

    def build(self) -> GenerationResult:
        """Generate the module source without writing it."""
        declarations = self.declarations
        self._catalog = declarations.build_constant_catalog()

        selectors = []
        for selector in self.config.types:
            if selector in selectors:
                logger.warning('type %s requested twice, generating it once', selector)
                continue
            selectors.append(selector)

        if self.config.workers > 1 and len(selectors) > 1:
            with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
                outcomes = list(executor.map(self._try_generate_unit, selectors))
        else:
            outcomes = [self._try_generate_unit(selector) for selector in selectors]

        result = GenerationResult()
        for selector, (unit, error) in zip(selectors, outcomes):
            if error is not None:
                result.errors[selector] = error
            else:
                result.units.append(unit)

        if result.units:
            result.source = self._render(result.units)
        return result

    def _try_generate_unit(self, selector: str) -> tuple[GeneratedUnit | None, Exception | None]:
        try:
            return self.generate_unit(selector), None
        except (ConfigError, TypeResolutionError) as e:
            logger.error('skipping %s: %s', selector, e)
            return None, e

    def generate_unit(self, selector: str) -> GeneratedUnit:
        """Run the pipeline for a single type.

        Raises:
            ConfigError: If a field annotation does not fit its field.
            TypeResolutionError: If the type, or a type it uses, cannot be resolved.
        """
        declarations = self.declarations
        if self._catalog is None:
            self._catalog = declarations.build_constant_catalog()

        module, name = declarations.split_selector(selector)
        declaration = TypeIntrospector(declarations).introspect(name, module)

        classifier = FieldClassifier(declarations, self._catalog, name)
        resolver = RuleResolver(name)
        fields = []
        for raw in declaration.fields:
            classified = classifier.classify(raw)
            if classified is None:
                continue
            fields.append(resolver.resolve(classified))

        descriptor = TypeDescriptor(
            name=name,
            module=declaration.module,
            fields=fields,
            metadata=self._metadata(declaration),
        )
        logger.debug('%s: %d parameters', name, len(fields))

        refs = ImportResolver(
            reserved=self._reserved_names(descriptor),
            preferred=declarations.get_module(declaration.module),
            local_roots=self._local_roots(),
        )
        return CodeEmitter(descriptor, refs).emit()

    def _metadata(self, declaration: TypeDeclaration) -> RequestMetadata:
        config = self.config
        declarations = self.declarations

        client_field, capability = None, None
        for raw in declaration.fields:
            client_type = is_client_type(raw.type)
            if client_type is not None:
                client_field = raw.name
                if client_type == 'AuthenticatedAPIClient':
                    capability = CapabilityLevel.AUTHENTICATED
                else:
                    capability = CapabilityLevel.PUBLIC
                break

        if config.dynamic_path and 'get_dynamic_path' not in declaration.methods:
            raise ConfigError(
                'dynamic path requested but get_dynamic_path() is not defined',
                type_name=declaration.name,
            )

        response_type = declarations.resolve_type_string(config.response_type, declaration.module)
        response_data_type = None
        if config.response_data_type:
            response_data_type = declarations.resolve_type_string(
                config.response_data_type, declaration.module
            )

        response_info = declarations.get_class(response_type)
        unmarshaler = response_info is not None and 'unmarshal' in response_info.methods

        return RequestMetadata(
            method=config.method,
            url=config.url,
            dynamic_path=config.dynamic_path,
            response_type=response_type,
            response_data_type=response_data_type,
            response_data_field=config.response_data_field,
            client_field=client_field,
            capability=capability,
            response_unmarshaler=unmarshaler,
        )

    def _requested_names(self) -> set[str]:
        return {self.declarations.split_selector(s)[1] for s in self.config.types}

    def _reserved_names(self, descriptor: TypeDescriptor) -> set[str]:
        return self._requested_names() | {f.local for f in descriptor.fields} | TEMPLATE_LOCALS

    def _local_roots(self) -> set[str]:
        return {m.name.split('.')[0] for m in self.declarations.modules}

    def _render(self, units: list[GeneratedUnit]) -> str:
        merged = ImportResolver(reserved=self._requested_names(), local_roots=self._local_roots())
        classes = []
        for unit in units:
            renames = merged.merge(unit.imports)
            class_def = unit.class_def
            if renames:
                logger.debug('%s: renaming %s', unit.name, renames)
                class_def = RenameNames(renames).visit(class_def)
            classes.append(class_def)

        body = [ast.Expr(value=_const(HEADER))]
        body += merged.to_ast()
        body.append(_all(unit.name for unit in units))
        body += classes

        module = ast.Module(body=body, type_ignores=[])
        ast.fix_missing_locations(module)
        source = ast.unparse(module) + '\n'
        validate_source(source, self.config.output or 'generated module')
        return source
