"""Code generation module for requestgen.

Main Components:
    - DeclarationSet: Parses declaration modules and resolves types
    - TypeIntrospector: Enumerates the fields of a request type
    - FieldClassifier: Derives role, kind and key of each field
    - RuleResolver: Packages validation, default and time encoding rules
    - ImportResolver: Computes the import list of generated code
    - CodeEmitter: Renders the generated class
    - Codegen: The orchestrator

Example:
    >>> from requestgen.codegen import Codegen
    >>> from requestgen.config import GenerateConfig
    >>>
    >>> config = GenerateConfig(source="./example/api", types=["QueryOrderRequest"])
    >>> result = Codegen(config).build()
    >>> print(result.source)
"""

from requestgen.codegen.classifier import FieldClassifier
from requestgen.codegen.codegen import Codegen, GenerationResult
from requestgen.codegen.declarations import ConstantCatalog, DeclarationSet, TypeRef
from requestgen.codegen.emitter import CodeEmitter, GeneratedUnit
from requestgen.codegen.file_writer import PythonFileWriter
from requestgen.codegen.imports import ImportResolver
from requestgen.codegen.introspector import TypeIntrospector
from requestgen.codegen.rules import RuleResolver

__all__ = [
    'Codegen',
    'CodeEmitter',
    'ConstantCatalog',
    'DeclarationSet',
    'FieldClassifier',
    'GeneratedUnit',
    'GenerationResult',
    'ImportResolver',
    'PythonFileWriter',
    'RuleResolver',
    'TypeIntrospector',
    'TypeRef',
]
