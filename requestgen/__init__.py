"""requestgen - Generate request builders from annotated request types.

A request type is a plain class whose fields carry ``Param`` markers. The
generator reads the declaration statically and writes a companion module with
fluent setters, parameter builders and a ``do()`` method that sends the
request through an API client.

Quick Start:
    >>> from requestgen import Codegen, GenerateConfig
    >>>
    >>> config = GenerateConfig(
    ...     source="./example/api/place_order_request.py",
    ...     types=["PlaceOrderRequest"],
    ...     method="POST",
    ...     url="/api/v1/orders",
    ... )
    >>> Codegen(config).generate()

CLI Usage:
    $ requestgen generate ./example/api --type PlaceOrderRequest --method POST --url /api/v1/orders
    $ requestgen run  # Generate every target of requestgen.yaml
"""

from importlib.metadata import PackageNotFoundError, version

from requestgen.client import (
    APIClient,
    AuthenticatedAPIClient,
    BaseAPIClient,
    DynamicPathProvider,
    Response,
    ResponseValidator,
)
from requestgen.codegen.codegen import Codegen, GenerationResult
from requestgen.config import GenerateConfig, RequestgenConfig, get_config
from requestgen.exceptions import (
    APIError,
    CodeGenerationError,
    ConfigError,
    ConfigurationError,
    OutputError,
    ParameterError,
    RequestgenError,
    ResponseValidationError,
    TypeResolutionError,
)
from requestgen.params import Param

__all__ = [
    # Declarations
    'Param',
    # Runtime
    'APIClient',
    'AuthenticatedAPIClient',
    'BaseAPIClient',
    'DynamicPathProvider',
    'Response',
    'ResponseValidator',
    # Generation
    'Codegen',
    'GenerationResult',
    # Configuration
    'GenerateConfig',
    'RequestgenConfig',
    'get_config',
    # Exceptions
    'RequestgenError',
    'ConfigError',
    'TypeResolutionError',
    'CodeGenerationError',
    'ConfigurationError',
    'OutputError',
    'ParameterError',
    'ResponseValidationError',
    'APIError',
]

try:
    __version__ = version('requestgen')
except PackageNotFoundError:
    __version__ = 'unknown'
