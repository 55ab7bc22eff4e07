"""Custom exceptions for requestgen.

This module defines the exceptions raised while generating request builders
and the exceptions raised at runtime by the generated code.

Generation-time errors inherit from RequestgenError. A ConfigError or a
TypeResolutionError aborts the generation of a single type only; the other
requested types are still emitted.

Runtime errors (ParameterError, ResponseValidationError, APIError) are raised
by generated methods and by the runtime client to their callers.
"""


class RequestgenError(Exception):
    """Base exception for all requestgen generation errors.

    Example:
        try:
            codegen.generate()
        except RequestgenError as e:
            print(f"requestgen error: {e}")
    """

    def __init__(self, message: str, *args, **kwargs):
        self.message = message
        super().__init__(message, *args, **kwargs)


class ConfigError(RequestgenError):
    """A field annotation is invalid for the field it is attached to.

    Raised for example when a time encoding option is used on a field that is
    not a datetime, or when an unknown default valuer token is given.

    Attributes:
        field: The name of the offending field.
        type_name: The name of the declared type being generated.
        reason: Explanation of the problem.
    """

    def __init__(
        self, reason: str, field: str | None = None, type_name: str | None = None
    ):
        self.reason = reason
        self.field = field
        self.type_name = type_name
        message = reason
        if type_name and field:
            message = f'{type_name}.{field}: {reason}'
        elif field:
            message = f'{field}: {reason}'
        elif type_name:
            message = f'{type_name}: {reason}'
        super().__init__(message)


class TypeResolutionError(RequestgenError):
    """A referenced type or module could not be resolved.

    Attributes:
        name: The type name that failed to resolve.
        module: The module the name was looked up in, if known.
        reason: Optional explanation.
    """

    def __init__(self, name: str, module: str | None = None, reason: str | None = None):
        self.name = name
        self.module = module
        self.reason = reason
        message = f"Failed to resolve type '{name}'"
        if module:
            message += f" in module '{module}'"
        if reason:
            message += f': {reason}'
        super().__init__(message)


class CodeGenerationError(RequestgenError):
    """Error during code generation.

    Attributes:
        context: Additional context about what was being generated.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self, message: str, context: str | None = None, cause: Exception | None = None
    ):
        self.context = context
        self.cause = cause
        full_message = message
        if context:
            full_message = f'{message} (while generating {context})'
        if cause:
            full_message += f': {cause}'
        super().__init__(full_message)


class ConfigurationError(RequestgenError):
    """Error in the generator configuration.

    Attributes:
        config_path: The path to the configuration file, if applicable.
        field: The specific configuration field that is invalid.
    """

    def __init__(
        self, message: str, config_path: str | None = None, field: str | None = None
    ):
        self.config_path = config_path
        self.field = field
        full_message = message
        if config_path:
            full_message = f"{message} in '{config_path}'"
        if field:
            full_message += f' (field: {field})'
        super().__init__(full_message)


class OutputError(RequestgenError):
    """Error writing generated output.

    Attributes:
        output_path: The path where output was being written.
        cause: The underlying exception that caused the failure.
    """

    def __init__(self, output_path: str, cause: Exception | None = None):
        self.output_path = output_path
        self.cause = cause
        message = f"Failed to write output to '{output_path}'"
        if cause:
            message += f': {cause}'
        super().__init__(message)


# =============================================================================
# Runtime errors raised by generated code
# =============================================================================


class ParameterError(ValueError):
    """A request parameter failed a required or valid-values check.

    Attributes:
        key: The parameter key that failed validation.
        value: The offending value, if any.
    """

    def __init__(self, message: str, key: str | None = None, value=None):
        self.key = key
        self.value = value
        super().__init__(message)


class ResponseValidationError(ValueError):
    """A decoded response rejected itself in its validate_response() method."""


class APIError(Exception):
    """The API server answered with an error status.

    Attributes:
        status_code: The HTTP status code of the response.
        body: The raw response body.
    """

    def __init__(self, status_code: int, body: bytes):
        self.status_code = status_code
        self.body = body
        super().__init__(body.decode('utf-8', errors='replace'))
