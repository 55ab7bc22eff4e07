"""Tests for custom exceptions."""

import pytest

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


class TestRequestgenError:
    """Test base RequestgenError."""

    def test_message(self):
        error = RequestgenError('something broke')
        assert str(error) == 'something broke'
        assert error.message == 'something broke'

    @pytest.mark.parametrize(
        'error',
        [
            ConfigError('bad'),
            TypeResolutionError('Order'),
            CodeGenerationError('bad'),
            ConfigurationError('bad'),
            OutputError('out.py'),
        ],
    )
    def test_hierarchy(self, error):
        assert isinstance(error, RequestgenError)


class TestConfigError:
    """Test ConfigError formatting."""

    def test_with_field_and_type(self):
        error = ConfigError('unknown time format', 'start_time', 'ListTradesRequest')
        assert str(error) == 'ListTradesRequest.start_time: unknown time format'
        assert error.reason == 'unknown time format'
        assert error.field == 'start_time'
        assert error.type_name == 'ListTradesRequest'

    def test_partial_context(self):
        assert str(ConfigError('bad', field='symbol')) == 'symbol: bad'
        assert str(ConfigError('bad', type_name='Request')) == 'Request: bad'
        assert str(ConfigError('bad')) == 'bad'


class TestTypeResolutionError:
    """Test TypeResolutionError formatting."""

    def test_message(self):
        error = TypeResolutionError('Order', 'shop.orders', 'no such class')
        assert str(error) == "Failed to resolve type 'Order' in module 'shop.orders': no such class"

    def test_name_only(self):
        assert str(TypeResolutionError('Order')) == "Failed to resolve type 'Order'"


class TestGenerationErrors:
    """Test CodeGenerationError, ConfigurationError and OutputError."""

    def test_code_generation_error(self):
        cause = SyntaxError('invalid syntax')
        error = CodeGenerationError('does not compile', context='orders.py', cause=cause)
        assert str(error) == 'does not compile (while generating orders.py): invalid syntax'
        assert error.cause is cause

    def test_configuration_error(self):
        error = ConfigurationError('invalid target', config_path='requestgen.yaml', field='url')
        assert str(error) == "invalid target in 'requestgen.yaml' (field: url)"

    def test_output_error(self):
        error = OutputError('/readonly/out.py', PermissionError('denied'))
        assert str(error) == "Failed to write output to '/readonly/out.py': denied"


class TestRuntimeErrors:
    """Test errors raised by generated code and the runtime client."""

    def test_parameter_error(self):
        error = ParameterError('ordType value hold is invalid', key='ordType', value='hold')
        assert isinstance(error, ValueError)
        assert error.key == 'ordType'
        assert error.value == 'hold'

    def test_response_validation_error(self):
        assert issubclass(ResponseValidationError, ValueError)

    def test_api_error(self):
        error = APIError(500, b'internal error')
        assert error.status_code == 500
        assert str(error) == 'internal error'
