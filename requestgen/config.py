import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from requestgen.exceptions import ConfigurationError

DEFAULT_FILENAMES = ['requestgen.yaml', 'requestgen.yml']

HTTP_METHODS = {'GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'HEAD', 'OPTIONS'}


class GenerateConfig(BaseModel):
    """Represents one generation target: a set of request types and their endpoint."""

    source: str = Field(
        ..., description='Python source file or package directory holding the declarations.'
    )

    types: list[str] = Field(
        ..., min_length=1, description='Names of the request types to generate, in order.'
    )

    module: str | None = Field(
        None,
        description='Dotted module name of a single source file, if it cannot be derived from the package layout.',
    )

    method: str = Field('GET', description='HTTP method of the request.')

    url: str | None = Field(
        None, description='URL path template of the request, slugs written as ":key".'
    )

    dynamic_path: bool = Field(
        False, description='Build the URL by calling get_dynamic_path() on the request.'
    )

    response_type: str = Field('Any', description='Type the response body is decoded to.')

    response_data_type: str | None = Field(
        None, description='Type of the response data field returned by do().'
    )

    response_data_field: str | None = Field(
        None, description='Field of the decoded response returned by do().'
    )

    output: str | None = Field(
        None, description='Output file, defaults to <type>_requestgen.py next to the source.'
    )

    stdout: bool = Field(False, description='Print the generated code instead of writing it.')

    workers: int = Field(1, ge=1, description='Number of types generated concurrently.')

    @field_validator('types', mode='before')
    @classmethod
    def split_types(cls, value):
        if isinstance(value, str):
            value = [name.strip() for name in value.split(',') if name.strip()]
        return value

    @field_validator('method')
    @classmethod
    def check_method(cls, value: str) -> str:
        value = value.upper()
        if value not in HTTP_METHODS:
            raise ValueError(f'unsupported HTTP method {value!r}')
        return value

    def default_output(self) -> Path:
        from requestgen.codegen.utils import to_snake_case

        source = Path(self.source)
        directory = source if source.is_dir() else source.parent
        name = self.types[0].rpartition(':')[2].rpartition('.')[2]
        return directory / f'{to_snake_case(name)}_requestgen.py'


class RequestgenConfig(BaseSettings):
    targets: list[GenerateConfig] = Field(
        ..., description='List of generation targets to process.'
    )


def load_yaml(path: str | Path) -> dict:
    import yaml

    return yaml.load(Path(path).read_text(), Loader=yaml.FullLoader)


def get_config(path: str | None = None) -> RequestgenConfig:
    """Load configuration from a file or from pyproject.toml.

    Raises:
        ConfigurationError: If no configuration can be found.
    """
    if path:
        if not Path(path).exists():
            raise ConfigurationError('config not found', config_path=path)
        return RequestgenConfig.model_validate(load_yaml(path))

    cwd = os.getcwd()

    for filename in DEFAULT_FILENAMES:
        path = Path(cwd) / filename
        if path.exists():
            return RequestgenConfig.model_validate(load_yaml(path))

    path = Path(os.getcwd()) / 'pyproject.toml'

    if path.exists():
        import tomllib

        pyproject = tomllib.loads(path.read_text())
        tools = pyproject.get('tool', {})

        if 'requestgen' in tools:
            return RequestgenConfig.model_validate(tools['requestgen'])

    raise ConfigurationError('config not found')
