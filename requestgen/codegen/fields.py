"""Data model shared by the generation pipeline.

A TypeDescriptor is built once per requested type, fully populated before
emission, and discarded after its unit has been emitted.
"""

import enum
from dataclasses import dataclass, field

from requestgen.codegen.declarations import TypeRef

__all__ = [
    'ArgKind',
    'CapabilityLevel',
    'DefaultValuer',
    'Field',
    'FieldRules',
    'ParamSpec',
    'RawField',
    'RequestMetadata',
    'Role',
    'TEMPLATE_LOCALS',
    'TimeEncoding',
    'TimeEncodingMode',
    'TypeDescriptor',
]


class Role(enum.Enum):
    BODY = 'body'
    QUERY = 'query'
    SLUG = 'slug'


class ArgKind(enum.Enum):
    STRING = 'string'
    INT = 'int'
    TIME = 'time'
    OTHER = 'other'


class DefaultValuer(enum.Enum):
    NONE = ''
    NOW = 'now()'
    UUID = 'uuid()'


class TimeEncodingMode(enum.Enum):
    NONE = 'none'
    MILLISECONDS = 'milliseconds'
    SECONDS = 'seconds'
    NAMED_FORMAT = 'format'


class CapabilityLevel(enum.Enum):
    PUBLIC = 'public'
    AUTHENTICATED = 'authenticated'


@dataclass(frozen=True)
class TimeEncoding:
    mode: TimeEncodingMode = TimeEncodingMode.NONE
    layout: str | None = None
    # runtime formatter in requestgen.client, for layouts strftime cannot render
    formatter: str | None = None

    @property
    def is_set(self) -> bool:
        return self.mode is not TimeEncodingMode.NONE


NO_TIME_ENCODING = TimeEncoding()

# names the generated method bodies bind or call
TEMPLATE_LOCALS = frozenset(
    {
        'self',
        'client',
        'value',
        'params',
        'query',
        'slugs',
        'url',
        'api_url',
        'req',
        'response',
        'api_response',
        'data',
        'key',
        'slug',
        'str',
        'int',
        'len',
        'isinstance',
        'super',
    }
)


@dataclass(frozen=True)
class ParamSpec:
    """A ``Param(...)`` marker read statically from a declaration."""

    spec: str = ''
    default: str | int | None = None
    default_valuer: str | None = None
    valid_values: str | None = None
    time_format: str | None = None


@dataclass(frozen=True)
class RawField:
    """A field as declared, before classification."""

    name: str
    annotation: str
    type: TypeRef
    param: ParamSpec | None = None
    lineno: int = 0


@dataclass(frozen=True)
class FieldRules:
    """Validation, default and encoding rules of a single field.

    Attributes:
        required: Empty values raise (or fall back to ``default``).
        valid_values: Accepted literals, ``str``, ``int`` or EnumMemberRef.
        default: Literal used when the field is empty or unset.
        default_valuer: Computed default used when the field is unset.
        time_encoding: How a datetime value is encoded.
    """

    required: bool = False
    valid_values: tuple = ()
    default: str | int | None = None
    default_valuer: DefaultValuer = DefaultValuer.NONE
    time_encoding: TimeEncoding = NO_TIME_ENCODING


@dataclass(frozen=True)
class Field:
    name: str
    key: str
    role: Role
    kind: ArgKind
    arg_type: TypeRef
    optional: bool = False
    repeatable: bool = False
    rules: FieldRules = field(default_factory=FieldRules)

    @property
    def local(self) -> str:
        """Local variable name used for the value in generated code."""
        local = self.name.lstrip('_') or self.name
        if local in TEMPLATE_LOCALS:
            local = f'{local}_value'
        return local


@dataclass(frozen=True)
class RequestMetadata:
    method: str = 'GET'
    url: str | None = None
    dynamic_path: bool = False
    response_type: TypeRef | None = None
    response_data_type: TypeRef | None = None
    response_data_field: str | None = None
    client_field: str | None = None
    capability: CapabilityLevel | None = None
    response_unmarshaler: bool = False

    @property
    def dispatchable(self) -> bool:
        return self.client_field is not None and (bool(self.url) or self.dynamic_path)


@dataclass
class TypeDescriptor:
    name: str
    module: str
    fields: list[Field] = field(default_factory=list)
    metadata: RequestMetadata = field(default_factory=RequestMetadata)

    def fields_by_role(self, role: Role) -> list[Field]:
        return [f for f in self.fields if f.role is role]

    @property
    def has_body(self) -> bool:
        return any(f.role is Role.BODY for f in self.fields)

    @property
    def has_query(self) -> bool:
        return any(f.role is Role.QUERY for f in self.fields)

    @property
    def has_slugs(self) -> bool:
        return any(f.role is Role.SLUG for f in self.fields)
