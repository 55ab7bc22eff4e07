"""Field classification.

Reads the ``Param`` marker of each declared field and derives its role,
optionality, kind, parameter key and repeatable flag. Option values are
parsed here; packaging them into FieldRules is left to the RuleResolver.
"""

import logging
from dataclasses import dataclass, field

from requestgen.codegen.declarations import ConstantCatalog, DeclarationSet, TypeRef
from requestgen.codegen.fields import ArgKind, RawField, Role
from requestgen.codegen.utils import derive_param_key
from requestgen.exceptions import ConfigError

logger = logging.getLogger(__name__)

__all__ = ['ClassifiedField', 'FieldClassifier', 'FieldOptions', 'KNOWN_OPTIONS']

KNOWN_OPTIONS = {'required', 'query', 'slug', 'milliseconds', 'seconds'}

# accepted in legacy declarations, without effect
IGNORED_OPTIONS = {'omitempty', 'private'}


@dataclass(frozen=True)
class FieldOptions:
    required: bool = False
    query: bool = False
    slug: bool = False
    milliseconds: bool = False
    seconds: bool = False
    default: str | int | None = None
    default_valuer: str | None = None
    valid_values: tuple = ()
    time_format: str | None = None


@dataclass(frozen=True)
class ClassifiedField:
    name: str
    key: str
    role: Role
    kind: ArgKind
    arg_type: TypeRef
    optional: bool = False
    repeatable: bool = False
    options: FieldOptions = field(default_factory=FieldOptions)


class FieldClassifier:
    """Classifies the raw fields of one request type.

    Args:
        declarations: The declaration set the type was loaded from.
        catalog: Named constant groups, consulted when a field does not list
            its valid values explicitly.
        type_name: Name of the type being classified, used in error messages.
    """

    def __init__(self, declarations: DeclarationSet, catalog: ConstantCatalog, type_name: str):
        self.declarations = declarations
        self.catalog = catalog
        self.type_name = type_name

    def classify(self, raw: RawField) -> ClassifiedField | None:
        """Classify a field; fields without a Param marker yield None."""
        if raw.param is None:
            return None

        key, option_names = self._parse_spec(raw)

        optional = raw.type.is_optional
        arg_type = raw.type.args[0] if optional else raw.type
        kind = self.kind_of(arg_type)
        repeatable = arg_type.is_sequence

        flags = {name: True for name in option_names}
        options = FieldOptions(
            **flags,
            default=self._parse_default(raw, kind),
            default_valuer=raw.param.default_valuer or None,
            valid_values=self._parse_valid_values(raw, kind, arg_type),
            time_format=raw.param.time_format or None,
        )

        if options.slug:
            role = Role.SLUG
        elif options.query:
            role = Role.QUERY
        else:
            role = Role.BODY

        return ClassifiedField(
            name=raw.name,
            key=key,
            role=role,
            kind=kind,
            arg_type=arg_type,
            optional=optional,
            repeatable=repeatable,
            options=options,
        )

    def kind_of(self, arg_type: TypeRef) -> ArgKind:
        if arg_type.is_('datetime', 'datetime'):
            return ArgKind.TIME
        if arg_type.is_('builtins', 'str'):
            return ArgKind.STRING
        if arg_type.is_('builtins', 'int'):
            return ArgKind.INT

        if arg_type.literal_values:
            values = arg_type.literal_values
            if all(isinstance(v, str) for v in values):
                return ArgKind.STRING
            if all(isinstance(v, int) and not isinstance(v, bool) for v in values):
                return ArgKind.INT
            return ArgKind.OTHER

        info = self.declarations.get_class(arg_type)
        if info is not None and info.is_enum:
            if info.enum_kind == 'str':
                return ArgKind.STRING
            if info.enum_kind == 'int':
                return ArgKind.INT
        return ArgKind.OTHER

    def _parse_spec(self, raw: RawField) -> tuple[str, list[str]]:
        key, *options = [part.strip() for part in raw.param.spec.split(',')]
        key = key or derive_param_key(raw.name)

        names = []
        for option in options:
            if not option:
                continue
            if option in KNOWN_OPTIONS:
                names.append(option)
            elif option in IGNORED_OPTIONS:
                logger.debug('%s.%s: ignoring option %r', self.type_name, raw.name, option)
            else:
                logger.debug('%s.%s: unknown option %r', self.type_name, raw.name, option)
        return key, names

    def _parse_default(self, raw: RawField, kind: ArgKind):
        default = raw.param.default
        if default is None:
            return None
        if kind is ArgKind.STRING:
            return str(default)
        if kind is ArgKind.INT:
            if isinstance(default, bool):
                raise ConfigError(f'invalid int default {default!r}', raw.name, self.type_name)
            try:
                return int(default)
            except (TypeError, ValueError):
                raise ConfigError(f'invalid int default {default!r}', raw.name, self.type_name)
        raise ConfigError(
            f'default values are only supported on string and int fields, not {raw.annotation}',
            raw.name,
            self.type_name,
        )

    def _parse_valid_values(self, raw: RawField, kind: ArgKind, arg_type: TypeRef) -> tuple:
        listed = raw.param.valid_values
        if listed:
            values = [v.strip() for v in listed.split(',') if v.strip()]
            if kind is ArgKind.INT:
                try:
                    return tuple(int(v) for v in values)
                except ValueError:
                    raise ConfigError(
                        f'invalid int in valid values {listed!r}', raw.name, self.type_name
                    )
            return tuple(values)

        group = self.catalog.lookup(arg_type)
        if group:
            return group
        if arg_type.is_('typing', 'Literal'):
            return arg_type.literal_values
        return ()
