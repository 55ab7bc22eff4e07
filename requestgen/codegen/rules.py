import logging

from requestgen.codegen.classifier import ClassifiedField
from requestgen.codegen.fields import (
    ArgKind,
    DefaultValuer,
    Field,
    FieldRules,
    TimeEncoding,
    TimeEncodingMode,
)
from requestgen.exceptions import ConfigError

logger = logging.getLogger(__name__)

__all__ = ['RuleResolver', 'TIME_FORMATS', 'TIME_FORMATTERS']

# named layouts accepted by Param(time_format=...)
TIME_FORMATS = {
    'RFC1123': '%a, %d %b %Y %H:%M:%S %Z',
    'ISO8601': '%Y-%m-%dT%H:%M:%S',
    'DateTime': '%Y-%m-%d %H:%M:%S',
    'DateOnly': '%Y-%m-%d',
    'TimeOnly': '%H:%M:%S',
}

# named layouts rendered by a requestgen.client formatter
TIME_FORMATTERS = {
    'RFC3339': 'format_rfc3339',
    'Kitchen': 'format_kitchen',
}

DEFAULT_VALUERS = {valuer.value: valuer for valuer in DefaultValuer if valuer.value}


class RuleResolver:
    """Packages the parsed options of a field into its FieldRules.

    Raises ConfigError when the options do not fit the field, e.g. a time
    encoding on a field that is not a datetime.
    """

    def __init__(self, type_name: str):
        self.type_name = type_name

    def resolve(self, classified: ClassifiedField) -> Field:
        options = classified.options
        if classified.repeatable and options.valid_values:
            raise self._error(classified, 'valid values are not supported on repeatable fields')
        return Field(
            name=classified.name,
            key=classified.key,
            role=classified.role,
            kind=classified.kind,
            arg_type=classified.arg_type,
            optional=classified.optional,
            repeatable=classified.repeatable,
            rules=FieldRules(
                required=options.required,
                valid_values=options.valid_values,
                default=options.default,
                default_valuer=self._default_valuer(classified),
                time_encoding=self._time_encoding(classified),
            ),
        )

    def _error(self, classified: ClassifiedField, reason: str) -> ConfigError:
        return ConfigError(reason, classified.name, self.type_name)

    def _time_encoding(self, classified: ClassifiedField) -> TimeEncoding:
        options = classified.options
        if options.milliseconds and options.seconds:
            raise self._error(classified, 'milliseconds and seconds are mutually exclusive')
        if options.time_format and (options.milliseconds or options.seconds):
            raise self._error(classified, 'time_format cannot be combined with an epoch encoding')

        if options.milliseconds:
            encoding = TimeEncoding(TimeEncodingMode.MILLISECONDS)
        elif options.seconds:
            encoding = TimeEncoding(TimeEncodingMode.SECONDS)
        elif options.time_format in TIME_FORMATTERS:
            encoding = TimeEncoding(
                TimeEncodingMode.NAMED_FORMAT, formatter=TIME_FORMATTERS[options.time_format]
            )
        elif options.time_format:
            layout = TIME_FORMATS.get(options.time_format)
            if layout is None:
                if '%' not in options.time_format:
                    raise self._error(classified, f'unknown time format {options.time_format!r}')
                layout = options.time_format
            encoding = TimeEncoding(TimeEncodingMode.NAMED_FORMAT, layout)
        else:
            return TimeEncoding()

        if classified.kind is not ArgKind.TIME:
            raise self._error(
                classified, f'{encoding.mode.value} encoding requires a datetime field'
            )
        return encoding

    def _default_valuer(self, classified: ClassifiedField) -> DefaultValuer:
        token = classified.options.default_valuer
        if not token:
            return DefaultValuer.NONE

        valuer = DEFAULT_VALUERS.get(token.strip())
        if valuer is None:
            raise self._error(classified, f'unknown default valuer {token!r}')
        if valuer is DefaultValuer.NOW and classified.kind is not ArgKind.TIME:
            raise self._error(classified, 'now() requires a datetime field')
        if valuer is DefaultValuer.UUID and classified.kind is not ArgKind.STRING:
            raise self._error(classified, 'uuid() requires a string field')
        if not classified.optional:
            logger.debug(
                '%s.%s: default valuer on a non optional field is never used',
                self.type_name,
                classified.name,
            )
        return valuer
