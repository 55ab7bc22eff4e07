import re
import unicodedata

__all__ = (
    'capitalize',
    'derive_param_key',
    'sanitize_identifier',
    'setter_name',
    'split_camel_case',
    'to_snake_case',
)

# lower->Upper, UPPER->Upper+lower, letter<->digit boundaries
_CAMEL_BOUNDARY = re.compile(
    r'[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|[0-9]+|[^A-Za-z0-9]+'
)


def capitalize(input_string):
    if not input_string:
        return ''
    return input_string[0].upper() + input_string[1:]


def remove_accents(input_str):
    nfkd_form = unicodedata.normalize('NFKD', input_str)
    return ''.join(c for c in nfkd_form if not unicodedata.combining(c))


def split_camel_case(name: str) -> list[str]:
    """Split an identifier on case boundaries.

    >>> split_camel_case('clientOrderID')
    ['client', 'Order', 'ID']
    >>> split_camel_case('HTTPServer2')
    ['HTTP', 'Server', '2']
    """
    return _CAMEL_BOUNDARY.findall(name)


def derive_param_key(name: str) -> str:
    """Derive the default parameter key of a field.

    The name is split on underscores and case boundaries, the first segment
    is lower-cased and the following segments start with an upper case
    letter. ``client_order_id`` becomes ``clientOrderId`` and
    ``ClientOrderID`` becomes ``clientOrderID``.
    """
    segments = []
    for word in name.strip('_').split('_'):
        segments.extend(s for s in split_camel_case(word) if s)

    if not segments:
        return name

    return segments[0].lower() + ''.join(capitalize(s) for s in segments[1:])


def setter_name(field_name: str) -> str:
    return f'set_{field_name.lstrip("_")}'


def to_snake_case(name: str) -> str:
    """Convert a CamelCase identifier to snake_case."""
    parts = []
    for word in name.split('_'):
        parts.extend(s.lower() for s in split_camel_case(word) if s.isalnum())
    return '_'.join(parts)


def sanitize_identifier(name: str) -> str:
    """Convert a string into a valid Python identifier.

    - Replace runs of invalid characters with underscores
    - Ensure it doesn't start with a digit
    """
    sanitized = re.sub(r'[^A-Za-z0-9_]+', '_', remove_accents(name)).strip('_')

    if sanitized and sanitized[0].isdigit():
        sanitized = '_' + sanitized

    return sanitized or '_'
