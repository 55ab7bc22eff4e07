"""Declaration markers for request types.

A request type is a plain class whose annotated attributes carry a Param
marker, either as ``Annotated`` metadata or as the assigned value::

    class QueryOrderRequest:
        client: APIClient

        symbol: str = Param('symbol,required')
        page: Annotated[Optional[int], Param('page,query')]

The marker is read statically by the generator; at runtime it is inert.
"""

from dataclasses import dataclass

__all__ = ['Param']


@dataclass(frozen=True)
class Param:
    """Parameter annotation attached to a request field.

    Attributes:
        spec: The primary directive, ``"key,option,option"``. Supported options
            are ``required``, ``query``, ``slug``, ``milliseconds`` and
            ``seconds``. An empty key keeps the key derived from the field name.
        default: Literal fallback value used when the field is empty or unset.
        default_valuer: ``"now()"`` or ``"uuid()"``, computed when the field is unset.
        valid_values: Comma-separated list of accepted values.
        time_format: Name of a layout from the time format catalog.
    """

    spec: str = ''
    default: str | int | None = None
    default_valuer: str | None = None
    valid_values: str | None = None
    time_format: str | None = None
