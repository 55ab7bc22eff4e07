"""Test fixtures for requestgen tests.

This module provides sample request type declarations and utilities for
writing them to disk as importable packages.
"""

import importlib
import uuid
from pathlib import Path

from requestgen.codegen.codegen import Codegen
from requestgen.config import GenerateConfig

# Orders API: enums, Literal aliases, pydantic responses and request types
ORDERS_MODULE = '''
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel

from requestgen import APIClient, AuthenticatedAPIClient, Param, ResponseValidationError


class SideType(str, Enum):
    BUY = 'buy'
    SELL = 'sell'


TimeInForce = Literal['GTC', 'IOC', 'FOK']


class Order(BaseModel):
    order_id: str
    symbol: str


class OrderResponse(BaseModel):
    code: str
    message: str = ''
    data: Any = None

    def validate_response(self) -> None:
        if self.code != '0':
            raise ResponseValidationError(self.message)


class PlaceOrderRequest:
    client: AuthenticatedAPIClient

    client_order_id: Annotated[
        Optional[str], Param('clientOid,required', default_valuer='uuid()')
    ]
    symbol: str = Param('symbol,required')
    side: SideType = Param('side,required')
    ord_type: str = Param('ordType,required', valid_values='limit,market', default='limit')
    time_in_force: Optional[TimeInForce] = Param('timeInForce')
    quantity: str = Param('quantity')
    price: Optional[str] = Param('price')
    start_time: Optional[datetime] = Param('startTime,milliseconds', default_valuer='now()')
    tags: list[str] = Param('tags')


class QueryOrderRequest:
    client: APIClient

    symbol: str = Param('symbol,required,query')
    page: Optional[int] = Param('page,query')
    limit: int = Param('limit,query,required', default=50)
    order_ids: Optional[list[str]] = Param('orderIds,query')


class ListTradesRequest:
    client: APIClient

    symbol: str = Param('symbol')
    start_time: Optional[datetime] = Param('startTime,seconds')
    end_date: Optional[datetime] = Param('endDate', time_format='DateOnly')
    updated_at: Optional[datetime] = Param('updatedAt', time_format='RFC3339')
    open_at: Optional[datetime] = Param('openAt', time_format='Kitchen')


class BrokenRequest:
    client: APIClient

    symbol: str = Param('symbol,milliseconds')
'''

# Slugs and dynamic paths
PATHS_MODULE = '''
from typing import Optional

from requestgen import APIClient, AuthenticatedAPIClient, Param


class GetItemRequest:
    client: APIClient

    id: str = Param('id,slug,required')
    idx: Optional[str] = Param('idx,slug')


class CancelOrderRequest:
    client: AuthenticatedAPIClient

    order_id: str = Param('orderId,slug,required')

    def get_dynamic_path(self) -> str:
        return '/api/v1/orders/:orderId'


class StaticPathRequest:
    client: APIClient

    symbol: str = Param('symbol')
'''

# Response types with custom decoding
RESPONSES_MODULE = '''
from requestgen import APIClient, Param


class CsvTrades:
    def __init__(self):
        self.rows = []

    def unmarshal(self, data: bytes) -> None:
        self.rows = [line.split(',') for line in data.decode().splitlines()]


class ExportTradesRequest:
    client: APIClient

    symbol: str = Param('symbol,query')
'''

# Legacy options and odd class bodies
LEGACY_MODULE = '''
from typing import ClassVar, Optional

from requestgen import APIClient, Param


class LegacyRequest:
    client: APIClient

    kind: ClassVar[str] = 'legacy'
    a = b = 1
    c, d = 2, 3

    account_id: str = Param('accountId,omitempty')
    secret: Optional[str] = Param(',private')
    clientOrderID: str = Param()
    unset: int
'''


def unique_package_name(prefix: str = 'decls') -> str:
    """Return a package name not yet present in sys.modules."""
    return f'{prefix}_{uuid.uuid4().hex[:8]}'


def write_package(root: Path, package: str, modules: dict[str, str]) -> Path:
    """Write ``modules`` (name -> source) as an importable package under ``root``."""
    directory = root / package
    directory.mkdir(parents=True, exist_ok=True)
    (directory / '__init__.py').write_text('')
    for name, source in modules.items():
        (directory / f'{name}.py').write_text(source)
    return directory


def generate_module(directory: Path, package: str, types: list[str], output: str, **options):
    """Generate ``types`` from ``directory`` into ``package.output`` and import it."""
    config = GenerateConfig(
        source=str(directory),
        types=types,
        output=str(directory / f'{output}.py'),
        **options,
    )
    result = Codegen(config).generate()
    assert result.ok, result.errors
    importlib.invalidate_caches()
    return importlib.import_module(f'{package}.{output}')

# Types mixing bad markers and unmarked fields of unusual types
LOOSE_MODULE = '''
from typing import Optional

from requestgen import APIClient, Param


class BadDefaultRequest:
    client: APIClient

    page: int = Param('page', default=[1])


class LooseRequest:
    client: APIClient

    symbol: str = Param('symbol,required')
    factory: type
    payload: Optional[bytearray]
    loader: UnknownLoader
'''
