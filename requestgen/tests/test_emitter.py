"""Tests for the code emitter and the method templates."""

import ast

import pytest

from requestgen.codegen.codegen import Codegen
from requestgen.codegen.declarations import DeclarationSet, TypeRef
from requestgen.codegen.emitter import CodeEmitter
from requestgen.codegen.fields import (
    ArgKind,
    DefaultValuer,
    Field,
    FieldRules,
    RequestMetadata,
    Role,
    TypeDescriptor,
)
from requestgen.codegen.imports import ImportResolver
from requestgen.codegen.templates import field_pipeline, type_expr, zero_value
from requestgen.config import GenerateConfig

from .fixtures import ORDERS_MODULE, PATHS_MODULE, RESPONSES_MODULE

BUILDERS = [
    'get_query_parameters',
    'get_parameters',
    'get_parameters_query',
    'get_parameters_json',
    'get_slug_parameters',
    'get_slugs_map',
    '_apply_slugs_to_url',
]


@pytest.fixture
def declarations():
    decls = DeclarationSet()
    decls.add_source(ORDERS_MODULE, 'shop.orders')
    decls.add_source(PATHS_MODULE, 'shop.paths')
    decls.add_source(RESPONSES_MODULE, 'shop.responses')
    return decls


def unparse(node: ast.AST) -> str:
    return ast.unparse(ast.fix_missing_locations(node))



def emit(declarations, type_name, **options):
    config = GenerateConfig(source='.', types=[type_name], **options)
    return Codegen(config, declarations).generate_unit(type_name)


def method_source(unit, name: str) -> str:
    for node in unit.class_def.body:
        if isinstance(node, ast.FunctionDef) and node.name == name:
            return unparse(node)
    raise KeyError(name)


def string_field(name: str, key: str, **kwargs) -> Field:
    return Field(
        name=name,
        key=key,
        role=Role.BODY,
        kind=ArgKind.STRING,
        arg_type=TypeRef('str', 'builtins'),
        **kwargs,
    )


class TestMethodLayout:
    """Test which methods are emitted and in which order."""

    def test_full_layout(self, declarations):
        unit = emit(declarations, 'QueryOrderRequest', url='/api/v1/orders')
        assert unit.methods == [
            '__init__',
            'set_symbol',
            'set_page',
            'set_limit',
            'set_order_ids',
            *BUILDERS,
            'get_path',
            'do',
        ]

    def test_without_url(self, declarations):
        unit = emit(declarations, 'QueryOrderRequest')
        assert unit.methods[-1] == '_apply_slugs_to_url'
        assert 'get_path' not in unit.methods
        assert 'do' not in unit.methods

    def test_dynamic_path_without_url(self, declarations):
        unit = emit(declarations, 'CancelOrderRequest', method='DELETE', dynamic_path=True)
        assert 'get_path' not in unit.methods
        assert unit.methods[-1] == 'do'

    def test_subclass_of_declared_type(self, declarations):
        unit = emit(declarations, 'PlaceOrderRequest')
        assert unit.class_def.name == 'PlaceOrderRequest'
        assert unparse(unit.class_def.bases[0]) == '_shop_orders_PlaceOrderRequest'
        assert unit.imports.bindings['_shop_orders_PlaceOrderRequest'] == (
            'shop.orders',
            'PlaceOrderRequest',
        )

    def test_no_client_field(self):
        decls = DeclarationSet()
        decls.add_source(
            "from requestgen import Param\n\n"
            "class Ping:\n    name: str = Param('name')\n",
            'mod',
        )
        unit = emit(decls, 'Ping', url='/ping')
        assert 'get_path' in unit.methods
        assert 'do' not in unit.methods
        assert method_source(unit, '__init__') == "def __init__(self):\n    self.name = ''"


class TestInitAndSetters:
    """Test constructor zero values and setters."""

    def test_zero_values(self, declarations):
        source = method_source(emit(declarations, 'PlaceOrderRequest'), '__init__')
        assert 'def __init__(self, client=None):' in source
        assert 'self.client = client' in source
        assert 'self.client_order_id = None' in source
        assert "self.symbol = ''" in source
        assert 'self.tags = []' in source

    def test_zero_value_of_datetime(self):
        refs = ImportResolver()
        field = Field(
            name='at',
            key='at',
            role=Role.BODY,
            kind=ArgKind.TIME,
            arg_type=TypeRef('datetime', 'datetime'),
        )
        expr = unparse(zero_value(field, refs))
        assert expr == 'datetime(1970, 1, 1, tzinfo=timezone.utc)'

    def test_setter(self, declarations):
        source = method_source(emit(declarations, 'PlaceOrderRequest'), 'set_side')
        assert source == (
            "def set_side(self, side: SideType) -> 'PlaceOrderRequest':\n"
            '    self.side = side\n'
            '    return self'
        )

    def test_optional_setter_annotation(self, declarations):
        source = method_source(emit(declarations, 'QueryOrderRequest'), 'set_order_ids')
        assert 'order_ids: list[str] | None' not in source
        assert 'def set_order_ids(self, order_ids: list[str])' in source

    def test_template_local_collision(self):
        decls = DeclarationSet()
        decls.add_source(
            "from requestgen import Param\n\n"
            "class Lookup:\n    value: str = Param('value,required')\n",
            'mod',
        )
        unit = emit(decls, 'Lookup')
        assert 'def set_value(self, value_value: str)' in method_source(unit, 'set_value')
        assert 'value_value = self.value' in method_source(unit, 'get_parameters')


class TestTemplates:
    """Test the per field pipeline."""

    def render(self, field: Field) -> str:
        statements = field_pipeline(field, 'params', ImportResolver())
        return unparse(ast.Module(body=statements, type_ignores=[]))

    def test_required_string(self):
        source = self.render(string_field('symbol', 'symbol', rules=FieldRules(required=True)))
        assert source == (
            'symbol = self.symbol\n'
            'if len(symbol) == 0:\n'
            "    raise ParameterError('symbol is required, empty string given', key='symbol')\n"
            "params['symbol'] = symbol"
        )

    def test_required_with_default(self):
        field = string_field('ord_type', 'ordType', rules=FieldRules(required=True, default='limit'))
        assert "if len(ord_type) == 0:\n    ord_type = 'limit'" in self.render(field)

    def test_valid_values(self):
        field = string_field('ord_type', 'ordType', rules=FieldRules(valid_values=('a', 'b')))
        source = self.render(field)
        assert "if ord_type in ('a', 'b'):\n    params['ordType'] = ord_type" in source
        assert (
            "raise ParameterError(f'ordType value {ord_type} is invalid', "
            "key='ordType', value=ord_type)"
        ) in source
        assert source.count("params['ordType'] = ord_type") == 2

    def test_optional_with_uuid(self):
        field = string_field(
            'client_order_id',
            'clientOid',
            optional=True,
            rules=FieldRules(default_valuer=DefaultValuer.UUID),
        )
        source = self.render(field)
        assert source.startswith('if self.client_order_id is not None:')
        assert 'else:\n    client_order_id = str(uuid.uuid4())' in source

    def test_optional_required_unset(self):
        field = string_field('price', 'price', optional=True, rules=FieldRules(required=True))
        assert "else:\n    raise ParameterError('price is required', key='price')" in self.render(
            field
        )

    def test_type_expr(self):
        refs = ImportResolver()
        optional = TypeRef('Optional', 'typing', (TypeRef('int', 'builtins'),))
        literal = TypeRef('Literal', 'typing', literal_values=('a', 'b'))
        nested = TypeRef('list', 'builtins', (TypeRef('Order', 'shop.orders'),))

        assert unparse(type_expr(optional, refs)) == 'int | None'
        assert unparse(type_expr(literal, refs)) == "Literal['a', 'b']"
        assert unparse(type_expr(nested, refs)) == 'list[Order]'
        assert set(refs.bindings) == {'Literal', 'Order'}


class TestParameterBuilders:
    """Test the emitted parameter builder methods."""

    def test_query_builder_encodes_repeatable_keys(self, declarations):
        source = method_source(emit(declarations, 'QueryOrderRequest'), 'get_query_parameters')
        assert source.endswith("return encode_query(params, ('orderIds',))")

    def test_time_encodings(self, declarations):
        unit = emit(declarations, 'ListTradesRequest')
        source = method_source(unit, 'get_parameters')
        assert "params['startTime'] = str(int(start_time.timestamp()))" in source
        assert "params['endDate'] = end_date.strftime('%Y-%m-%d')" in source
        assert "params['updatedAt'] = format_rfc3339(updated_at)" in source
        assert unit.imports.bindings['format_kitchen'] == ('requestgen.client', 'format_kitchen')

        source = method_source(emit(declarations, 'PlaceOrderRequest'), 'get_parameters')
        assert "params['startTime'] = str(int(start_time.timestamp() * 1000))" in source
        assert 'start_time = datetime.now(timezone.utc)' in source

    def test_enum_valid_values(self, declarations):
        source = method_source(emit(declarations, 'PlaceOrderRequest'), 'get_parameters')
        assert 'if side in (SideType.BUY, SideType.SELL):' in source
        assert "if time_in_force in ('GTC', 'IOC', 'FOK'):" in source

    def test_slug_substitution(self, declarations):
        source = method_source(emit(declarations, 'GetItemRequest'), '_apply_slugs_to_url')
        assert "re.sub(':' + re.escape(key) + '\\\\b', lambda match: slug, url)" in source

    def test_parameters_json(self, declarations):
        unit = emit(declarations, 'PlaceOrderRequest')
        source = method_source(unit, 'get_parameters_json')
        assert source.endswith('return to_json(self.get_parameters())')
        assert unit.imports.bindings['to_json'] == ('pydantic_core', 'to_json')


class TestDispatch:
    """Test the emitted do() method."""

    def test_post_with_body(self, declarations):
        source = method_source(
            emit(declarations, 'PlaceOrderRequest', method='post', url='/api/v1/orders'),
            'do',
        )
        assert 'params = self.get_parameters()' in source
        assert 'query = {}' in source
        assert (
            "req = self.client.new_authenticated_request('POST', api_url, query, params)"
            in source
        )
        assert 'api_response = response.decode_json()' in source
        assert 'def do(self) -> Any:' in source

    def test_get_moves_body_to_query(self, declarations):
        source = method_source(
            emit(declarations, 'PlaceOrderRequest', url='/api/v1/orders'), 'do'
        )
        assert 'params = None' in source
        assert 'query = self.get_parameters_query()' in source

    def test_slugs_and_dynamic_path(self, declarations):
        source = method_source(
            emit(declarations, 'CancelOrderRequest', method='DELETE', dynamic_path=True), 'do'
        )
        assert 'api_url = self.get_dynamic_path()' in source
        assert 'slugs = self.get_slugs_map()' in source
        assert 'api_url = self._apply_slugs_to_url(api_url, slugs)' in source

    def test_typed_response_and_data_field(self, declarations):
        unit = emit(
            declarations,
            'PlaceOrderRequest',
            method='POST',
            url='/api/v1/orders',
            response_type='OrderResponse',
            response_data_type='Order',
            response_data_field='data',
        )
        source = method_source(unit, 'do')
        assert 'api_response = TypeAdapter(OrderResponse).validate_json(response.body)' in source
        assert 'if isinstance(api_response, ResponseValidator):' in source
        assert 'api_response.validate_response()' in source
        assert 'data = TypeAdapter(Order).validate_python(api_response.data)' in source
        assert source.splitlines()[0] == 'def do(self) -> Order:'

    def test_untyped_data_field(self, declarations):
        source = method_source(
            emit(
                declarations,
                'QueryOrderRequest',
                url='/api/v1/orders',
                response_data_field='items',
            ),
            'do',
        )
        assert "data = api_response['items']" in source

    def test_unmarshaler(self, declarations):
        source = method_source(
            emit(
                declarations,
                'ExportTradesRequest',
                url='/api/v1/trades/export',
                response_type='CsvTrades',
            ),
            'do',
        )
        assert 'api_response = CsvTrades()\n    api_response.unmarshal(response.body)' in source

    def test_public_client(self, declarations):
        source = method_source(emit(declarations, 'GetItemRequest', url='/items/:id'), 'do')
        assert "req = self.client.new_request('GET', api_url, query, params)" in source


class TestGeneratedUnit:
    """Test rendering of a single unit."""

    def test_render_compiles(self, declarations):
        unit = emit(declarations, 'PlaceOrderRequest', method='POST', url='/api/v1/orders')
        source = unit.render()
        compile(source, '<unit>', 'exec')
        assert (
            'from shop.orders import PlaceOrderRequest as _shop_orders_PlaceOrderRequest'
            in source
        )

    def test_emitter_from_descriptor(self):
        descriptor = TypeDescriptor(
            name='Ping',
            module='mod',
            fields=[string_field('name', 'name')],
            metadata=RequestMetadata(url='/ping'),
        )
        unit = CodeEmitter(descriptor, ImportResolver(reserved={'Ping'})).emit()
        assert unit.methods[0] == '__init__'
        assert unit.methods[-1] == 'get_path'
