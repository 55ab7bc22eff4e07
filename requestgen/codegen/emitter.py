"""Code emitter for generated request builders.

The CodeEmitter renders one TypeDescriptor into a GeneratedUnit: a subclass
of the declared type, named like it, that adds setters, parameter builders
and, when possible, a ``do()`` dispatch method.
"""

import ast
import logging
from dataclasses import dataclass, field

from requestgen.codegen.ast_utils import (
    _argument,
    _assign,
    _attr,
    _call,
    _const,
    _method,
    _name,
    _return,
    _self_attr,
    _subscript,
    _tuple,
)
from requestgen.codegen.declarations import ANY_TYPE, TypeRef
from requestgen.codegen.fields import CapabilityLevel, Field, Role, TypeDescriptor
from requestgen.codegen.imports import ImportResolver
from requestgen.codegen.templates import RUNTIME_MODULE, field_pipeline, type_expr, zero_value
from requestgen.codegen.utils import setter_name

logger = logging.getLogger(__name__)

__all__ = ['CodeEmitter', 'GeneratedUnit']


@dataclass
class GeneratedUnit:
    """The emitted class of one requested type and the imports it needs."""

    name: str
    class_def: ast.ClassDef
    imports: ImportResolver
    methods: list[str] = field(default_factory=list)

    def render(self) -> str:
        module = ast.Module(body=self.imports.to_ast() + [self.class_def], type_ignores=[])
        ast.fix_missing_locations(module)
        return ast.unparse(module)


class CodeEmitter:
    """Renders a TypeDescriptor through the fixed method templates.

    Example:
        >>> emitter = CodeEmitter(descriptor, ImportResolver(reserved={'QueryOrderRequest'}))
        >>> unit = emitter.emit()
        >>> unit.methods[:2]
        ['__init__', 'set_symbol']
    """

    def __init__(self, descriptor: TypeDescriptor, refs: ImportResolver):
        self.descriptor = descriptor
        self.refs = refs
        self._methods: list[ast.FunctionDef] = []

    def emit(self) -> GeneratedUnit:
        descriptor = self.descriptor
        metadata = descriptor.metadata
        base = self.refs.ref(descriptor.module, descriptor.name)

        self._add(self._init())
        for f in descriptor.fields:
            self._add(self._setter(f))

        self._emit_parameter_builders()

        if metadata.url:
            self._add(
                _method(
                    'get_path',
                    [],
                    [_return(_const(metadata.url))],
                    returns=_name('str'),
                )
            )

        if metadata.dispatchable:
            self._add(self._do())
        elif metadata.client_field or metadata.url:
            logger.debug(
                '%s: no do() method without both a client field and a url', descriptor.name
            )

        class_def = ast.ClassDef(
            name=descriptor.name,
            bases=[_name(base)],
            keywords=[],
            body=list(self._methods),
            decorator_list=[],
        )
        return GeneratedUnit(
            name=descriptor.name,
            class_def=class_def,
            imports=self.refs,
            methods=[m.name for m in self._methods],
        )

    def _add(self, method: ast.FunctionDef) -> None:
        self._methods.append(method)

    # ------------------------------------------------------------------
    # Construction and setters
    # ------------------------------------------------------------------

    def _init(self) -> ast.FunctionDef:
        metadata = self.descriptor.metadata
        args, defaults, body = [], [], []
        if metadata.client_field:
            args.append(_argument('client'))
            defaults.append(_const(None))
            body.append(_assign(_self_attr(metadata.client_field), _name('client')))

        for f in self.descriptor.fields:
            body.append(_assign(_self_attr(f.name), zero_value(f, self.refs)))

        return _method('__init__', args, body, defaults=defaults)

    def _setter(self, f: Field) -> ast.FunctionDef:
        return _method(
            setter_name(f.name),
            [_argument(f.local, type_expr(f.arg_type, self.refs))],
            [
                _assign(_self_attr(f.name), _name(f.local)),
                _return(_name('self')),
            ],
            returns=_const(self.descriptor.name),
        )

    # ------------------------------------------------------------------
    # Parameter builders
    # ------------------------------------------------------------------

    def _collect(self, role: Role) -> list[ast.stmt]:
        body: list[ast.stmt] = [_assign(_name('params'), ast.Dict(keys=[], values=[]))]
        for f in self.descriptor.fields_by_role(role):
            body.extend(field_pipeline(f, 'params', self.refs))
        return body

    def _encode_query(self, params: ast.expr, role: Role) -> ast.expr:
        repeatable = [
            _const(f.key) for f in self.descriptor.fields_by_role(role) if f.repeatable
        ]
        args = [params]
        if repeatable:
            args.append(_tuple(repeatable))
        return _call(_name(self.refs.ref(RUNTIME_MODULE, 'encode_query')), args)

    def _emit_parameter_builders(self) -> None:
        dict_type = _name('dict')

        self._add(
            _method(
                'get_query_parameters',
                [],
                self._collect(Role.QUERY)
                + [_return(self._encode_query(_name('params'), Role.QUERY))],
                returns=dict_type,
            )
        )
        self._add(
            _method(
                'get_parameters',
                [],
                self._collect(Role.BODY) + [_return(_name('params'))],
                returns=dict_type,
            )
        )
        self._add(
            _method(
                'get_parameters_query',
                [],
                [
                    _assign(_name('params'), _call(_self_attr('get_parameters'))),
                    _return(self._encode_query(_name('params'), Role.BODY)),
                ],
                returns=dict_type,
            )
        )
        to_json = self.refs.ref('pydantic_core', 'to_json')
        self._add(
            _method(
                'get_parameters_json',
                [],
                [_return(_call(_name(to_json), [_call(_self_attr('get_parameters'))]))],
                returns=_name('bytes'),
            )
        )
        self._add(
            _method(
                'get_slug_parameters',
                [],
                self._collect(Role.SLUG) + [_return(_name('params'))],
                returns=dict_type,
            )
        )

        format_value = self.refs.ref(RUNTIME_MODULE, 'format_query_value')
        self._add(
            _method(
                'get_slugs_map',
                [],
                [
                    _assign(_name('params'), _call(_self_attr('get_slug_parameters'))),
                    _return(
                        ast.DictComp(
                            key=_name('key'),
                            value=_call(_name(format_value), [_name('value')]),
                            generators=[
                                ast.comprehension(
                                    target=_tuple([_name('key'), _name('value')]),
                                    iter=_call(_attr('params', 'items')),
                                    ifs=[],
                                    is_async=0,
                                )
                            ],
                        )
                    ),
                ],
                returns=_subscript('dict', _tuple([_name('str'), _name('str')])),
            )
        )
        self._add(self._apply_slugs())

    def _apply_slugs(self) -> ast.FunctionDef:
        re_module = self.refs.module('re')
        pattern = ast.BinOp(
            left=ast.BinOp(
                left=_const(':'),
                op=ast.Add(),
                right=_call(_attr(re_module, 'escape'), [_name('key')]),
            ),
            op=ast.Add(),
            right=_const(r'\b'),
        )
        replacement = ast.Lambda(
            args=ast.arguments(
                posonlyargs=[],
                args=[ast.arg(arg='match')],
                kwonlyargs=[],
                kw_defaults=[],
                defaults=[],
            ),
            body=_name('slug'),
        )
        loop = ast.For(
            target=_tuple([_name('key'), _name('slug')]),
            iter=_call(_attr('slugs', 'items')),
            body=[
                _assign(
                    _name('url'),
                    _call(_attr(re_module, 'sub'), [pattern, replacement, _name('url')]),
                )
            ],
            orelse=[],
        )
        return _method(
            '_apply_slugs_to_url',
            [
                _argument('url', _name('str')),
                _argument('slugs', _subscript('dict', _tuple([_name('str'), _name('str')]))),
            ],
            [loop, _return(_name('url'))],
            returns=_name('str'),
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _do(self) -> ast.FunctionDef:
        descriptor = self.descriptor
        metadata = descriptor.metadata
        method = metadata.method.upper()
        body: list[ast.stmt] = []

        if descriptor.has_body and method != 'GET':
            body.append(_assign(_name('params'), _call(_self_attr('get_parameters'))))
        else:
            body.append(_assign(_name('params'), _const(None)))

        if descriptor.has_query:
            query = _call(_self_attr('get_query_parameters'))
        elif descriptor.has_body and method == 'GET':
            query = _call(_self_attr('get_parameters_query'))
        else:
            query = ast.Dict(keys=[], values=[])
        body.append(_assign(_name('query'), query))

        if metadata.dynamic_path:
            api_url = _call(_self_attr('get_dynamic_path'))
        else:
            api_url = _const(metadata.url)
        body.append(_assign(_name('api_url'), api_url))

        if descriptor.has_slugs:
            body.append(_assign(_name('slugs'), _call(_self_attr('get_slugs_map'))))
            body.append(
                _assign(
                    _name('api_url'),
                    _call(_self_attr('_apply_slugs_to_url'), [_name('api_url'), _name('slugs')]),
                )
            )

        if metadata.capability is CapabilityLevel.AUTHENTICATED:
            new_request = 'new_authenticated_request'
        else:
            new_request = 'new_request'
        client = _self_attr(metadata.client_field)
        body.append(
            _assign(
                _name('req'),
                _call(
                    _attr(client, new_request),
                    [_const(method), _name('api_url'), _name('query'), _name('params')],
                ),
            )
        )
        body.append(_assign(_name('response'), _call(_attr(client, 'send_request'), [_name('req')])))

        response_type = metadata.response_type or ANY_TYPE
        body.extend(self._decode_response(response_type))

        validator = self.refs.ref(RUNTIME_MODULE, 'ResponseValidator')
        body.append(
            ast.If(
                test=_call(_name('isinstance'), [_name('api_response'), _name(validator)]),
                body=[ast.Expr(value=_call(_attr('api_response', 'validate_response')))],
                orelse=[],
            )
        )

        returns = response_type
        if metadata.response_data_field:
            data_type = metadata.response_data_type or ANY_TYPE
            if response_type.is_any:
                value = _subscript('api_response', _const(metadata.response_data_field))
            else:
                value = _attr('api_response', metadata.response_data_field)
            body.append(_assign(_name('data'), self._validate_python(data_type, value)))
            body.append(_return(_name('data')))
            returns = data_type
        else:
            body.append(_return(_name('api_response')))

        return _method('do', [], body, returns=type_expr(returns, self.refs))

    def _decode_response(self, response_type: TypeRef) -> list[ast.stmt]:
        body = _attr('response', 'body')
        if response_type.is_any:
            return [_assign(_name('api_response'), _call(_attr('response', 'decode_json')))]

        if self.descriptor.metadata.response_unmarshaler:
            return [
                _assign(_name('api_response'), _call(type_expr(response_type, self.refs))),
                ast.Expr(value=_call(_attr('api_response', 'unmarshal'), [body])),
            ]

        adapter = _call(
            _name(self.refs.ref('pydantic', 'TypeAdapter')), [type_expr(response_type, self.refs)]
        )
        return [_assign(_name('api_response'), _call(_attr(adapter, 'validate_json'), [body]))]

    def _validate_python(self, data_type: TypeRef, value: ast.expr) -> ast.expr:
        if data_type.is_any:
            return value
        adapter = _call(
            _name(self.refs.ref('pydantic', 'TypeAdapter')), [type_expr(data_type, self.refs)]
        )
        return _call(_attr(adapter, 'validate_python'), [value])
