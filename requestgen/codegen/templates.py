"""The fixed statement templates generated methods are assembled from.

Every parameter builder runs the same pipeline per field::

    if self.start_time is not None:        # optional fields only
        start_time = self.start_time
        <check required>
        <check valid values>
        <assign>
    else:
        <assign default>

Each template returns AST statements; names of imported objects are
obtained from an ImportResolver so that the unit's import list stays exact.
"""

import ast

from requestgen.codegen.ast_utils import (
    _assign,
    _attr,
    _call,
    _const,
    _fstring,
    _name,
    _raise,
    _self_attr,
    _subscript,
    _subscript_assign,
    _tuple,
    _union_expr,
)
from requestgen.codegen.declarations import EnumMemberRef, TypeRef
from requestgen.codegen.fields import ArgKind, DefaultValuer, Field, TimeEncodingMode
from requestgen.codegen.imports import ImportResolver

__all__ = [
    'assign',
    'assign_default',
    'check_required',
    'check_valid_values',
    'encode',
    'epoch_expr',
    'field_pipeline',
    'literal_expr',
    'type_expr',
    'zero_value',
]

RUNTIME_MODULE = 'requestgen.client'


def _parameter_error(
    refs: ImportResolver, message: ast.expr, field: Field, value: ast.expr | None = None
) -> ast.Raise:
    keywords = {'key': _const(field.key)}
    if value is not None:
        keywords['value'] = value
    return _raise(refs.ref(RUNTIME_MODULE, 'ParameterError'), message, **keywords)


def literal_expr(value, refs: ImportResolver) -> ast.expr:
    if isinstance(value, EnumMemberRef):
        return _attr(refs.ref(value.module, value.enum_name), value.member)
    return _const(value)


def type_expr(type_ref: TypeRef, refs: ImportResolver) -> ast.expr:
    """Render a resolved type as an annotation expression."""
    if type_ref.is_none:
        return _const(None)
    if type_ref.is_optional:
        return _union_expr([type_expr(type_ref.args[0], refs), _const(None)])
    if type_ref.is_('typing', 'Union'):
        return _union_expr([type_expr(arg, refs) for arg in type_ref.args])
    if type_ref.is_('typing', 'Literal'):
        values = [_const(v) for v in type_ref.literal_values]
        inner = values[0] if len(values) == 1 else _tuple(values)
        return _subscript(refs.ref('typing', 'Literal'), inner)

    head, _, rest = type_ref.name.partition('.')
    expr: ast.expr = _name(refs.ref(type_ref.module, head))
    for attr in rest.split('.') if rest else []:
        expr = _attr(expr, attr)

    if type_ref.args:
        args = [type_expr(arg, refs) for arg in type_ref.args]
        expr = _subscript(expr, args[0] if len(args) == 1 else _tuple(args))
    return expr


def epoch_expr(refs: ImportResolver) -> ast.expr:
    return _call(
        _name(refs.ref('datetime', 'datetime')),
        [_const(1970), _const(1), _const(1)],
        [ast.keyword(arg='tzinfo', value=_attr(refs.ref('datetime', 'timezone'), 'utc'))],
    )


def zero_value(field: Field, refs: ImportResolver) -> ast.expr:
    """The value a field holds before its setter is called."""
    if field.optional:
        return _const(None)
    if field.repeatable:
        return ast.List(elts=[], ctx=ast.Load())
    if field.kind is ArgKind.STRING:
        return _const('')
    if field.kind is ArgKind.INT:
        return _const(0)
    if field.kind is ArgKind.TIME:
        return epoch_expr(refs)
    if field.arg_type.is_('builtins', 'bool'):
        return _const(False)
    if field.arg_type.is_('builtins', 'float'):
        return _const(0.0)
    if field.arg_type.is_('builtins', 'dict'):
        return ast.Dict(keys=[], values=[])
    return _const(None)


def check_required(field: Field, refs: ImportResolver) -> list[ast.stmt]:
    if not field.rules.required:
        return []

    local = field.local
    if field.kind is ArgKind.STRING:
        test = ast.Compare(
            left=_call(_name('len'), [_name(local)]), ops=[ast.Eq()], comparators=[_const(0)]
        )
        message = f'{field.key} is required, empty string given'
    elif field.kind is ArgKind.INT:
        test = ast.Compare(left=_name(local), ops=[ast.Eq()], comparators=[_const(0)])
        message = f'{field.key} is required, 0 given'
    else:
        return []

    if field.rules.default is not None:
        body = [_assign(_name(local), _const(field.rules.default))]
    else:
        body = [_parameter_error(refs, _const(message), field)]
    return [ast.If(test=test, body=body, orelse=[])]


def check_valid_values(field: Field, target: str, refs: ImportResolver) -> list[ast.stmt]:
    if not field.rules.valid_values:
        return []

    local = field.local
    choices = _tuple(literal_expr(v, refs) for v in field.rules.valid_values)
    message = _fstring(f'{field.key} value ', _name(local), ' is invalid')
    return [
        ast.If(
            test=ast.Compare(left=_name(local), ops=[ast.In()], comparators=[choices]),
            body=[_subscript_assign(target, field.key, _name(local))],
            orelse=[_parameter_error(refs, message, field, _name(local))],
        )
    ]


def encode(field: Field, value: ast.expr, refs: ImportResolver) -> ast.expr:
    """Apply the time encoding of a field to ``value``."""
    encoding = field.rules.time_encoding
    if field.kind is not ArgKind.TIME or not encoding.is_set:
        return value

    if encoding.formatter is not None:
        return _call(_name(refs.ref(RUNTIME_MODULE, encoding.formatter)), [value])
    if encoding.mode is TimeEncodingMode.NAMED_FORMAT:
        return _call(_attr(value, 'strftime'), [_const(encoding.layout)])

    timestamp: ast.expr = _call(_attr(value, 'timestamp'))
    if encoding.mode is TimeEncodingMode.MILLISECONDS:
        timestamp = ast.BinOp(left=timestamp, op=ast.Mult(), right=_const(1000))
    return _call(_name('str'), [_call(_name('int'), [timestamp])])


def assign(field: Field, target: str, refs: ImportResolver) -> list[ast.stmt]:
    return [_subscript_assign(target, field.key, encode(field, _name(field.local), refs))]


def assign_default(field: Field, target: str, refs: ImportResolver) -> list[ast.stmt]:
    """Statements run when an optional field was never set."""
    local = field.local
    rules = field.rules

    if rules.default_valuer is DefaultValuer.NOW:
        now = _call(
            _attr(refs.ref('datetime', 'datetime'), 'now'),
            [_attr(refs.ref('datetime', 'timezone'), 'utc')],
        )
        return [_assign(_name(local), now)] + assign(field, target, refs)
    if rules.default_valuer is DefaultValuer.UUID:
        uuid4 = _call(_name('str'), [_call(_attr(refs.module('uuid'), 'uuid4'))])
        return [_assign(_name(local), uuid4)] + assign(field, target, refs)
    if rules.default is not None:
        return [_subscript_assign(target, field.key, _const(rules.default))]
    if rules.required:
        return [_parameter_error(refs, _const(f'{field.key} is required'), field)]
    return []


def field_pipeline(field: Field, target: str, refs: ImportResolver) -> list[ast.stmt]:
    """Validate and store one field into the ``target`` dict."""
    steps = [_assign(_name(field.local), _self_attr(field.name))]
    steps += check_required(field, refs)
    steps += check_valid_values(field, target, refs)
    steps += assign(field, target, refs)

    if not field.optional:
        return steps

    return [
        ast.If(
            test=ast.Compare(
                left=_self_attr(field.name), ops=[ast.IsNot()], comparators=[_const(None)]
            ),
            body=steps,
            orelse=assign_default(field, target, refs),
        )
    ]
