"""AST utilities for code generation.

This module provides small helper functions for building Python AST nodes.
The templates in ``requestgen.codegen.templates`` are assembled from them.
"""

import ast
import keyword
from collections.abc import Iterable

PYTHON_KEYWORDS = set(keyword.kwlist)

__all__ = [
    '_name',
    '_attr',
    '_self_attr',
    '_subscript',
    '_union_expr',
    '_const',
    '_tuple',
    '_argument',
    '_assign',
    '_subscript_assign',
    '_call',
    '_method',
    '_func',
    '_fstring',
    '_raise',
    '_return',
    '_all',
]


def _name(name: str) -> ast.Name:
    return ast.Name(id=name, ctx=ast.Load())


def _attr(value: str | ast.expr, attr: str) -> ast.Attribute:
    return ast.Attribute(
        value=_name(value) if isinstance(value, str) else value,
        attr=attr,
        ctx=ast.Load(),
    )


def _self_attr(attr: str) -> ast.Attribute:
    return _attr('self', attr)


def _subscript(generic: str | ast.expr, inner: ast.expr) -> ast.Subscript:
    value = _name(generic) if isinstance(generic, str) else generic
    return ast.Subscript(value=value, slice=inner, ctx=ast.Load())


def _union_expr(types: list[ast.expr]) -> ast.expr:
    # A | B | C (using pipe operator instead of Union[A, B, C])
    if not types:
        raise ValueError('_union_expr requires at least one type')
    if len(types) == 1:
        return types[0]
    result = types[0]
    for t in types[1:]:
        result = ast.BinOp(left=result, op=ast.BitOr(), right=t)
    return result


def _const(value) -> ast.Constant:
    return ast.Constant(value=value)


def _tuple(elts: Iterable[ast.expr]) -> ast.Tuple:
    return ast.Tuple(elts=list(elts), ctx=ast.Load())


def _argument(name: str, value: ast.expr | None = None) -> ast.arg:
    return ast.arg(
        arg=name,
        annotation=value,
    )


def _assign(target: ast.expr, value: ast.expr) -> ast.Assign:
    # Ensure target has Store context
    if isinstance(target, ast.Name):
        target = ast.Name(id=target.id, ctx=ast.Store())
    elif isinstance(target, (ast.Attribute, ast.Subscript)):
        target.ctx = ast.Store()
    return ast.Assign(
        targets=[target],
        value=value,
    )


def _subscript_assign(container: str, key: str, value: ast.expr) -> ast.Assign:
    """``container['key'] = value``"""
    return _assign(
        ast.Subscript(value=_name(container), slice=_const(key), ctx=ast.Store()),
        value,
    )


def _call(
    func: ast.expr,
    args: list[ast.expr] | None = None,
    keywords: list[ast.keyword] | None = None,
) -> ast.Call:
    return ast.Call(
        func=func,
        args=args or [],
        keywords=keywords or [],
    )


def _func(
    name: str,
    args: list[ast.arg],
    body: list[ast.stmt],
    returns: ast.expr | None = None,
    defaults: list[ast.expr] | None = None,
) -> ast.FunctionDef:
    return ast.FunctionDef(
        name=name,
        args=ast.arguments(
            posonlyargs=[],
            args=args,
            kwonlyargs=[],
            kw_defaults=[],
            defaults=defaults or [],
        ),
        body=body or [ast.Pass()],
        decorator_list=[],
        returns=returns,
    )


def _method(
    name: str,
    args: list[ast.arg],
    body: list[ast.stmt],
    returns: ast.expr | None = None,
    docstring: str | None = None,
    defaults: list[ast.expr] | None = None,
) -> ast.FunctionDef:
    """Build a method; ``self`` is prepended to ``args``."""
    if docstring:
        body = [ast.Expr(value=_const(docstring))] + body
    return _func(name, [_argument('self')] + args, body, returns, defaults)


def _fstring(*parts: str | ast.expr) -> ast.JoinedStr:
    values = []
    for part in parts:
        if isinstance(part, str):
            values.append(_const(part))
        else:
            values.append(ast.FormattedValue(value=part, conversion=-1))
    return ast.JoinedStr(values=values)


def _raise(exc: str | ast.expr, *args: ast.expr, **keywords: ast.expr) -> ast.Raise:
    func = _name(exc) if isinstance(exc, str) else exc
    return ast.Raise(
        exc=_call(
            func,
            args=list(args),
            keywords=[ast.keyword(arg=k, value=v) for k, v in keywords.items()],
        ),
        cause=None,
    )


def _return(value: ast.expr | None = None) -> ast.Return:
    return ast.Return(value=value)


def _all(names: Iterable[str]) -> ast.Assign:
    return _assign(
        target=_name('__all__'),
        value=ast.List(elts=[_const(name) for name in names], ctx=ast.Load()),
    )
