import ast
import logging
from dataclasses import dataclass, field

from requestgen.codegen.declarations import ClassInfo, DeclarationSet, TypeRef
from requestgen.codegen.fields import ParamSpec, RawField
from requestgen.exceptions import ConfigError, TypeResolutionError

logger = logging.getLogger(__name__)

__all__ = ['PARAM_MARKERS', 'TypeDeclaration', 'TypeIntrospector', 'is_client_type']

PARAM_MARKERS = {('requestgen', 'Param'), ('requestgen.params', 'Param')}

PARAM_KEYWORDS = ('spec', 'default', 'default_valuer', 'valid_values', 'time_format')


@dataclass
class TypeDeclaration:
    """A request type declaration as found in its module."""

    name: str
    module: str
    info: ClassInfo
    fields: list[RawField] = field(default_factory=list)

    @property
    def methods(self) -> set[str]:
        return self.info.methods


class TypeIntrospector:
    """Enumerates the declared fields of a request type.

    Fields are reported in declaration order with their resolved types and
    the ``Param`` marker attached to them, if any. Class body statements
    binding several names at once are skipped.
    """

    def __init__(self, declarations: DeclarationSet):
        self.declarations = declarations

    def introspect(self, type_name: str, module: str | None = None) -> TypeDeclaration:
        module_info, node = self.declarations.find_class(type_name, module)
        info = self.declarations.get_class(TypeRef(type_name, module_info.name))
        declaration = TypeDeclaration(name=type_name, module=module_info.name, info=info)

        for stmt in node.body:
            if isinstance(stmt, ast.AnnAssign):
                if not isinstance(stmt.target, ast.Name):
                    continue
                raw = self._raw_field(declaration, stmt)
                if raw is not None:
                    declaration.fields.append(raw)
            elif isinstance(stmt, ast.Assign):
                if len(stmt.targets) > 1 or not isinstance(stmt.targets[0], ast.Name):
                    logger.debug(
                        '%s: skipping multi-name declaration on line %d',
                        type_name,
                        stmt.lineno,
                    )

        logger.debug('%s: found %d fields', type_name, len(declaration.fields))
        return declaration

    def _raw_field(self, declaration: TypeDeclaration, stmt: ast.AnnAssign) -> RawField | None:
        name = stmt.target.id
        module = declaration.module
        annotation = stmt.annotation

        metadata: list[ast.expr] = []
        if isinstance(annotation, ast.Subscript) and self._resolves_to(
            annotation.value, module, {('typing', 'Annotated'), ('typing_extensions', 'Annotated')}
        ):
            elts = annotation.slice.elts if isinstance(annotation.slice, ast.Tuple) else [annotation.slice]
            annotation, metadata = elts[0], elts[1:]

        if isinstance(annotation, ast.Subscript) and self._resolves_to(
            annotation.value, module, {('typing', 'ClassVar'), ('typing_extensions', 'ClassVar')}
        ):
            return None

        markers = [m for m in metadata if self._is_param_call(m, module)]
        if stmt.value is not None and self._is_param_call(stmt.value, module):
            markers.append(stmt.value)
        if len(markers) > 1:
            raise ConfigError('more than one Param marker', name, declaration.name)

        try:
            type_ref = self.declarations.resolve_annotation(annotation, module)
        except TypeResolutionError as e:
            if markers:
                raise
            # unmarked fields only matter for client detection
            logger.debug('%s: skipping unmarked field %s: %s', declaration.name, name, e)
            return None
        param = self._param_spec(markers[0], name, declaration.name) if markers else None

        return RawField(
            name=name,
            annotation=ast.unparse(annotation),
            type=type_ref,
            param=param,
            lineno=stmt.lineno,
        )

    def _resolves_to(self, expr: ast.expr, module: str, targets: set[tuple[str, str]]) -> bool:
        if isinstance(expr, ast.Name):
            dotted = expr.id
        elif isinstance(expr, ast.Attribute):
            dotted = ast.unparse(expr)
        else:
            return False
        return self.declarations.lookup_dotted(dotted, module) in targets

    def _is_param_call(self, expr: ast.expr, module: str) -> bool:
        return isinstance(expr, ast.Call) and self._resolves_to(expr.func, module, PARAM_MARKERS)

    @staticmethod
    def _param_spec(call: ast.Call, field_name: str, type_name: str) -> ParamSpec:
        if len(call.args) > 1:
            raise ConfigError('Param takes a single positional argument', field_name, type_name)

        values = {}
        items = [('spec', arg) for arg in call.args] + [(kw.arg, kw.value) for kw in call.keywords]
        for key, value in items:
            if key not in PARAM_KEYWORDS:
                raise ConfigError(f'unknown Param argument {key!r}', field_name, type_name)
            if key in values:
                raise ConfigError(f'Param argument {key!r} given twice', field_name, type_name)
            try:
                values[key] = ast.literal_eval(value)
            except (TypeError, ValueError):
                raise ConfigError(
                    f'Param argument {key!r} must be a literal, got {ast.unparse(value)}',
                    field_name,
                    type_name,
                )

        spec = values.get('spec', '')
        if not isinstance(spec, str):
            raise ConfigError('Param spec must be a string', field_name, type_name)
        for key in ('default_valuer', 'valid_values', 'time_format'):
            if values.get(key) is not None and not isinstance(values[key], str):
                raise ConfigError(f'Param argument {key!r} must be a string', field_name, type_name)
        default = values.get('default')
        if default is not None and not isinstance(default, (str, int)):
            raise ConfigError(
                f"Param argument 'default' must be a string or an int, got {default!r}",
                field_name,
                type_name,
            )

        return ParamSpec(**values)


def is_client_type(type_ref: TypeRef) -> str | None:
    """Return the capability name of a client field type, if it is one."""
    if type_ref.is_optional:
        type_ref = type_ref.args[0]
    if type_ref.module in ('requestgen', 'requestgen.client') and type_ref.name in (
        'APIClient',
        'AuthenticatedAPIClient',
    ):
        return type_ref.name
    return None
