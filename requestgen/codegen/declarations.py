"""Declaration loading and type resolution for request type modules.

This module provides the type-resolution service the generator is built on:

- Parsing request type modules with ``ast`` (they are never imported)
- Deriving their dotted module names from the package layout on disk
- Resolving annotation expressions to TypeRef values
- Indexing enum classes and ``Literal`` aliases into a constant catalog

Resolutions are memoized per (name, module) key so that several fields or
several concurrently generated types referencing the same symbol only pay
for it once.
"""

import ast
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from upath import UPath

from requestgen.exceptions import TypeResolutionError

logger = logging.getLogger(__name__)

__all__ = [
    'ClassInfo',
    'ConstantCatalog',
    'DeclarationSet',
    'EnumMemberRef',
    'ModuleInfo',
    'TypeRef',
]

GENERATED_MARKER = 'Code generated by requestgen'

BUILTIN_TYPES = {
    'str',
    'int',
    'float',
    'bool',
    'bytes',
    'bytearray',
    'complex',
    'type',
    'object',
    'list',
    'dict',
    'set',
    'frozenset',
    'tuple',
}

# typing aliases of builtin containers
TYPING_CONTAINERS = {
    'List': 'list',
    'Dict': 'dict',
    'Set': 'set',
    'FrozenSet': 'frozenset',
    'Tuple': 'tuple',
    'Sequence': 'list',
    'MutableSequence': 'list',
    'Mapping': 'dict',
    'MutableMapping': 'dict',
}

SEQUENCE_TYPES = {'list', 'tuple', 'set', 'frozenset'}

ENUM_BASES = {
    ('enum', 'Enum'): None,
    ('enum', 'Flag'): None,
    ('enum', 'StrEnum'): 'str',
    ('enum', 'IntEnum'): 'int',
    ('enum', 'IntFlag'): 'int',
}


@dataclass(frozen=True)
class TypeRef:
    """A resolved type.

    Attributes:
        name: The type name within its module (``str``, ``datetime``, ``Order``).
        module: The dotted module defining the type (``builtins``, ``typing``).
        args: Resolved type arguments, e.g. the item type of ``list[int]``.
        literal_values: Values of a ``Literal`` type or of a ``Literal`` alias.
    """

    name: str
    module: str | None = None
    args: tuple['TypeRef', ...] = ()
    literal_values: tuple = ()

    @property
    def key(self) -> tuple[str | None, str]:
        return self.module, self.name

    @property
    def qualname(self) -> str:
        return f'{self.module}.{self.name}' if self.module else self.name

    def is_(self, module: str, name: str) -> bool:
        return self.module == module and self.name == name

    @property
    def is_none(self) -> bool:
        return self.is_('builtins', 'None')

    @property
    def is_optional(self) -> bool:
        return self.is_('typing', 'Optional')

    @property
    def is_any(self) -> bool:
        return self.is_('typing', 'Any') or self.is_('builtins', 'object')

    @property
    def is_sequence(self) -> bool:
        return self.module == 'builtins' and self.name in SEQUENCE_TYPES

    def __str__(self) -> str:
        if self.is_('typing', 'Literal'):
            return f'Literal[{", ".join(repr(v) for v in self.literal_values)}]'
        if self.args:
            return f'{self.name}[{", ".join(str(a) for a in self.args)}]'
        return self.name


NONE_TYPE = TypeRef('None', 'builtins')
ANY_TYPE = TypeRef('Any', 'typing')


@dataclass(frozen=True)
class EnumMemberRef:
    """A reference to an enum member, e.g. ``SideType.BUY``."""

    module: str
    enum_name: str
    member: str


@dataclass
class ClassInfo:
    """A class declared in one of the scanned modules."""

    name: str
    module: str
    node: ast.ClassDef
    bases: list[TypeRef] = field(default_factory=list)
    methods: set[str] = field(default_factory=set)
    enum_members: list[tuple[str, object]] = field(default_factory=list)
    is_enum: bool = False
    enum_kind: str | None = None


@dataclass
class ModuleInfo:
    """A parsed module and its top-level symbol table.

    ``imports`` maps local names to ``(module, name)``; ``name`` is None for
    plain ``import x`` statements binding a module.
    """

    name: str
    path: str
    tree: ast.Module
    imports: dict[str, tuple[str, str | None]] = field(default_factory=dict)
    classes: dict[str, ast.ClassDef] = field(default_factory=dict)
    aliases: dict[str, ast.expr] = field(default_factory=dict)
    is_package: bool = False

    def local_alias_for(self, module: str, name: str | None) -> str | None:
        """Return the local name this module already binds ``module.name`` to."""
        for local, target in self.imports.items():
            if target == (module, name):
                return local
        return None


def module_name_for_path(path: Path) -> str:
    """Derive the dotted module name of a source file from its package layout."""
    path = path.resolve()
    parts = [] if path.stem == '__init__' else [path.stem]
    parent = path.parent
    while (parent / '__init__.py').exists():
        parts.insert(0, parent.name)
        parent = parent.parent
    return '.'.join(parts) or path.parent.name


class ConstantCatalog:
    """Named constant groups scanned from the declaration set.

    Maps a type key ``(module, name)`` to the ordered literal set of that
    type: enum member references for enum classes, values for ``Literal``
    aliases. Built once per generation pass and passed to the classifier.
    """

    def __init__(self, groups: dict[tuple[str | None, str], tuple] | None = None):
        self._groups = dict(groups or {})

    def add(self, key: tuple[str | None, str], values: tuple) -> None:
        self._groups[key] = values

    def lookup(self, type_ref: TypeRef) -> tuple | None:
        return self._groups.get(type_ref.key)

    def __contains__(self, key) -> bool:
        return key in self._groups

    def __len__(self) -> int:
        return len(self._groups)


class DeclarationSet:
    """Parsed request type modules plus a memoizing type resolver.

    Example:
        >>> declarations = DeclarationSet.load('./example/api')
        >>> module, info = declarations.find_class('PlaceOrderRequest')
        >>> declarations.resolve_annotation(ast.parse('Optional[int]', mode='eval').body, module)
        TypeRef(name='Optional', module='typing', args=(TypeRef(name='int', ...),))
    """

    def __init__(self, modules: list[ModuleInfo] | None = None):
        self._modules: dict[str, ModuleInfo] = {}
        self._symbol_cache: dict[tuple[str, str], TypeRef | ast.expr] = {}
        self._class_cache: dict[tuple[str | None, str], ClassInfo | None] = {}
        self._lock = threading.RLock()
        for module in modules or []:
            self.add_module(module)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, source: str | Path | UPath, module_name: str | None = None) -> 'DeclarationSet':
        """Parse a source file, or every module of a package directory.

        Files carrying the generated-code marker are skipped.

        Raises:
            TypeResolutionError: If the source does not exist or cannot be parsed.
        """
        path = Path(str(source))
        if not path.exists():
            raise TypeResolutionError(str(source), reason='source not found')

        if path.is_dir():
            files = sorted(p for p in path.glob('*.py'))
            if module_name:
                logger.warning('module name override ignored for directory source %s', path)
                module_name = None
        else:
            files = [path]

        declarations = cls()
        for file in files:
            text = file.read_text(encoding='utf-8')
            if any(GENERATED_MARKER in line for line in text.splitlines()[:3]):
                logger.debug('skipping generated file %s', file)
                continue
            name = module_name or module_name_for_path(file)
            declarations.add_source(text, name, str(file), is_package=file.stem == '__init__')
        return declarations

    def add_source(
        self, source: str, module_name: str, path: str = '<string>', is_package: bool = False
    ) -> ModuleInfo:
        try:
            tree = ast.parse(source, filename=path)
        except SyntaxError as e:
            raise TypeResolutionError(module_name, reason=f'cannot parse {path}: {e}')
        module = ModuleInfo(name=module_name, path=path, tree=tree, is_package=is_package)
        self._index_module(module)
        self.add_module(module)
        return module

    def add_module(self, module: ModuleInfo) -> None:
        with self._lock:
            self._modules[module.name] = module
            self._symbol_cache.clear()
            self._class_cache.clear()

    def _index_module(self, module: ModuleInfo) -> None:
        for node in module.tree.body:
            if isinstance(node, ast.ClassDef):
                module.classes[node.name] = node
            elif isinstance(node, ast.Import):
                for alias in node.names:
                    if alias.asname:
                        module.imports[alias.asname] = (alias.name, None)
                    else:
                        head = alias.name.split('.')[0]
                        module.imports[head] = (head, None)
            elif isinstance(node, ast.ImportFrom):
                source = self._absolute_module(module, node.module, node.level)
                for alias in node.names:
                    if alias.name == '*':
                        continue
                    module.imports[alias.asname or alias.name] = (source, alias.name)
            elif isinstance(node, ast.Assign):
                if len(node.targets) == 1 and isinstance(node.targets[0], ast.Name):
                    if self._looks_like_type_expr(node.value):
                        module.aliases[node.targets[0].id] = node.value
            elif isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
                annotation = node.annotation
                is_alias = (
                    isinstance(annotation, (ast.Name, ast.Attribute))
                    and _dotted(annotation).endswith('TypeAlias')
                )
                if is_alias and node.value is not None:
                    module.aliases[node.target.id] = node.value
            elif hasattr(ast, 'TypeAlias') and isinstance(node, ast.TypeAlias):
                module.aliases[node.name.id] = node.value

    @staticmethod
    def _absolute_module(module: ModuleInfo, name: str | None, level: int) -> str:
        if not level:
            return name or ''
        package = module.name.split('.')
        if not module.is_package:
            package = package[:-1]
        if level > 1:
            package = package[: len(package) - (level - 1)]
        return '.'.join(package + ([name] if name else []))

    @staticmethod
    def _looks_like_type_expr(value: ast.expr) -> bool:
        # Only subscripted typing constructs count as aliases: ``X = Literal[...]``
        return isinstance(value, ast.Subscript) or (
            isinstance(value, ast.BinOp) and isinstance(value.op, ast.BitOr)
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def modules(self) -> list[ModuleInfo]:
        return list(self._modules.values())

    def get_module(self, name: str) -> ModuleInfo | None:
        return self._modules.get(name)

    def find_class(self, type_name: str, module: str | None = None) -> tuple[ModuleInfo, ast.ClassDef]:
        """Locate the declaration of ``type_name``.

        Raises:
            TypeResolutionError: If no scanned module (or not exactly one)
                declares a class of that name.
        """
        if module is not None:
            info = self._modules.get(module)
            if info is None:
                raise TypeResolutionError(type_name, module, 'module not loaded')
            candidates = [info] if type_name in info.classes else []
        else:
            candidates = [m for m in self._modules.values() if type_name in m.classes]

        if not candidates:
            if any(type_name in m.aliases for m in self._modules.values()):
                raise TypeResolutionError(type_name, module, 'not a class declaration')
            raise TypeResolutionError(type_name, module, 'no such class')
        if len(candidates) > 1:
            names = ', '.join(m.name for m in candidates)
            raise TypeResolutionError(type_name, module, f'declared in several modules: {names}')

        info = candidates[0]
        return info, info.classes[type_name]

    def lookup(self, name: str, module: str) -> tuple[str, str | None] | None:
        """Resolve a local name to its defining ``(module, name)`` without raising."""
        info = self._modules.get(module)
        if info is None:
            return None
        if name in info.classes or name in info.aliases:
            return module, name
        if name in info.imports:
            target_module, target_name = info.imports[name]
            if target_name is not None and target_module in self._modules:
                target_info = self._modules[target_module]
                # follow re-exports through scanned modules
                if target_name in target_info.imports and target_module != module:
                    return self.lookup(target_name, target_module)
            return target_module, target_name
        if name in BUILTIN_TYPES:
            return 'builtins', name
        return None

    def lookup_dotted(self, dotted: str, module: str) -> tuple[str, str | None] | None:
        head, _, rest = dotted.partition('.')
        target = self.lookup(head, module)
        if target is None or not rest:
            return target
        target_module, target_name = target
        if target_name is not None:
            # attribute of a class, e.g. Outer.Inner
            return target_module, f'{target_name}.{rest}'
        full = f'{target_module}.{rest}'
        mod, _, name = full.rpartition('.')
        return mod, name

    def resolve_symbol(self, dotted: str, module: str) -> TypeRef:
        """Resolve a (possibly dotted) type name used inside ``module``.

        Raises:
            TypeResolutionError: If the name is not defined, imported or builtin.
        """
        key = (dotted, module)
        with self._lock:
            if key in self._symbol_cache:
                return self._symbol_cache[key]

            target = self.lookup_dotted(dotted, module)
            if target is None or target[1] is None:
                raise TypeResolutionError(dotted, module)

            target_module, target_name = target
            if target_module == 'typing_extensions':
                target_module = 'typing'
            if target_module == 'typing' and target_name in TYPING_CONTAINERS:
                target_module, target_name = 'builtins', TYPING_CONTAINERS[target_name]
            elif target_module in ('collections.abc',) and target_name in TYPING_CONTAINERS:
                target_module, target_name = 'builtins', TYPING_CONTAINERS[target_name]

            resolved = TypeRef(target_name, target_module)
            target_info = self._modules.get(target_module)
            if target_info is not None and target_name in target_info.aliases:
                alias_value = target_info.aliases[target_name]
                aliased = self.resolve_annotation(alias_value, target_module)
                if aliased.is_('typing', 'Literal'):
                    # keep the alias identity so the constant catalog can find it
                    resolved = TypeRef(target_name, target_module, literal_values=aliased.literal_values)
                else:
                    resolved = aliased

            self._symbol_cache[key] = resolved
            return resolved

    def resolve_annotation(self, expr: ast.expr, module: str) -> TypeRef:
        """Resolve an annotation expression to a TypeRef.

        ``Optional[X]``, ``X | None`` and ``Union[X, None]`` all resolve to
        ``TypeRef('Optional', 'typing', (X,))``; ``Annotated`` metadata is dropped.
        """
        if isinstance(expr, ast.Constant):
            if expr.value is None:
                return NONE_TYPE
            if isinstance(expr.value, str):
                try:
                    parsed = ast.parse(expr.value, mode='eval').body
                except SyntaxError:
                    raise TypeResolutionError(expr.value, module, 'invalid forward reference')
                return self.resolve_annotation(parsed, module)
            raise TypeResolutionError(repr(expr.value), module, 'not a type')

        if isinstance(expr, (ast.Name, ast.Attribute)):
            return self.resolve_symbol(_dotted(expr), module)

        if isinstance(expr, ast.BinOp) and isinstance(expr.op, ast.BitOr):
            members = [self.resolve_annotation(e, module) for e in _flatten_union(expr)]
            return _make_union(members)

        if isinstance(expr, ast.Subscript):
            origin = self.resolve_annotation(expr.value, module)
            elts = expr.slice.elts if isinstance(expr.slice, ast.Tuple) else [expr.slice]

            if origin.is_('typing', 'Annotated'):
                return self.resolve_annotation(elts[0], module)
            if origin.is_('typing', 'Literal'):
                values = []
                for elt in elts:
                    if not isinstance(elt, ast.Constant):
                        raise TypeResolutionError(ast.unparse(expr), module, 'Literal values must be constants')
                    values.append(elt.value)
                return TypeRef('Literal', 'typing', literal_values=tuple(values))

            args = tuple(
                ANY_TYPE if isinstance(e, ast.Constant) and e.value is Ellipsis
                else self.resolve_annotation(e, module)
                for e in elts
            )
            if origin.is_optional:
                return _make_union([args[0], NONE_TYPE])
            if origin.is_('typing', 'Union'):
                return _make_union(list(args))
            return TypeRef(origin.name, origin.module, args)

        raise TypeResolutionError(ast.unparse(expr), module, 'unsupported annotation')

    def split_selector(self, selector: str) -> tuple[str | None, str]:
        """Split a type selector into ``(module, name)``.

        Accepted forms are ``Name`` and ``.Name`` (searched in every scanned
        module), ``pkg.module:Name`` and ``pkg.module.Name``.
        """
        selector = selector.strip()
        if ':' in selector:
            module, _, name = selector.partition(':')
            return module or None, name
        selector = selector.lstrip('.')
        if '.' in selector:
            module, _, name = selector.rpartition('.')
            return module, name
        return None, selector

    def resolve_type_string(self, text: str, module: str) -> TypeRef:
        """Resolve a type given on the command line or in a config file.

        ``Any``, builtin names and names visible in ``module`` resolve like
        annotations there (``.Order`` and ``list[Order]`` included); fully
        qualified ``pkg.module:Name`` or ``pkg.module.Name`` references are
        taken as given.
        """
        text = text.strip()
        if text in ('Any', 'typing.Any'):
            return ANY_TYPE
        if ':' in text:
            target_module, _, name = text.partition(':')
            if target_module in self._modules:
                return self.resolve_symbol(name, target_module)
            return TypeRef(name, target_module)

        text = text.lstrip('.')
        try:
            expr = ast.parse(text, mode='eval').body
        except SyntaxError:
            raise TypeResolutionError(text, module, 'invalid type expression')

        try:
            return self.resolve_annotation(expr, module)
        except TypeResolutionError:
            if not isinstance(expr, ast.Attribute):
                raise
        target_module, _, name = text.rpartition('.')
        if target_module in self._modules:
            return self.resolve_symbol(name, target_module)
        return TypeRef(name, target_module)

    def get_class(self, type_ref: TypeRef) -> ClassInfo | None:
        """Return details of a class declared in the scanned modules, or None."""
        key = type_ref.key
        with self._lock:
            if key in self._class_cache:
                return self._class_cache[key]

            module = self._modules.get(type_ref.module or '')
            node = module.classes.get(type_ref.name) if module else None
            info = None
            if node is not None:
                info = self._build_class_info(module, node)
            self._class_cache[key] = info
            return info

    def _build_class_info(self, module: ModuleInfo, node: ast.ClassDef) -> ClassInfo:
        info = ClassInfo(name=node.name, module=module.name, node=node)
        # placeholder breaks inheritance cycles
        self._class_cache[(module.name, node.name)] = info

        for base in node.bases:
            try:
                info.bases.append(self.resolve_annotation(base, module.name))
            except TypeResolutionError:
                logger.debug('unresolved base %s of %s', ast.unparse(base), node.name)

        for base in info.bases:
            if base.key in ENUM_BASES:
                info.is_enum = True
                info.enum_kind = info.enum_kind or ENUM_BASES[base.key]
            elif base.is_('builtins', 'str'):
                info.enum_kind = 'str'
            elif base.is_('builtins', 'int'):
                info.enum_kind = 'int'
            else:
                base_info = self.get_class(base)
                if base_info is not None:
                    info.methods |= base_info.methods
                    if base_info.is_enum:
                        info.is_enum = True
                        info.enum_kind = info.enum_kind or base_info.enum_kind

        for stmt in node.body:
            if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                info.methods.add(stmt.name)
            elif info.is_enum and isinstance(stmt, ast.Assign):
                if len(stmt.targets) == 1 and isinstance(stmt.targets[0], ast.Name):
                    member = stmt.targets[0].id
                    if member.startswith('_'):
                        continue
                    value = stmt.value.value if isinstance(stmt.value, ast.Constant) else None
                    info.enum_members.append((member, value))

        if not info.is_enum:
            info.enum_kind = None
        return info

    # ------------------------------------------------------------------
    # Constant catalog
    # ------------------------------------------------------------------

    def build_constant_catalog(self) -> ConstantCatalog:
        """Scan every module once for enum classes and ``Literal`` aliases."""
        catalog = ConstantCatalog()
        for module in self._modules.values():
            for name in module.classes:
                info = self.get_class(TypeRef(name, module.name))
                if info is not None and info.is_enum and info.enum_members:
                    catalog.add(
                        (module.name, name),
                        tuple(EnumMemberRef(module.name, name, m) for m, _ in info.enum_members),
                    )
            for name in module.aliases:
                try:
                    resolved = self.resolve_symbol(name, module.name)
                except TypeResolutionError as e:
                    logger.debug('skipping alias %s.%s: %s', module.name, name, e)
                    continue
                if resolved.literal_values and resolved.name == name:
                    catalog.add((module.name, name), resolved.literal_values)
        logger.debug('constant catalog holds %d groups', len(catalog))
        return catalog


def _dotted(expr: ast.expr) -> str:
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        return f'{_dotted(expr.value)}.{expr.attr}'
    raise TypeResolutionError(ast.unparse(expr), reason='not a dotted name')


def _flatten_union(expr: ast.expr) -> list[ast.expr]:
    if isinstance(expr, ast.BinOp) and isinstance(expr.op, ast.BitOr):
        return _flatten_union(expr.left) + _flatten_union(expr.right)
    return [expr]


def _make_union(members: list[TypeRef]) -> TypeRef:
    flat: list[TypeRef] = []
    for member in members:
        if member.is_optional:
            flat.extend([*member.args, NONE_TYPE])
        elif member.is_('typing', 'Union'):
            flat.extend(member.args)
        else:
            flat.append(member)

    optional = any(m.is_none for m in flat)
    rest = []
    for member in flat:
        if not member.is_none and member not in rest:
            rest.append(member)

    if not rest:
        return NONE_TYPE
    inner = rest[0] if len(rest) == 1 else TypeRef('Union', 'typing', tuple(rest))
    return TypeRef('Optional', 'typing', (inner,)) if optional else inner
