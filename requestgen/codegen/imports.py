"""Import resolution for generated modules.

This module tracks every external name referenced by emitted code and turns
the references into a minimal, deterministic and collision free list of
import statements.
"""

import ast
import logging
import sys
from collections.abc import Iterable

from requestgen.codegen.declarations import ModuleInfo
from requestgen.codegen.utils import sanitize_identifier

logger = logging.getLogger(__name__)

__all__ = ['ImportResolver', 'RenameNames']

Target = tuple[str, str | None]


class RenameNames(ast.NodeTransformer):
    """Renames loaded and stored ``Name`` nodes according to a mapping."""

    def __init__(self, renames: dict[str, str]):
        self.renames = renames

    def visit_Name(self, node: ast.Name) -> ast.Name:
        if node.id in self.renames:
            return ast.copy_location(ast.Name(id=self.renames[node.id], ctx=node.ctx), node)
        return node


class ImportResolver:
    """Collects references to external names and binds them to local names.

    References are requested with ``ref(module, name)`` (for ``from module
    import name``) or ``module(module)`` (for ``import module``) and the local
    name to use in emitted code is returned immediately:

    - the alias under which the declaring module already imports the target
      is preferred, e.g. ``from datetime import datetime as dt`` reuses ``dt``;
    - otherwise the external name itself is used;
    - names colliding with ``reserved`` names or with a different, already
      bound target are re-qualified as ``_<module>_<name>``.

    Example:
        >>> resolver = ImportResolver(reserved={'Order'})
        >>> resolver.ref('example.api', 'Order')
        '_example_api_Order'
        >>> resolver.ref('pydantic', 'TypeAdapter')
        'TypeAdapter'
        >>> ast.unparse(ast.Module(body=resolver.to_ast(), type_ignores=[]))
        'from example.api import Order as _example_api_Order\nfrom pydantic import TypeAdapter'
    """

    def __init__(
        self,
        reserved: Iterable[str] = (),
        preferred: ModuleInfo | None = None,
        local_roots: Iterable[str] = (),
    ):
        self.reserved = set(reserved)
        self.preferred = preferred
        self.local_roots = set(local_roots)
        self._bindings: dict[str, Target] = {}
        self._locals: dict[Target, str] = {}

    @property
    def bindings(self) -> dict[str, Target]:
        return dict(self._bindings)

    def ref(self, module: str, name: str) -> str:
        """Return the local name of ``module.name``, importing it if needed."""
        if module == 'builtins':
            return name
        return self._bind((module, name), name)

    def module(self, module: str) -> str:
        """Return the local name of a plain ``import module``."""
        return self._bind((module, None), module.split('.')[-1] if '.' in module else module)

    def _bind(self, target: Target, default: str) -> str:
        if target in self._locals:
            return self._locals[target]

        local = self._preferred_alias(target)
        if local is None:
            local = default
            if self.preferred is not None:
                logger.info(
                    'no existing import of %s in %s, importing it as %s',
                    _describe(target),
                    self.preferred.name,
                    local,
                )

        if not self._available(local, target):
            local = self._requalify(target)

        self._bindings[local] = target
        self._locals[target] = local
        return local

    def _preferred_alias(self, target: Target) -> str | None:
        if self.preferred is None:
            return None
        module, name = target
        if name is not None and module == self.preferred.name:
            # the declaring module itself defines the name
            return name
        return self.preferred.local_alias_for(module, name)

    def _available(self, local: str, target: Target) -> bool:
        if local in self.reserved:
            return False
        bound = self._bindings.get(local)
        return bound is None or bound == target

    def _requalify(self, target: Target) -> str:
        module, name = target
        base = '_' + sanitize_identifier(module)
        if name is not None:
            base = f'{base}_{name}'
        local, counter = base, 1
        while not self._available(local, target):
            counter += 1
            local = f'{base}_{counter}'
        logger.debug('re-qualified %s as %s', _describe(target), local)
        return local

    def merge(self, other: 'ImportResolver') -> dict[str, str]:
        """Merge the bindings of another unit into this resolver.

        Returns the renames the other unit's AST must undergo so that every
        local name maps to exactly one target; apply them with RenameNames.
        """
        renames: dict[str, str] = {}
        self.reserved |= other.reserved
        for local, target in other._bindings.items():
            existing = self._locals.get(target)
            if existing is not None and existing not in other.reserved:
                if existing != local:
                    renames[local] = existing
                continue
            new_local = local if self._available(local, target) else self._requalify(target)
            if new_local != local:
                renames[local] = new_local
            self._bindings[new_local] = target
            # a target may end up bound under several locals
            self._locals.setdefault(target, new_local)
        return renames

    def _category(self, module: str) -> int:
        root = module.split('.')[0]
        if root in sys.stdlib_module_names:
            return 0
        if root in self.local_roots:
            return 2
        return 1

    def to_ast(self) -> list[ast.stmt]:
        """Build the import statements, ordered stdlib, third party, local."""
        plain: dict[str, list[str]] = {}
        from_imports: dict[str, list[tuple[str, str]]] = {}
        for local, (module, name) in self._bindings.items():
            if name is None:
                plain.setdefault(module, []).append(local)
            else:
                from_imports.setdefault(module, []).append((name, local))

        statements = []
        for module, locals_ in plain.items():
            for local in sorted(locals_):
                asname = None if local == module else local
                stmt = ast.Import(names=[ast.alias(name=module, asname=asname)])
                statements.append(((self._category(module), module, 0, local), stmt))
        for module, names in from_imports.items():
            aliases = [
                ast.alias(name=name, asname=None if name == local else local)
                for name, local in sorted(names)
            ]
            stmt = ast.ImportFrom(module=module, names=aliases, level=0)
            statements.append(((self._category(module), module, 1, ''), stmt))

        return [stmt for _, stmt in sorted(statements, key=lambda item: item[0])]


def _describe(target: Target) -> str:
    module, name = target
    return module if name is None else f'{module}.{name}'
