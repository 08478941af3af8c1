"""Root query and mutation definitions."""
from __future__ import annotations

import inspect
import keyword
from typing import Any, Callable, Dict, Optional

import strawberry
from strawberry.types import Info as StrawberryInfo

from ..errors import SchemaBuildError
from .definitions import NonNullTypeDefinition, TypeDefinition, Types, Wrapped

__all__ = ['QueryDefinition', 'MutationDefinition']

# resolver(root, info, args) -> value or awaitable
OperationResolver = Callable[[Any, Any, Dict[str, Any]], Any]


class _OperationDefinition:
    def __init__(
        self,
        name: str,
        type_def: TypeDefinition,
        args: Optional[Dict[str, Dict[str, Any]]],
        resolver: OperationResolver,
        description: Optional[str] = None,
    ):
        self.name = name
        self.type_def = type_def
        self.args: Dict[str, Dict[str, Any]] = dict(args or {})
        self.resolver = resolver
        self.description = description

    def get_type(self) -> TypeDefinition:
        return self.type_def

    def get_args(self) -> Dict[str, Dict[str, Any]]:
        return dict(self.args)

    def get_resolver(self) -> OperationResolver:
        return self.resolver

    def referenced_types(self):
        yield self.type_def
        for cfg in self.args.values():
            yield cfg['type']

    def _make_resolver(self, types: Types, wrapped: Wrapped) -> Callable[..., Any]:
        """Generate ``async def (self, info, *, <args>)`` with annotations Strawberry can introspect."""
        return_ann = self.type_def.ref(types, wrapped)
        anns: Dict[str, Any] = {'info': StrawberryInfo}
        params = []
        for arg_name, cfg in self.args.items():
            if not arg_name.isidentifier() or keyword.iskeyword(arg_name) or arg_name in ('self', 'info'):
                raise SchemaBuildError(f"Argument {arg_name!r} of {self.name} is not a valid python identifier")
            arg_type: TypeDefinition = cfg['type']
            anns[arg_name] = arg_type.ref(types, wrapped)
            if isinstance(arg_type, NonNullTypeDefinition):
                params.append(arg_name)
            else:
                params.append(f"{arg_name}=None")
        anns['return'] = return_ann

        impl = self.resolver

        async def _impl(root: Any, info: Any, args: Dict[str, Any]) -> Any:
            res = impl(root, info, args)
            if inspect.isawaitable(res):
                res = await res
            return res

        fn_name = f"_resolve_{self.name}"
        signature = 'self, info'
        if params:
            signature += ', *, ' + ', '.join(params)
        src = f"async def {fn_name}({signature}):\n"
        src += "    _args = {}\n"
        for arg_name in self.args:
            src += f"    _args['{arg_name}'] = {arg_name}\n"
        src += "    return await _impl(self, info, _args)\n"
        env: Dict[str, Any] = {'_impl': _impl}
        exec(src, env)
        fn = env[fn_name]
        fn.__module__ = __name__
        fn.__annotations__ = anns
        return fn

    def build_field(self, types: Types, wrapped: Wrapped) -> Any:
        raise NotImplementedError


class QueryDefinition(_OperationDefinition):
    def build_field(self, types: Types, wrapped: Wrapped) -> Any:
        return strawberry.field(resolver=self._make_resolver(types, wrapped), description=self.description)


class MutationDefinition(_OperationDefinition):
    def build_field(self, types: Types, wrapped: Wrapped) -> Any:
        return strawberry.mutation(resolver=self._make_resolver(types, wrapped), description=self.description)
