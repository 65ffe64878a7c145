"""Synthesis of wire -> domain (response body) conversion functions."""

from __future__ import annotations

from .body import BodyType
from .convert import convert_expr, domain_annotation, domain_class, nullable, wire_annotation
from .design import ErrorResponse, HttpMapping, Method, Response
from .errors import UnknownViewError, UnresolvedTypeError
from .naming import identifier, snake
from .registry import ConversionKey, DedupRegistry
from .source import FUNCTION, ModuleScope, Section, docstring, literal
from .typegraph import AttributeType, NamedRef, TypeGraph, UserType, View, leaf_object

UNMARSHAL = "unmarshal"

# Locals of the generated result and error functions.
_LOCALS = ("body", "v")


class UnmarshalSynthesizer:
    def __init__(self, graph: TypeGraph, registry: DedupRegistry, scope: ModuleScope):
        self.graph = graph
        self.registry = registry
        self.scope = scope

    def result_function(self, method: Method, response: Response, body: BodyType | None) -> Section | None:
        if response.type is None:
            return None
        name = f"new_{snake(method.name)}_result_{snake(response.status)}"
        doc = (
            f'{{name}} builds a "{method.service}" service "{method.name}" endpoint result '
            f'from a HTTP "{response.status}" response.'
        )
        ctx = f"{method.service}.{method.name}: result {response.status}"
        return self._top(response.type, response.mapping, body, response.view, name=name, doc=doc, ctx=ctx)

    def error_function(self, method: Method, error: ErrorResponse, body: BodyType | None) -> Section | None:
        name = f"new_{snake(method.name)}_{snake(error.name)}"
        doc = f'{{name}} builds a "{method.service}" service "{method.name}" endpoint "{error.name}" error.'
        ctx = f"{method.service}.{method.name}: error {error.name}"
        return self._top(error.type, error.mapping, body, None, name=name, doc=doc, ctx=ctx)

    def _top(
        self,
        t: AttributeType,
        mapping: HttpMapping,
        body: BodyType | None,
        view_name: str | None,
        *,
        name: str,
        doc: str,
        ctx: str,
    ) -> Section | None:
        ut = self.graph.object_type(t)
        # Collections of a multi-view type are projected element by element.
        leaf = ut if ut is not None else leaf_object(self.graph, t)
        view: View | None = None
        projected = leaf is not None and bool(leaf.views)
        if leaf is not None and leaf.views:
            view = self._resolve_view(leaf, view_name or "default", ctx)
        elif view_name is not None:
            raise UnknownViewError(f"{ctx}: view {view_name!r} requested on a type without views")

        out = mapping.out_of_body()
        if ut is None and out:
            raise UnresolvedTypeError(f"{ctx}: out-of-body attributes on non-object type")
        if body is None and not out:
            return None

        name = self.scope.claim(name)
        params: list[tuple[str, str]] = []
        parts: list[str] = []
        if body is not None:
            parts.append(f"body: {wire_annotation(body.ref, registry=self.registry, scope=self.scope)}")
        taken = set(_LOCALS)
        for attr_name, _loc in out:
            assert ut is not None
            dattr = ut.attribute(attr_name)
            if dattr is None:
                raise UnresolvedTypeError(f"{ctx}: mapping binds unknown attribute {ut.name}.{attr_name}")
            pname = self.scope.local(identifier(attr_name), taken)
            taken.add(pname)
            ann = domain_annotation(dattr.type, graph=self.graph, scope=self.scope, projected=projected)
            if projected or not (dattr.required or dattr.has_default):
                ann = nullable(ann)
            parts.append(f"{pname}: {ann}")
            params.append((attr_name, pname))

        rtype = domain_annotation(t, graph=self.graph, scope=self.scope, projected=projected)
        lines = [f"def {name}({', '.join(parts)}) -> {rtype}:"]
        lines.extend(docstring(doc.format(name=name)))
        if ut is None:
            assert body is not None
            elem_view = None if view is None else view.name
            lines.append(f"    v = {self._expr('body', body.ref, t, projected=projected, view=elem_view, ctx=ctx)}")
        else:
            lines.extend(
                self._build(
                    ut,
                    body,
                    src="body",
                    dst="v",
                    projected=projected,
                    view=view,
                    params=params,
                    explicit=mapping.body_attribute,
                    ctx=ctx,
                )
            )
        lines.append("    return v")
        return Section(kind=FUNCTION, name=name, code="\n".join(lines))

    def helper(self, src: NamedRef, dst: NamedRef, *, projected: bool, view: str | None, ctx: str) -> str:
        """Return the name of the shared helper converting body `src` into user type `dst` under `view`."""
        target = f"{self.scope.service}:views:{dst.type_id}" if projected else f"{self.scope.service}:{dst.type_id}"
        key = ConversionKey(source=src.type_id, target=target, view=view)
        slot = self.registry.lookup(UNMARSHAL, key)
        if slot is not None:
            return slot.name
        ut = self.graph.get(dst.type_id)
        body = self.registry.body(src.type_id)
        if projected:
            tname = f"{self.scope.views_module}_{snake(ut.name)}_view"
        else:
            tname = f"{self.scope.module}_{snake(ut.name)}"
        fname = f"unmarshal_{snake(body.name)}_to_{tname}"
        if view is not None and view != "default":
            fname = f"{fname}_{snake(view)}"
        name = self.scope.claim(fname)
        # Reserve before recursing so self-referencing types resolve to this helper.
        slot, _ = self.registry.reserve(UNMARSHAL, key, namespace=self.scope.service, name=name)
        active = self._resolve_view(ut, view, ctx) if view is not None else None
        cls = domain_class(ut.name, scope=self.scope, projected=projected)
        lines = [f"def {name}(v: {body.name}) -> {cls}:"]
        doc = f"{name} builds a value of type {cls} from a value of type {body.name}"
        if view is not None:
            doc = f"{doc} using the {view!r} view"
        lines.extend(docstring(f"{doc}."))
        lines.extend(
            self._build(
                ut,
                body,
                src="v",
                dst="res",
                projected=projected,
                view=active,
                params=[],
                explicit=None,
                ctx=f"{ctx}<{ut.name}>",
            )
        )
        lines.append("    return res")
        self.registry.complete(slot, "\n".join(lines))
        return name

    def _resolve_view(self, ut: UserType, name: str, ctx: str) -> View:
        v = ut.view(name)
        if v is None:
            raise UnknownViewError(f"{ctx}: type {ut.name} has no view {name!r}")
        return v

    def _sub_view(self, view: View | None, attr_name: str, t: AttributeType, *, projected: bool, ctx: str) -> str | None:
        """Resolve, at synthesis time, the view to apply to a nested multi-view attribute."""
        if not projected:
            return None
        inner = leaf_object(self.graph, t)
        if inner is None or not inner.views:
            return None
        name = "default"
        if view is not None:
            entry = view.get(attr_name)
            if entry is not None and entry.view is not None:
                name = entry.view
        return self._resolve_view(inner, name, f"{ctx}.{attr_name}").name

    def _expr(
        self, src: str, src_type: AttributeType, dst_type: AttributeType, *, projected: bool, view: str | None, ctx: str
    ) -> str:
        return convert_expr(
            src,
            src_type,
            dst_type,
            helper=lambda s, d: self.helper(s, d, projected=projected, view=view, ctx=ctx),
            unwrap_src=lambda t: t,
            unwrap_dst=self.graph.unalias,
        )

    def _build(
        self,
        ut: UserType,
        body: BodyType | None,
        *,
        src: str,
        dst: str,
        projected: bool,
        view: View | None,
        params: list[tuple[str, str]],
        explicit: str | None,
        ctx: str,
    ) -> list[str]:
        cls = domain_class(ut.name, scope=self.scope, projected=projected)
        in_view = None if view is None else {va.name for va in view.attributes}
        by_param = dict(params)
        ctor: list[str] = []
        post: list[str] = []
        for dattr in ut.attributes:
            if body is None or dattr.name in by_param:
                continue
            # Views filter body-sourced attributes only.
            if in_view is not None and dattr.name not in in_view:
                continue
            fname = identifier(dattr.name)
            if explicit is not None:
                if dattr.name != explicit:
                    continue
                value, stype = src, body.ref
            else:
                battr = body.attribute(dattr.name)
                if battr is None:
                    continue
                value, stype = f"{src}.{fname}", battr.type
            sub = self._sub_view(view, dattr.name, dattr.type, projected=projected, ctx=ctx)
            expr = self._expr(value, stype, dattr.type, projected=projected, view=sub, ctx=f"{ctx}.{dattr.name}")
            if not projected and (dattr.required or dattr.has_default):
                if dattr.has_default and not dattr.required and explicit is None:
                    expr = f"{expr} if {value} is not None else {literal(dattr.default)}"
                ctor.append(f"        {fname}={expr},")
            elif expr == value:
                ctor.append(f"        {fname}={expr},")
            else:
                post.append(f"    if {value} is not None:")
                post.append(f"        {dst}.{fname} = {expr}")

        assigns: list[str] = []
        for attr_name, pname in params:
            dattr = ut.attribute(attr_name)
            assert dattr is not None
            fname = identifier(attr_name)
            if not projected and (dattr.required or dattr.has_default):
                ctor.append(f"        {fname}={pname},")
            else:
                assigns.append(f"    {dst}.{fname} = {pname}")

        if ctor:
            lines = [f"    {dst} = {cls}(", *ctor, "    )"]
        else:
            lines = [f"    {dst} = {cls}()"]
        return lines + post + assigns
