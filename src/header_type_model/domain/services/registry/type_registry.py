#!/usr/bin/env python3

"""Two-phase type registry.

Phase 1 (``register``) accumulates declarations per snapshot and may be called
concurrently from several parser workers. Phase 2 (``resolve``) runs once per
snapshot after every registration finished: it settles duplicate definitions,
builds the symbol table and resolves every expression and type reference.

Enumerator and constant values are computed on demand and memoised, so a
declaration may refer to values declared later in the batch or in another
file.
"""

import threading
from dataclasses import dataclass, field
from multiprocessing.pool import ThreadPool

from ....infrastructure.config import AbiConfig
from ....infrastructure.logging import get_logger, log_timing
from ...errors import RegistryError, TypeNotFoundError
from ...models.declarations import (
    PRIMITIVE_SCALARS,
    PRIMITIVE_TYPE_NAMES,
    BinaryOp,
    Cast,
    ConstantArgument,
    ConstantMember,
    Diagnostic,
    DiagnosticKind,
    Expression,
    IntrinsicCall,
    Literal,
    NamedType,
    NameLookup,
    ResolvedValue,
    Severity,
    SourceLocation,
    TemplateArgument,
    TemplateInstance,
    TypeCategory,
    TypeDeclaration,
    TypeRef,
    UnaryOp,
    ValueKind,
)
from ..evaluation import ExpressionEvaluator

logger = get_logger(__name__)

ANONYMOUS_PREFIX = "__anonymous_"


@dataclass
class _Symbol:
    """A named value: an enumerator or a constant member."""

    owner: TypeDeclaration
    name: str
    is_enumerator: bool
    injected: bool = False
    """Unscoped enumerator visible in the enclosing scope"""


@dataclass
class _SnapshotState:
    name: str
    candidates: list[TypeDeclaration] = field(default_factory=list)
    parse_diagnostics: list[tuple[int, list[Diagnostic]]] = field(default_factory=list)
    declarations: list[TypeDeclaration] = field(default_factory=list)
    types: dict[str, TypeDeclaration] = field(default_factory=dict)
    symbols: dict[str, _Symbol | None] = field(default_factory=dict)
    """Qualified value name -> symbol; None marks an ambiguous injected name"""
    diagnostics: list[Diagnostic] = field(default_factory=list)
    resolved: bool = False

    # Memoised values: owner qualified name -> (values by name, diagnostics)
    enum_values: dict[str, tuple[dict[str, int], list[Diagnostic]]] = field(default_factory=dict)
    constant_values: dict[str, tuple[ResolvedValue, list[Diagnostic]]] = field(default_factory=dict)
    in_progress: set[str] = field(default_factory=set)
    partial_enums: dict[str, dict[str, int]] = field(default_factory=dict)


class TypeRegistry:
    """Registry of type declarations, keyed by snapshot and qualified name."""

    def __init__(self, abi: AbiConfig | None = None):
        """Initialize an empty registry.

        Args:
            abi: Target ABI, used when evaluating casts
        """
        self.abi = abi or AbiConfig()
        self._lock = threading.Lock()
        # Value computation may recurse across declarations on one thread
        self._value_lock = threading.RLock()
        self._snapshots: dict[str, _SnapshotState] = {}

    # ---- Phase 1 ----

    def register(
        self,
        declarations: list[TypeDeclaration],
        snapshot: str = "default",
        file_index: int = 0,
        diagnostics: list[Diagnostic] | None = None,
    ) -> int:
        """
        Register the declarations parsed from one file.

        Safe to call from several threads at once.

        Args:
            declarations: Top-level declarations of the file
            snapshot: Snapshot the file belongs to
            file_index: Position of the file in the batch (settles duplicates)
            diagnostics: Parse diagnostics of the file, kept in file order

        Returns:
            Number of declarations registered, nested ones included

        Raises:
            RegistryError: If the snapshot has already been resolved
        """
        count = 0
        for index, declaration in enumerate(declarations):
            if declaration.parent is None and declaration.name.startswith(ANONYMOUS_PREFIX):
                declaration.name = f"{ANONYMOUS_PREFIX}{file_index}_{index}"
            for member in declaration.walk():
                member.snapshot = snapshot
                member.order = (file_index, index)
                count += 1

        with self._lock:
            state = self._snapshots.get(snapshot)
            if state is None:
                state = _SnapshotState(snapshot)
                self._snapshots[snapshot] = state
            if state.resolved:
                raise RegistryError(f"Snapshot '{snapshot}' is already resolved")
            state.candidates.extend(declarations)
            if diagnostics:
                state.parse_diagnostics.append((file_index, list(diagnostics)))

        logger.debug(f"Registered {count} declaration(s) from file #{file_index} into '{snapshot}'")
        return count

    # ---- Phase 2 ----

    @log_timing
    def resolve(self, snapshot: str = "default", workers: int | None = None) -> list[Diagnostic]:
        """
        Resolve every expression and type reference of a snapshot.

        Must only be called after all registrations of the snapshot finished.

        Args:
            snapshot: Snapshot to resolve
            workers: Resolve top-level declarations on a thread pool of this size

        Returns:
            All diagnostics of the snapshot, in deterministic order

        Raises:
            TypeNotFoundError: If nothing was registered under ``snapshot``
        """
        with self._lock:
            state = self._state(snapshot)
            if state.resolved:
                logger.debug(f"Snapshot '{snapshot}' already resolved")
                return list(state.diagnostics)
            state.resolved = True

        for _, file_diagnostics in sorted(state.parse_diagnostics, key=lambda item: item[0]):
            state.diagnostics.extend(file_diagnostics)

        self._settle_duplicates(state)
        self._build_symbols(state)

        if workers and workers > 1 and len(state.declarations) > 1:
            with ThreadPool(workers) as pool:
                results = pool.map(lambda decl: self._resolve_declaration(state, decl), state.declarations)
        else:
            results = [self._resolve_declaration(state, decl) for decl in state.declarations]

        for declaration_diagnostics in results:
            state.diagnostics.extend(declaration_diagnostics)

        logger.info(
            f"Resolved snapshot '{snapshot}': {len(state.types)} types, "
            f"{len(state.diagnostics)} diagnostic(s)"
        )
        return list(state.diagnostics)

    # ---- Queries ----

    def snapshots(self) -> list[str]:
        with self._lock:
            return list(self._snapshots)

    def has_snapshot(self, snapshot: str) -> bool:
        with self._lock:
            return snapshot in self._snapshots

    def is_resolved(self, snapshot: str) -> bool:
        with self._lock:
            return self._state(snapshot).resolved

    def declarations(self, snapshot: str = "default") -> list[TypeDeclaration]:
        """Top-level declarations kept after duplicate settlement, in batch order."""
        state = self._state(snapshot)
        return list(state.declarations if state.resolved else state.candidates)

    def all_declarations(self, snapshot: str = "default") -> list[TypeDeclaration]:
        """Every declaration of a resolved snapshot, nested ones included."""
        return list(self._state(snapshot).types.values())

    def get(self, snapshot: str, qualified_name: str) -> TypeDeclaration | None:
        """Look up a declaration by fully qualified name."""
        return self._state(snapshot).types.get(qualified_name)

    def diagnostics(self, snapshot: str = "default") -> list[Diagnostic]:
        return list(self._state(snapshot).diagnostics)

    def find_type(self, snapshot: str, name: str, scope: list[str]) -> TypeDeclaration | None:
        """
        Find a type by (possibly partially qualified) name, innermost scope first.

        Args:
            snapshot: Resolved snapshot
            name: Name as written, e.g. ``Inner`` or ``game::Object``
            scope: Scope chain, innermost first

        Returns:
            Declaration or None
        """
        return self._find_type(self._state(snapshot), name, scope)

    def evaluate(
        self,
        declaration: TypeDeclaration,
        expression: Expression,
        diagnostics: list[Diagnostic],
        bound_values: dict[str, ResolvedValue] | None = None,
    ) -> ResolvedValue:
        """
        Evaluate an expression in the scope of a resolved declaration.

        Args:
            declaration: Declaration whose scope chain is searched
            expression: Expression to evaluate
            diagnostics: Sink for evaluation diagnostics
            bound_values: Values of template parameters for one instantiation

        Returns:
            Resolved value
        """
        state = self._state(declaration.snapshot or "default")
        qualified = declaration.qualified_name
        inner = self._evaluator(state, diagnostics, qualified)
        if bound_values:
            fallback = inner.lookup

            def lookup(parts: list[str], scope: list[str]) -> ResolvedValue | None:
                if len(parts) == 1 and parts[0] in bound_values:
                    return bound_values[parts[0]]
                return fallback(parts, scope)

            inner.lookup = lookup
        return inner.evaluate(expression, self._scope_chain(state, declaration), diagnostics, qualified)

    def scope_chain(self, declaration: TypeDeclaration) -> list[str]:
        """Scopes visible inside ``declaration``, innermost first, ending with the global scope."""
        state = self._state(declaration.snapshot or "default")
        return self._scope_chain(state, declaration)

    def _state(self, snapshot: str) -> _SnapshotState:
        state = self._snapshots.get(snapshot)
        if state is None:
            raise TypeNotFoundError(f"Unknown snapshot '{snapshot}'")
        return state

    # ---- Resolution internals ----

    def _settle_duplicates(self, state: _SnapshotState) -> None:
        """Keep the later of two same-named definitions and flag the earlier one."""
        ordered = sorted(state.candidates, key=lambda decl: decl.order)
        kept: dict[str, TypeDeclaration] = {}

        for declaration in ordered:
            earlier = kept.get(declaration.qualified_name)
            if earlier is not None:
                state.diagnostics.append(
                    Diagnostic(
                        Severity.WARNING,
                        DiagnosticKind.DUPLICATE_DEFINITION,
                        f"Duplicate definition of '{declaration.qualified_name}'; "
                        f"this definition is replaced by the one at {declaration.location}",
                        earlier.location,
                        declaration.qualified_name,
                    )
                )
                logger.debug(f"Duplicate definition of {declaration.qualified_name} in '{state.name}'")
                del kept[declaration.qualified_name]
            kept[declaration.qualified_name] = declaration

        state.declarations = sorted(kept.values(), key=lambda decl: decl.order)
        for declaration in state.declarations:
            for member in declaration.walk():
                state.types[member.qualified_name] = member

    def _build_symbols(self, state: _SnapshotState) -> None:
        injected: dict[str, _Symbol | None] = {}

        for declaration in state.types.values():
            for enumerator in declaration.enumerators:
                key = f"{declaration.qualified_name}::{enumerator.name}"
                state.symbols[key] = _Symbol(declaration, enumerator.name, is_enumerator=True)
                if not declaration.is_scoped:
                    enclosing = declaration.parent or "::".join(declaration.namespace)
                    outer_key = f"{enclosing}::{enumerator.name}" if enclosing else enumerator.name
                    if outer_key in injected:
                        # Two unscoped enums inject the same name
                        injected[outer_key] = None
                    else:
                        injected[outer_key] = _Symbol(declaration, enumerator.name, True, injected=True)
            for constant in declaration.constants:
                key = f"{declaration.qualified_name}::{constant.name}"
                state.symbols[key] = _Symbol(declaration, constant.name, is_enumerator=False)

        for key, symbol in injected.items():
            state.symbols.setdefault(key, symbol)

    def _scope_chain(self, state: _SnapshotState, declaration: TypeDeclaration) -> list[str]:
        chain: list[str] = []
        current: TypeDeclaration | None = declaration
        while current is not None:
            chain.append(current.qualified_name)
            current = state.types.get(current.parent) if current.parent else None
        namespace = declaration.namespace
        for depth in range(len(namespace), 0, -1):
            chain.append("::".join(namespace[:depth]))
        chain.append("")
        return chain

    @staticmethod
    def _qualify(prefix: str, name: str) -> str:
        return f"{prefix}::{name}" if prefix else name

    def _find_type(self, state: _SnapshotState, name: str, scope: list[str]) -> TypeDeclaration | None:
        for prefix in scope:
            found = state.types.get(self._qualify(prefix, name))
            if found is not None:
                return found
        return None

    def _find_symbol(self, state: _SnapshotState, parts: list[str], scope: list[str]) -> tuple[bool, _Symbol | None]:
        """Return (found, symbol); an ambiguous name is found with no symbol."""
        name = "::".join(parts)
        for prefix in scope:
            key = self._qualify(prefix, name)
            if key in state.symbols:
                return True, state.symbols[key]
        return False, None

    def _evaluator(self, state: _SnapshotState, diagnostics: list[Diagnostic], type_name: str) -> ExpressionEvaluator:
        def lookup(parts: list[str], scope: list[str]) -> ResolvedValue | None:
            return self._lookup_value(state, parts, scope, diagnostics, type_name)

        def type_lookup(name: str, scope: list[str]) -> str | None:
            found = self._find_type(state, name, scope)
            if found is None or not found.is_enum:
                return None
            if isinstance(found.underlying_type, NamedType):
                return found.underlying_type.name
            return "int"

        return ExpressionEvaluator(lookup, self.abi, type_lookup)

    def _lookup_value(
        self,
        state: _SnapshotState,
        parts: list[str],
        scope: list[str],
        diagnostics: list[Diagnostic],
        type_name: str,
    ) -> ResolvedValue | None:
        found, symbol = self._find_symbol(state, parts, scope)
        if not found or symbol is None:
            return None

        owner = symbol.owner.qualified_name
        if symbol.is_enumerator:
            with self._value_lock:
                partial = state.partial_enums.get(owner)
                if partial is not None:
                    if symbol.name in partial:
                        return ResolvedValue.integer(partial[symbol.name])
                    return self._cycle(diagnostics, "::".join(parts), type_name)
                values = self._enum_values(state, symbol.owner)
            return ResolvedValue.integer(values[symbol.name])

        key = f"{owner}::{symbol.name}"
        with self._value_lock:
            if key in state.in_progress:
                return self._cycle(diagnostics, "::".join(parts), type_name)
            return self._constant_value(state, symbol.owner, symbol.name)

    @staticmethod
    def _cycle(diagnostics: list[Diagnostic], name: str, type_name: str) -> ResolvedValue:
        diagnostics.append(
            Diagnostic(
                Severity.ERROR,
                DiagnosticKind.EVALUATION_ERROR,
                f"Value of '{name}' depends on itself",
                None,
                type_name,
            )
        )
        return ResolvedValue.placeholder()

    def _enum_values(self, state: _SnapshotState, declaration: TypeDeclaration) -> dict[str, int]:
        """Compute (once) every enumerator value of an enum. Caller holds the value lock."""
        qualified = declaration.qualified_name
        memo = state.enum_values.get(qualified)
        if memo is not None:
            return memo[0]

        diagnostics: list[Diagnostic] = []
        values: dict[str, int] = {}
        state.partial_enums[qualified] = values
        evaluator = self._evaluator(state, diagnostics, qualified)
        scope = self._scope_chain(state, declaration)

        try:
            previous: int | None = None
            for enumerator in declaration.enumerators:
                if enumerator.expression is None:
                    value = 0 if previous is None else previous + 1
                else:
                    resolved = evaluator.evaluate(enumerator.expression, scope, diagnostics, qualified)
                    value = resolved.as_integer()
                values[enumerator.name] = value
                previous = value
        finally:
            del state.partial_enums[qualified]

        state.enum_values[qualified] = (values, diagnostics)
        return values

    def _constant_value(self, state: _SnapshotState, declaration: TypeDeclaration, name: str) -> ResolvedValue:
        """Compute (once) a constant member's value. Caller holds the value lock."""
        key = f"{declaration.qualified_name}::{name}"
        memo = state.constant_values.get(key)
        if memo is not None:
            return memo[0]

        constant = next(c for c in declaration.constants if c.name == name)
        diagnostics: list[Diagnostic] = []
        state.in_progress.add(key)
        try:
            value = self._evaluate_constant(state, declaration, constant, diagnostics)
        finally:
            state.in_progress.discard(key)

        state.constant_values[key] = (value, diagnostics)
        return value

    def _evaluate_constant(
        self,
        state: _SnapshotState,
        declaration: TypeDeclaration,
        constant: ConstantMember,
        diagnostics: list[Diagnostic],
    ) -> ResolvedValue:
        if constant.expression is None or _depends_on(
            [constant.expression], self._template_param_names(state, declaration)
        ):
            return ResolvedValue.placeholder()

        evaluator = self._evaluator(state, diagnostics, declaration.qualified_name)
        scope = self._scope_chain(state, declaration)
        value = evaluator.evaluate(constant.expression, scope, diagnostics, declaration.qualified_name)

        # Apply the declared scalar type, except for hashes and strings
        target = constant.type_ref
        if (
            value.kind in (ValueKind.INTEGER, ValueKind.BOOL, ValueKind.FLOAT)
            and isinstance(target, NamedType)
            and target.pointer_depth == 0
            and target.name in PRIMITIVE_SCALARS
        ):
            value = evaluator.evaluate(Cast(NamedType(target.name), Literal(value)), scope, diagnostics)
        return value

    def _resolve_declaration(self, state: _SnapshotState, root: TypeDeclaration) -> list[Diagnostic]:
        diagnostics: list[Diagnostic] = []
        for declaration in root.walk():
            if declaration.is_enum:
                self._resolve_enum(state, declaration, diagnostics)
            else:
                self._resolve_record(state, declaration, diagnostics)
        return diagnostics

    def _resolve_enum(self, state: _SnapshotState, declaration: TypeDeclaration, diagnostics: list[Diagnostic]) -> None:
        with self._value_lock:
            values = self._enum_values(state, declaration)
            diagnostics.extend(state.enum_values[declaration.qualified_name][1])

        scope = self._scope_chain(state, declaration)
        for enumerator in declaration.enumerators:
            enumerator.value = values[enumerator.name]
            if isinstance(enumerator.expression, NameLookup):
                found, symbol = self._find_symbol(state, enumerator.expression.parts, scope)
                if found and symbol is not None and not symbol.is_enumerator:
                    enumerator.is_alias = False

        if declaration.underlying_type is not None:
            self._resolve_type(state, declaration.underlying_type, scope, set(), diagnostics, declaration)

    def _resolve_record(self, state: _SnapshotState, declaration: TypeDeclaration, diagnostics: list[Diagnostic]) -> None:
        qualified = declaration.qualified_name
        scope = self._scope_chain(state, declaration)
        params = self._template_param_names(state, declaration)
        evaluator = self._evaluator(state, diagnostics, qualified)

        for constant in declaration.constants:
            with self._value_lock:
                constant.value = self._constant_value(state, declaration, constant.name)
                diagnostics.extend(state.constant_values[f"{qualified}::{constant.name}"][1])

        for base in declaration.bases:
            self._resolve_type(state, base.type_ref, scope, params, diagnostics, declaration)

        seen: dict[str, SourceLocation | None] = {}
        for member in declaration.fields:
            if member.name in seen:
                diagnostics.append(
                    Diagnostic(
                        Severity.WARNING,
                        DiagnosticKind.DUPLICATE_DEFINITION,
                        f"Field '{member.name}' of '{qualified}' is declared more than once "
                        f"(first at {seen[member.name]})",
                        member.location,
                        qualified,
                    )
                )
            seen[member.name] = member.location

            self._resolve_type(state, member.type_ref, scope, params, diagnostics, declaration)

            if member.array_dimensions and not _depends_on(member.array_dimensions, params):
                length = 1
                for dimension in member.array_dimensions:
                    count = evaluator.evaluate(dimension, scope, diagnostics, qualified).as_integer()
                    if count < 0:
                        diagnostics.append(
                            Diagnostic(
                                Severity.ERROR,
                                DiagnosticKind.EVALUATION_ERROR,
                                f"Negative array dimension {count} for field '{member.name}'",
                                member.location,
                                qualified,
                            )
                        )
                        count = 0
                    length *= count
                member.array_length = length

            if member.bitfield is not None and not _depends_on([member.bitfield], params):
                width = evaluator.evaluate(member.bitfield, scope, diagnostics, qualified).as_integer()
                member.bitfield_width = max(width, 0)

        # Signatures carry no layout weight: resolve quietly
        for function in declaration.functions:
            quiet: list[Diagnostic] = []
            if function.return_type is not None:
                self._resolve_type(state, function.return_type, scope, params, quiet, declaration)
            for parameter in function.parameters:
                self._resolve_type(state, parameter.type_ref, scope, params, quiet, declaration)

    def _template_param_names(self, state: _SnapshotState, declaration: TypeDeclaration) -> set[str]:
        names: set[str] = set()
        current: TypeDeclaration | None = declaration
        while current is not None:
            names.update(param.name for param in current.template_params)
            current = state.types.get(current.parent) if current.parent else None
        return names

    def _resolve_type(
        self,
        state: _SnapshotState,
        ref: TypeRef,
        scope: list[str],
        params: set[str],
        diagnostics: list[Diagnostic],
        owner: TypeDeclaration,
    ) -> None:
        if isinstance(ref, NamedType):
            if ref.name in params:
                ref.category = TypeCategory.TEMPLATE_PARAM
                return
            if ref.name in PRIMITIVE_TYPE_NAMES:
                ref.category = TypeCategory.PRIMITIVE
                return

        found = self._find_type(state, ref.name, scope)
        if found is None:
            ref.category = TypeCategory.OPAQUE
            ref.resolved_name = None
        else:
            ref.category = TypeCategory.DECLARED
            ref.resolved_name = found.qualified_name

        if not isinstance(ref, TemplateInstance):
            return

        ref.arguments = [
            self._resolve_argument(state, argument, scope, params, diagnostics, owner) for argument in ref.arguments
        ]

        if found is None:
            # Opaque generic: known by name and arity only
            return

        declared = found.template_params
        required = sum(1 for param in declared if param.default is None)
        if not required <= ref.arity <= len(declared):
            expected = str(len(declared)) if required == len(declared) else f"{required}..{len(declared)}"
            diagnostics.append(
                Diagnostic(
                    Severity.ERROR,
                    DiagnosticKind.TEMPLATE_ARITY_MISMATCH,
                    f"'{found.qualified_name}' expects {expected} template argument(s), got {ref.arity}",
                    owner.location,
                    owner.qualified_name,
                )
            )
            return

        ref.bindings = {}
        for position, param in enumerate(declared):
            if position < ref.arity:
                ref.bindings[param.name] = ref.arguments[position]
            elif isinstance(param.default, (NamedType, TemplateInstance)):
                ref.bindings[param.name] = param.default
            elif param.default is not None and _depends_on([param.default], {p.name for p in declared}):
                ref.bindings[param.name] = ConstantArgument(param.default)
            elif param.default is not None:
                evaluator = self._evaluator(state, diagnostics, owner.qualified_name)
                default_scope = self._scope_chain(state, found)
                value = evaluator.evaluate(param.default, default_scope, diagnostics, owner.qualified_name)
                ref.bindings[param.name] = ConstantArgument(param.default, value)

    def _resolve_argument(
        self,
        state: _SnapshotState,
        argument: TemplateArgument,
        scope: list[str],
        params: set[str],
        diagnostics: list[Diagnostic],
        owner: TypeDeclaration,
    ) -> TemplateArgument:
        evaluator = self._evaluator(state, diagnostics, owner.qualified_name)

        if isinstance(argument, ConstantArgument):
            if _depends_on([argument.expression], params):
                return argument
            argument.value = evaluator.evaluate(argument.expression, scope, diagnostics, owner.qualified_name)
            return argument

        if (
            isinstance(argument, NamedType)
            and not argument.is_indirect
            and not argument.is_const
            and argument.name not in params
            and argument.name not in PRIMITIVE_TYPE_NAMES
            and self._find_type(state, argument.name, scope) is None
        ):
            parts = argument.name.split("::")
            found, symbol = self._find_symbol(state, parts, scope)
            if found and symbol is not None:
                expression = NameLookup(parts)
                value = evaluator.evaluate(expression, scope, diagnostics, owner.qualified_name)
                return ConstantArgument(expression, value)

        self._resolve_type(state, argument, scope, params, diagnostics, owner)
        return argument


def _depends_on(expressions: list[Expression], params: set[str]) -> bool:
    """True if any expression names a template parameter (value known only per instance)."""
    if not params:
        return False
    pending = list(expressions)
    while pending:
        expression = pending.pop()
        if isinstance(expression, NameLookup):
            if len(expression.parts) == 1 and expression.parts[0] in params:
                return True
        elif isinstance(expression, UnaryOp):
            pending.append(expression.operand)
        elif isinstance(expression, BinaryOp):
            pending.extend((expression.left, expression.right))
        elif isinstance(expression, Cast):
            pending.append(expression.operand)
        elif isinstance(expression, IntrinsicCall):
            pending.extend(expression.arguments)
    return False
