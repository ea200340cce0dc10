#!/usr/bin/env python3

"""Field offset inference and validation for resolved records.

Offsets are inferred with natural alignment under a configurable ABI and
compared against the explicit offsets carried by trailing comments. A
disagreement is reported once per field; the explicit value is the one
recorded in the model.
"""

import threading

from ....infrastructure.config import AbiConfig
from ....infrastructure.logging import get_logger
from ...models.declarations import (
    PRIMITIVE_SCALARS,
    ConstantArgument,
    Diagnostic,
    DiagnosticKind,
    Field,
    NamedType,
    ResolvedValue,
    Severity,
    TemplateArgument,
    TemplateInstance,
    TypeCategory,
    TypeDeclaration,
    TypeRef,
    spelling,
)
from ...models.layout import FieldLayout, PaddingGap, TypeLayout
from ..registry import TypeRegistry

logger = get_logger(__name__)

VTABLE_SLOT_NAME = "__vftable"

Bindings = dict[str, TemplateArgument]


def align_up(offset: int, alignment: int) -> int:
    """Round ``offset`` up to a multiple of ``alignment``."""
    if alignment <= 1:
        return offset
    return (offset + alignment - 1) // alignment * alignment


def find_padding(slots: list[FieldLayout], size: int) -> list[PaddingGap]:
    """
    Find the gaps between laid out members, tail padding included.

    Args:
        slots: Member slots (any order)
        size: Total size of the record

    Returns:
        Gaps in offset order
    """
    gaps: list[PaddingGap] = []
    cursor = 0
    previous: str | None = None

    for slot in sorted(slots, key=lambda s: (s.offset, -s.size)):
        if slot.offset > cursor:
            gaps.append(PaddingGap(previous, cursor, slot.offset - cursor))
            logger.debug(f"Padding detected: {slot.offset - cursor} bytes at offset {cursor}")
        if slot.end > cursor:
            cursor = slot.end
            previous = slot.name

    if size > cursor:
        gaps.append(PaddingGap(previous, cursor, size - cursor))
    return gaps


class LayoutEngine:
    """Computes and validates record layouts of a resolved snapshot."""

    def __init__(self, registry: TypeRegistry, abi: AbiConfig | None = None):
        """
        Initialize the layout engine.

        Args:
            registry: Registry holding resolved snapshots
            abi: Target ABI (defaults to the registry's)
        """
        self.registry = registry
        self.abi = abi or registry.abi
        self._lock = threading.RLock()
        self._layouts: dict[tuple[str, str], TypeLayout] = {}
        self._instances: dict[tuple[str, str], tuple[int, int]] = {}
        self._primaries: dict[tuple[str, str], TypeLayout] = {}
        self._in_progress: set[tuple[str, str]] = set()

    def layout(self, declaration: TypeDeclaration) -> TypeLayout:
        """
        Lay out one resolved record (computed once and cached).

        Enums get a trivial layout with their storage size.

        Args:
            declaration: Declaration from a resolved snapshot

        Returns:
            TypeLayout; the declaration and its fields are updated in place
        """
        key = (declaration.snapshot or "default", declaration.qualified_name)
        with self._lock:
            cached = self._layouts.get(key)
            if cached is not None:
                return cached

            if declaration.is_enum:
                size = self._enum_size(declaration)
                result = TypeLayout(declaration.qualified_name, size, min(size, self.abi.max_alignment))
            else:
                self._in_progress.add(key)
                try:
                    result = self._layout_record(declaration, {}, check_offsets=True)
                finally:
                    self._in_progress.discard(key)

            declaration.size = result.size
            declaration.alignment = result.alignment
            declaration.has_vtable = result.has_vtable
            self._layouts[key] = result
            return result

    def layout_snapshot(self, snapshot: str = "default") -> dict[str, TypeLayout]:
        """
        Lay out every concrete record of a snapshot.

        Templates (and types nested in them) are sized per instantiation; their
        unbound declarations are still checked through ``layout_templates``.

        Returns:
            Mapping of qualified name to layout, in declaration order
        """
        layouts: dict[str, TypeLayout] = {}
        for declaration in self.registry.all_declarations(snapshot):
            if declaration.is_enum or self._is_dependent(declaration):
                continue
            layouts[declaration.qualified_name] = self.layout(declaration)
        logger.info(f"Laid out {len(layouts)} record(s) in snapshot '{snapshot}'")
        self.layout_templates(snapshot)
        return layouts

    def layout_templates(self, snapshot: str = "default") -> dict[str, TypeLayout]:
        """
        Check the unbound declaration of every template of a snapshot.

        Members that do not depend on a template parameter get inferred offsets
        and are validated against their annotations exactly like concrete
        records. A member whose size depends on a parameter has no inferred
        offset, and inference stays unknown after it until an annotation
        re-anchors it (with authoritative offsets).

        Returns:
            Mapping of qualified name to partial layout, in declaration order
        """
        layouts: dict[str, TypeLayout] = {}
        for declaration in self.registry.all_declarations(snapshot):
            if declaration.is_enum or not self._is_dependent(declaration):
                continue
            layouts[declaration.qualified_name] = self._primary_layout(declaration)
        return layouts

    def _primary_layout(self, declaration: TypeDeclaration) -> TypeLayout:
        key = (declaration.snapshot or "default", declaration.qualified_name)
        with self._lock:
            cached = self._primaries.get(key)
            if cached is not None:
                return cached

            self._in_progress.add(key)
            try:
                result = self._layout_record(
                    declaration, {}, check_offsets=True, params=self._template_params(declaration)
                )
            finally:
                self._in_progress.discard(key)

            self._primaries[key] = result
            return result

    def _is_dependent(self, declaration: TypeDeclaration) -> bool:
        current: TypeDeclaration | None = declaration
        while current is not None:
            if current.is_template:
                return True
            current = self.registry.get(current.snapshot or "default", current.parent) if current.parent else None
        return False

    def _template_params(self, declaration: TypeDeclaration) -> set[str]:
        names: set[str] = set()
        current: TypeDeclaration | None = declaration
        while current is not None:
            names.update(param.name for param in current.template_params)
            current = self.registry.get(current.snapshot or "default", current.parent) if current.parent else None
        return names

    def _member_depends_on_params(self, member: Field, owner: TypeDeclaration, params: set[str]) -> bool:
        if member.bitfield is not None and member.bitfield_width is None:
            return True
        if member.array_dimensions and member.array_length is None:
            return True
        return not member.type_ref.is_indirect and self._depends_on_params(member.type_ref, owner, params)

    def _depends_on_params(self, ref: TemplateArgument, owner: TypeDeclaration, params: set[str]) -> bool:
        """True when the by-value size of ``ref`` is only known once ``params`` are bound."""
        if isinstance(ref, ConstantArgument):
            return ref.value is None
        if ref.category == TypeCategory.TEMPLATE_PARAM or ref.name in params:
            return True
        if isinstance(ref, TemplateInstance):
            return any(self._depends_on_params(argument, owner, params) for argument in ref.arguments)
        if ref.category == TypeCategory.DECLARED and ref.resolved_name:
            target = self.registry.get(owner.snapshot or "default", ref.resolved_name)
            return target is not None and not target.is_enum and self._is_dependent(target)
        return False

    # ---- Records ----

    def _layout_record(
        self,
        declaration: TypeDeclaration,
        bindings: Bindings,
        check_offsets: bool,
        params: set[str] | None = None,
    ) -> TypeLayout:
        """
        Lay out a record.

        With ``params`` set, the record is an unbound template: members depending
        on those names have an unknown size, and the running offset is None
        while it cannot be inferred.
        """
        qualified = declaration.qualified_name
        result = TypeLayout(qualified, 0, 1)
        diagnostics = result.diagnostics
        pointer_size = self.abi.pointer_size
        offset: int | None = 0

        base_layouts: list[tuple[str, int | None, int, bool]] = []
        for base in declaration.bases:
            if params is not None and self._depends_on_params(base.type_ref, declaration, params):
                base_layouts.append((spelling(base.type_ref), None, 1, False))
                continue
            size, alignment, has_vtable, empty = self._base_info(base.type_ref, bindings, diagnostics, declaration)
            base_layouts.append((spelling(base.type_ref), 0 if empty else size, alignment, has_vtable))

        inherited_vtable = any(has_vtable for _, _, _, has_vtable in base_layouts)
        result.has_vtable = inherited_vtable or declaration.declares_virtual
        alignment = 1

        if declaration.declares_virtual and not inherited_vtable:
            slot_alignment = min(pointer_size, self.abi.max_alignment)
            result.slots.append(
                FieldLayout(VTABLE_SLOT_NAME, 0, pointer_size, slot_alignment, "void*", kind="vtable")
            )
            offset = pointer_size
            alignment = slot_alignment

        for name, base_size, base_alignment, _ in base_layouts:
            if offset is None or base_size is None:
                offset = None
                continue
            offset = align_up(offset, base_alignment)
            if base_size:
                result.slots.append(FieldLayout(name, offset, base_size, base_alignment, name, kind="base"))
            offset += base_size
            alignment = max(alignment, base_alignment)

        union_size = 0
        previous_explicit: int | None = None
        unit: tuple[int, int, int] | None = None  # (offset, size, bits used) of the open bit-field unit

        for member in declaration.fields:
            size: int | None
            if params is not None and self._member_depends_on_params(member, declaration, params):
                size, member_alignment = None, 1
            else:
                size, member_alignment = self._field_size(member, declaration, bindings, diagnostics)
            alignment = max(alignment, member_alignment)
            width = member.bitfield_width

            inferred: int | None
            if declaration.is_union:
                inferred = 0
            elif offset is None or size is None:
                inferred = None
                unit = None
            elif width is not None:
                if unit is not None and unit[1] == size and 0 < width and unit[2] + width <= size * 8:
                    inferred = unit[0]
                    unit = (unit[0], unit[1], unit[2] + width)
                else:
                    inferred = align_up(offset, member_alignment)
                    unit = (inferred, size, width) if width > 0 else None
                    offset = inferred + (size if width > 0 else 0)
            else:
                unit = None
                inferred = align_up(offset, member_alignment)

            recorded = inferred
            if check_offsets and member.explicit_offset is not None:
                recorded = self._check_offset(
                    declaration, member, member.explicit_offset, inferred, previous_explicit, diagnostics
                )
                previous_explicit = member.explicit_offset

            if check_offsets:
                member.inferred_offset = inferred
                member.offset = recorded
                member.size = size

            if declaration.is_union:
                union_size = max(union_size, size or 0)
            elif width is None or inferred is None:
                resume = recorded if self.abi.offsets_authoritative else inferred
                offset = resume + size if resume is not None and size is not None else None
            elif recorded != inferred and self.abi.offsets_authoritative and unit is not None:
                unit = (recorded, unit[1], unit[2])
                offset = recorded + unit[1]

            if recorded is None or size is None:
                continue
            result.slots.append(
                FieldLayout(
                    member.name,
                    recorded,
                    size,
                    member_alignment,
                    spelling(member.type_ref),
                    inferred_offset=inferred,
                    explicit_offset=member.explicit_offset,
                    bit_width=width,
                )
            )

        end = union_size if declaration.is_union else offset
        result.alignment = alignment
        if end is None:
            # Unbound template: the size is only known per instantiation
            result.size = 0
        else:
            result.size = align_up(end, alignment)
            if result.size == 0:
                # An empty record still occupies one byte
                result.size = 1
        result.padding = find_padding(result.slots, result.size) if end is not None else []

        logger.debug(
            f"Layout of {qualified}: size={result.size} align={result.alignment} "
            f"padding={result.total_padding} vtable={result.has_vtable}"
        )
        return result

    def _check_offset(
        self,
        declaration: TypeDeclaration,
        member: Field,
        explicit: int,
        inferred: int | None,
        previous_explicit: int | None,
        diagnostics: list[Diagnostic],
    ) -> int:
        qualified = declaration.qualified_name

        if inferred is not None and explicit != inferred:
            diagnostics.append(
                Diagnostic(
                    Severity.WARNING,
                    DiagnosticKind.OFFSET_MISMATCH,
                    f"Field '{member.name}' of '{qualified}' is annotated at offset 0x{explicit:X} "
                    f"but inferred at 0x{inferred:X}",
                    member.location,
                    qualified,
                )
            )
        if previous_explicit is not None and explicit < previous_explicit and not declaration.is_union:
            diagnostics.append(
                Diagnostic(
                    Severity.WARNING,
                    DiagnosticKind.OFFSET_ORDER,
                    f"Field '{member.name}' of '{qualified}' is annotated at offset 0x{explicit:X}, "
                    f"before the previous annotation 0x{previous_explicit:X}",
                    member.location,
                    qualified,
                )
            )
        return explicit

    def _base_info(
        self,
        ref: TypeRef,
        bindings: Bindings,
        diagnostics: list[Diagnostic],
        owner: TypeDeclaration,
    ) -> tuple[int, int, bool, bool]:
        """Return (size, alignment, has_vtable, is_empty) of a base class."""
        ref = self._substitute(ref, bindings)
        if isinstance(ref, NamedType) and ref.category == TypeCategory.DECLARED and ref.resolved_name:
            base = self.registry.get(owner.snapshot or "default", ref.resolved_name)
            if base is not None and not base.is_enum and not base.is_template:
                layout = self._nested_layout(base, diagnostics, owner)
                if layout is None:
                    return self.abi.fallback_size, self._clamp(self.abi.fallback_size), False, False
                empty = not layout.slots
                return layout.size, layout.alignment, layout.has_vtable, empty
        size, alignment = self._type_size(ref, bindings, diagnostics, owner)
        return size, alignment, False, False

    # ---- Sizes ----

    def _clamp(self, alignment: int) -> int:
        return max(1, min(alignment, self.abi.max_alignment))

    def _scalar_size(self, name: str) -> int:
        size, _ = PRIMITIVE_SCALARS[name]
        if name in self.abi.scalar_sizes:
            return self.abi.scalar_sizes[name]
        return size if size is not None else self.abi.pointer_size

    def _enum_size(self, declaration: TypeDeclaration) -> int:
        underlying = declaration.underlying_type
        if isinstance(underlying, NamedType) and underlying.name in PRIMITIVE_SCALARS:
            return self._scalar_size(underlying.name)
        return self.abi.default_enum_size

    def _field_size(
        self,
        member: Field,
        owner: TypeDeclaration,
        bindings: Bindings,
        diagnostics: list[Diagnostic],
    ) -> tuple[int, int]:
        size, alignment = self._type_size(member.type_ref, bindings, diagnostics, owner)

        if member.array_dimensions:
            length = member.array_length
            if length is None:
                length = 1
                values = {
                    name: argument.value
                    for name, argument in bindings.items()
                    if isinstance(argument, ConstantArgument) and argument.value is not None
                }
                for dimension in member.array_dimensions:
                    value = self.registry.evaluate(owner, dimension, diagnostics, values)
                    length *= max(value.as_integer(), 0)
            size *= length
        return size, alignment

    def _type_size(
        self,
        ref: TypeRef,
        bindings: Bindings,
        diagnostics: list[Diagnostic],
        owner: TypeDeclaration,
    ) -> tuple[int, int]:
        """Return (size, alignment) of a by-value type reference."""
        if ref.is_indirect:
            return self.abi.pointer_size, self._clamp(self.abi.pointer_size)

        substituted = self._substitute(ref, bindings)
        if substituted is not ref:
            return self._type_size(substituted, {}, diagnostics, owner)

        if ref.category == TypeCategory.PRIMITIVE and ref.name in PRIMITIVE_SCALARS:
            size = self._scalar_size(ref.name)
            return size, self._clamp(size)

        if ref.category == TypeCategory.DECLARED and ref.resolved_name:
            declaration = self.registry.get(owner.snapshot or "default", ref.resolved_name)
            if declaration is not None:
                if declaration.is_enum:
                    size = self._enum_size(declaration)
                    return size, self._clamp(size)
                if isinstance(ref, TemplateInstance) and declaration.is_template:
                    if ref.bindings or not declaration.template_params:
                        return self._instance_size(declaration, ref, bindings, diagnostics, owner)
                    return self.abi.fallback_size, self._clamp(self.abi.fallback_size)
                if not declaration.is_template:
                    layout = self._nested_layout(declaration, diagnostics, owner)
                    if layout is not None:
                        return layout.size, layout.alignment
                    return self.abi.fallback_size, self._clamp(self.abi.fallback_size)

        return self._opaque_size(ref, diagnostics, owner)

    def _opaque_size(self, ref: TypeRef, diagnostics: list[Diagnostic], owner: TypeDeclaration) -> tuple[int, int]:
        layouts = self.abi.container_layouts
        short_name = ref.name.rsplit("::", 1)[-1]
        for candidate in (ref.name, short_name):
            if candidate in layouts:
                size, alignment = layouts[candidate]
                return size, self._clamp(alignment)

        size = self.abi.fallback_size
        diagnostics.append(
            Diagnostic(
                Severity.INFO,
                DiagnosticKind.UNKNOWN_TYPE_SIZE,
                f"Size of '{spelling(ref)}' is unknown; assuming {size} bytes",
                owner.location,
                owner.qualified_name,
            )
        )
        return size, self._clamp(size)

    def _nested_layout(
        self, declaration: TypeDeclaration, diagnostics: list[Diagnostic], owner: TypeDeclaration
    ) -> TypeLayout | None:
        key = (declaration.snapshot or "default", declaration.qualified_name)
        if key in self._in_progress:
            diagnostics.append(
                Diagnostic(
                    Severity.ERROR,
                    DiagnosticKind.LAYOUT_CYCLE,
                    f"'{owner.qualified_name}' contains '{declaration.qualified_name}' by value recursively",
                    owner.location,
                    owner.qualified_name,
                )
            )
            return None
        return self.layout(declaration)

    # ---- Templates ----

    def _substitute(self, ref: TypeRef, bindings: Bindings) -> TypeRef:
        """Replace a template parameter by its bound type argument."""
        if not (
            bindings
            and isinstance(ref, NamedType)
            and ref.category == TypeCategory.TEMPLATE_PARAM
            and ref.name in bindings
        ):
            return ref
        bound = bindings[ref.name]
        if isinstance(bound, ConstantArgument):
            return ref
        if ref.pointer_depth or ref.is_reference:
            # Only by-value use matters for size; pointers were handled before
            return ref
        return bound

    def _instance_size(
        self,
        template: TypeDeclaration,
        ref: TemplateInstance,
        outer: Bindings,
        diagnostics: list[Diagnostic],
        owner: TypeDeclaration,
    ) -> tuple[int, int]:
        outer_values = {
            name: argument.value
            for name, argument in outer.items()
            if isinstance(argument, ConstantArgument) and argument.value is not None
        }
        bindings: Bindings = {}
        for name, argument in ref.bindings.items():
            if isinstance(argument, ConstantArgument):
                if argument.value is None:
                    # Depends on the enclosing instantiation's parameters
                    value = self.registry.evaluate(owner, argument.expression, diagnostics, outer_values)
                    argument = ConstantArgument(argument.expression, value)
                bindings[name] = argument
            else:
                bindings[name] = self._substitute(argument, outer)

        key_text = ", ".join(f"{name}={_binding_key(arg)}" for name, arg in bindings.items())
        key = (template.snapshot or "default", f"{template.qualified_name}<{key_text}>")

        with self._lock:
            cached = self._instances.get(key)
            if cached is not None:
                return cached
            if key in self._in_progress:
                diagnostics.append(
                    Diagnostic(
                        Severity.ERROR,
                        DiagnosticKind.LAYOUT_CYCLE,
                        f"Instantiation {key[1]} contains itself by value",
                        owner.location,
                        owner.qualified_name,
                    )
                )
                return self.abi.fallback_size, self._clamp(self.abi.fallback_size)

            self._in_progress.add(key)
            try:
                layout = self._layout_record(template, bindings, check_offsets=False)
            finally:
                self._in_progress.discard(key)
            diagnostics.extend(layout.diagnostics)

            result = (layout.size, layout.alignment)
            self._instances[key] = result
            logger.debug(f"Instance {key[1]}: size={result[0]} align={result[1]}")
            return result


def _binding_key(argument: TemplateArgument) -> str:
    if isinstance(argument, ConstantArgument):
        value: ResolvedValue | None = argument.value
        return str(value.value) if value is not None else "?"
    return f"{argument.resolved_name or argument.name}:{spelling(argument)}"
