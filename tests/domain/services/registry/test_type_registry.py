#!/usr/bin/env python3

"""Unit tests for TypeRegistry."""

import threading

import pytest

from header_type_model.domain.errors import RegistryError, TypeNotFoundError
from header_type_model.domain.models.declarations import (
    ConstantArgument,
    DiagnosticKind,
    NameLookup,
    Severity,
    TemplateInstance,
    TypeCategory,
    ValueKind,
)
from header_type_model.domain.services.evaluation import fnv1a64
from header_type_model.domain.services.parsing import parse_source
from header_type_model.domain.services.registry import TypeRegistry


def _build(*sources: str, snapshot: str = "default", workers: int | None = None) -> TypeRegistry:
    registry = TypeRegistry()
    for index, source in enumerate(sources):
        parsed = parse_source(source, f"file{index}.hpp")
        registry.register(parsed.declarations, snapshot, index, parsed.diagnostics)
    registry.resolve(snapshot, workers)
    return registry


def _kinds(registry: TypeRegistry, snapshot: str = "default") -> list[DiagnosticKind]:
    return [d.kind for d in registry.diagnostics(snapshot)]


@pytest.mark.unit
class TestRegistration:
    """Phase 1 behaviour."""

    def test_register_counts_nested_declarations(self, read_fixture):
        registry = TypeRegistry()
        parsed = parse_source(read_fixture("struct_nested.hpp"))

        assert registry.register(parsed.declarations) == 3
        assert registry.has_snapshot("default")
        assert not registry.is_resolved("default")

    def test_register_after_resolve_fails(self):
        registry = _build("struct A { int x; };")

        with pytest.raises(RegistryError):
            registry.register(parse_source("struct B {};").declarations)

    def test_unknown_snapshot(self):
        registry = TypeRegistry()

        with pytest.raises(TypeNotFoundError):
            registry.resolve("missing")

    def test_concurrent_registration(self):
        registry = TypeRegistry()
        sources = [f"struct S{i} {{ int value; }};" for i in range(16)]

        def work(index: int) -> None:
            parsed = parse_source(sources[index], f"s{index}.hpp")
            registry.register(parsed.declarations, "batch", index)

        threads = [threading.Thread(target=work, args=(i,)) for i in range(len(sources))]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        registry.resolve("batch")

        assert [decl.name for decl in registry.declarations("batch")] == [f"S{i}" for i in range(16)]

    def test_anonymous_top_level_names_are_unique_per_file(self):
        registry = _build("enum { A = 1 };", "enum { B = 2 };")

        names = [decl.name for decl in registry.declarations()]
        assert names == ["__anonymous_0_0", "__anonymous_1_0"]
        assert _kinds(registry) == []

    def test_snapshots_are_isolated(self):
        registry = TypeRegistry()
        registry.register(parse_source("struct A { int x; };").declarations, "v1")
        registry.register(parse_source("struct A { int x; int y; };").declarations, "v2")
        registry.resolve("v1")
        registry.resolve("v2")

        assert registry.snapshots() == ["v1", "v2"]
        assert len(registry.get("v1", "A").fields) == 1
        assert len(registry.get("v2", "A").fields) == 2


@pytest.mark.unit
class TestEnumResolution:
    """Enumerator values."""

    @pytest.fixture
    def registry(self, read_fixture):
        return _build(read_fixture("enum.hpp"))

    def test_explicit_values(self, registry):
        game_mode = registry.get("default", "EGameMode")

        assert [e.value for e in game_mode.enumerators] == [0, 1, 2, 3]

    def test_implicit_values_follow_previous(self, registry):
        shape = registry.get("default", "EShape")

        assert {e.name: e.value for e in shape.enumerators}["Count"] == 3
        assert {e.name: e.value for e in shape.enumerators}["Invalid"] == 4

    def test_all_implicit(self, registry):
        direction = registry.get("default", "EDirection")

        assert [e.value for e in direction.enumerators] == [0, 1, 2, 3]

    def test_aliases_take_target_value(self, registry):
        texture = {e.name: e for e in registry.get("default", "ETextureFormat").enumerators}

        assert texture["RGB_Unsigned"].value == 0
        assert texture["RGB_Unsigned"].is_alias
        assert texture["DXT_Unsigned"].value == 2

    def test_no_diagnostics(self, registry):
        assert registry.diagnostics() == []

    def test_underlying_type_resolved(self, registry):
        texture = registry.get("default", "ETextureFormat")

        assert texture.underlying_type.category == TypeCategory.PRIMITIVE

    def test_forward_reference_across_files(self):
        registry = _build(
            "enum class ELimits { Max = ESizes::Big * 2 };",
            "enum class ESizes { Small = 1, Big = 8 };",
        )

        assert registry.get("default", "ELimits").enumerators[0].value == 16
        assert _kinds(registry) == []

    def test_unscoped_enumerators_visible_in_enclosing_scope(self):
        registry = _build("namespace ns { enum E { A = 4 }; enum F { B = A + 1 }; }")

        assert registry.get("default", "ns::F").enumerators[0].value == 5

    def test_enumerator_naming_constant_is_not_alias(self):
        registry = _build("struct Limits { static constexpr int kTop = 9; enum E { Top = kTop }; };")

        top = registry.get("default", "Limits::E").enumerators[0]
        assert top.value == 9
        assert not top.is_alias

    def test_self_reference_is_reported(self):
        registry = _build("enum class E { A = B, B = A };")

        assert DiagnosticKind.EVALUATION_ERROR in _kinds(registry)
        assert registry.get("default", "E").enumerators[0].value == 0

    def test_ambiguous_injected_name_is_unresolved(self):
        registry = _build("enum E1 { Count = 1 }; enum E2 { Count = 2 }; enum E3 { X = Count };")

        assert registry.get("default", "E3").enumerators[0].value == 0
        assert _kinds(registry) == [DiagnosticKind.UNRESOLVED_SYMBOL]


@pytest.mark.unit
class TestConstantResolution:
    """Constant members of GameApp."""

    @pytest.fixture
    def registry(self, read_fixture):
        return _build(read_fixture("struct.hpp"))

    @pytest.fixture
    def game_app(self, registry):
        return registry.get("default", "GameApp")

    def test_constant_values(self, game_app):
        values = {c.name: c.value for c in game_app.constants}

        assert values["kMode"].kind == ValueKind.BOOL
        assert values["kMode"].value is True
        assert values["kPi"].kind == ValueKind.FLOAT
        assert values["kPi"].value == pytest.approx(3.141592)
        assert values["kMax"].kind == ValueKind.INTEGER
        assert values["kMax"].value == 128
        assert values["kBool"].kind == ValueKind.HASH64
        assert values["kBool"].value == fnv1a64("Bool")

    def test_missing_enum_reported_once(self, registry, game_app):
        unresolved = [d for d in registry.diagnostics() if d.kind == DiagnosticKind.UNRESOLVED_SYMBOL]

        assert len(unresolved) == 1
        assert unresolved[0].severity == Severity.WARNING
        assert unresolved[0].type_name == "GameApp"
        assert {c.name: c.value for c in game_app.constants}["kAudioSize"].value == 0

    def test_array_lengths(self, game_app):
        lengths = {f.name: f.array_length for f in game_app.fields if f.array_dimensions}

        assert lengths["unk30"] == 0x1B
        assert lengths["unk4B"] == 0x10
        assert lengths["unk78"] == 24
        assert lengths["fixedConstant"] == 128

    def test_identifier_template_argument_becomes_constant(self, game_app):
        resources = next(f for f in game_app.fields if f.name == "resources").type_ref

        argument = resources.arguments[1]
        assert isinstance(argument, ConstantArgument)
        assert isinstance(argument.expression, NameLookup)
        assert argument.value.value == 128

    def test_duplicate_field_warning(self, registry):
        duplicates = [d for d in registry.diagnostics() if d.kind == DiagnosticKind.DUPLICATE_DEFINITION]

        assert len(duplicates) == 1
        assert "pool" in duplicates[0].message

    def test_unknown_types_are_opaque(self, game_app):
        fields = {f.name: f for f in game_app.fields}

        assert fields["vehicle"].type_ref.category == TypeCategory.OPAQUE
        assert fields["delta"].type_ref.category == TypeCategory.PRIMITIVE
        assert fields["context"].type_ref.category == TypeCategory.PRIMITIVE

    def test_constant_cast_to_declared_type(self):
        registry = _build("struct S { static constexpr uint8_t kWrap = 300; static constexpr int kSum = kWrap + 1; };")
        values = {c.name: c.value.value for c in registry.get("default", "S").constants}

        assert values == {"kWrap": 44, "kSum": 45}

    def test_constant_cycle(self):
        registry = _build("struct S { static constexpr int a = b; static constexpr int b = a; };")

        assert DiagnosticKind.EVALUATION_ERROR in _kinds(registry)

    def test_negative_array_dimension(self):
        registry = _build("struct S { int data[-2]; };")

        assert _kinds(registry) == [DiagnosticKind.EVALUATION_ERROR]
        assert registry.get("default", "S").fields[0].array_length == 0

    def test_bitfield_widths(self):
        registry = _build("struct S { static constexpr int kBits = 3; uint32_t a : kBits; uint32_t b : kBits * 2; };")

        assert [f.bitfield_width for f in registry.get("default", "S").fields] == [3, 6]


@pytest.mark.unit
class TestTypeResolution:
    """Type references, scopes and templates."""

    def test_nested_type_resolves_through_scope_chain(self, read_fixture):
        registry = _build(read_fixture("struct_nested.hpp"))
        parent = registry.get("default", "Player").fields[-1]

        assert parent.type_ref.category == TypeCategory.DECLARED
        assert parent.type_ref.resolved_name == "Player::Binding"

    def test_qualified_base_from_nested_namespace(self, read_fixture):
        registry = _build(read_fixture("struct_namespace.hpp"))
        star = registry.get("default", "Universe::Galaxy::StellarSystem::Star")

        assert star.bases[0].type_ref.resolved_name == "Universe::Body"

    def test_scope_chain(self, read_fixture):
        registry = _build(read_fixture("struct_nested.hpp"))
        owner = registry.get("default", "Player::Owner")

        assert registry.scope_chain(owner) == ["Player::Owner", "Player", ""]

    def test_find_type(self, read_fixture):
        registry = _build(read_fixture("struct_namespace.hpp"))

        found = registry.find_type("default", "Body", ["Universe::Galaxy", "Universe", ""])
        assert found.qualified_name == "Universe::Body"
        assert registry.find_type("default", "Body", [""]) is None

    def test_template_parameter_category(self, read_fixture):
        registry = _build(read_fixture("struct_template.hpp"))
        vector = registry.get("default", "Vector")

        assert vector.fields[0].type_ref.category == TypeCategory.TEMPLATE_PARAM
        assert registry.diagnostics() == []

    def test_template_bindings(self, read_fixture):
        registry = _build(read_fixture("struct_template.hpp"), "struct Holder { Array<float, 4> values; };")
        ref = registry.get("default", "Holder").fields[0].type_ref

        assert isinstance(ref, TemplateInstance)
        assert ref.category == TypeCategory.DECLARED
        assert set(ref.bindings) == {"T", "N"}
        assert ref.bindings["N"].value.value == 4

    def test_default_template_arguments(self):
        registry = _build(
            "template<typename T, uint32_t N = 8> struct Ring { T items[N]; };",
            "struct User { Ring<int> ring; };",
        )
        ref = registry.get("default", "User").fields[0].type_ref

        assert registry.diagnostics() == []
        assert ref.bindings["N"].value.value == 8

    def test_template_arity_mismatch(self, read_fixture):
        registry = _build(read_fixture("struct_template.hpp"), "struct Bad { Pair<int> one; };")

        errors = [d for d in registry.diagnostics() if d.kind == DiagnosticKind.TEMPLATE_ARITY_MISMATCH]
        assert len(errors) == 1
        assert errors[0].severity == Severity.ERROR
        assert "expects 2" in errors[0].message

    def test_opaque_generic_has_no_arity_check(self, read_fixture):
        registry = _build(read_fixture("struct.hpp"))

        assert DiagnosticKind.TEMPLATE_ARITY_MISMATCH not in _kinds(registry)


@pytest.mark.unit
class TestDuplicates:
    def test_later_definition_wins(self):
        registry = _build("struct A { int x; };", "struct A { int x; int y; };")

        kept = registry.get("default", "A")
        assert [f.name for f in kept.fields] == ["x", "y"]
        assert len(registry.declarations()) == 1

    def test_warning_points_at_earlier_definition(self):
        registry = _build("struct A { int x; };", "struct A { int y; };")
        diagnostic = registry.diagnostics()[0]

        assert diagnostic.kind == DiagnosticKind.DUPLICATE_DEFINITION
        assert diagnostic.severity == Severity.WARNING
        assert diagnostic.location.file == "file0.hpp"

    def test_parse_diagnostics_come_first_in_file_order(self):
        registry = _build("struct B { int ; };", "struct A { int x y; };")
        diagnostics = registry.diagnostics()

        assert [d.kind for d in diagnostics] == [DiagnosticKind.SYNTAX_ERROR, DiagnosticKind.SYNTAX_ERROR]
        assert [d.location.file for d in diagnostics] == ["file0.hpp", "file1.hpp"]


@pytest.mark.unit
class TestParallelResolution:
    def test_parallel_resolve_matches_serial(self, read_fixture):
        sources = [read_fixture(name) for name in ("enum.hpp", "struct.hpp", "struct_nested.hpp", "class.hpp")]

        serial = _build(*sources)
        parallel = _build(*sources, workers=4)

        assert [str(d) for d in serial.diagnostics()] == [str(d) for d in parallel.diagnostics()]
        assert [d.qualified_name for d in serial.all_declarations()] == [
            d.qualified_name for d in parallel.all_declarations()
        ]
