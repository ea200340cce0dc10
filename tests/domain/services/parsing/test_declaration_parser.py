#!/usr/bin/env python3

"""Unit tests for DeclarationParser."""

import pytest

from header_type_model.domain.models.declarations import (
    BinaryOp,
    Cast,
    ConstantArgument,
    DeclarationKind,
    DiagnosticKind,
    IntrinsicCall,
    Literal,
    NamedType,
    NameLookup,
    Severity,
    TemplateInstance,
    TemplateParamKind,
    ValueKind,
    spelling,
)
from header_type_model.domain.services.parsing import parse_source


def _single(source: str):
    result = parse_source(source, "test.hpp")
    assert result.diagnostics == []
    assert len(result.declarations) == 1
    return result.declarations[0]


@pytest.mark.unit
class TestEnums:
    """Enum declarations."""

    def test_unscoped_enum_with_values(self, read_fixture):
        result = parse_source(read_fixture("enum.hpp"), "enum.hpp")

        assert result.diagnostics == []
        names = [decl.name for decl in result.declarations]
        assert names == ["EGameMode", "EShape", "ETextureFormat", "EDirection"]

        game_mode = result.declarations[0]
        assert game_mode.kind == DeclarationKind.ENUM
        assert game_mode.keyword == "enum"
        assert not game_mode.is_scoped
        assert game_mode.underlying_type is None
        assert [e.name for e in game_mode.enumerators] == ["Singleplayer", "Multiplayer", "Count", "Invalid"]

    def test_scoped_enum_with_underlying_type(self, read_fixture):
        texture = parse_source(read_fixture("enum.hpp")).declarations[2]

        assert texture.is_scoped
        assert texture.keyword == "enum class"
        assert spelling(texture.underlying_type) == "uint8_t"

    def test_alias_initializers_are_flagged(self, read_fixture):
        texture = parse_source(read_fixture("enum.hpp")).declarations[2]
        by_name = {e.name: e for e in texture.enumerators}

        assert not by_name["RGB"].is_alias
        assert by_name["RGB_Unsigned"].is_alias
        assert isinstance(by_name["DXT_Unsigned"].expression, NameLookup)
        assert by_name["DXT_Unsigned"].expression.parts == ["DXT"]

    def test_implicit_values_have_no_expression(self, read_fixture):
        shape = parse_source(read_fixture("enum.hpp")).declarations[1]

        assert shape.enumerators[3].name == "Count"
        assert shape.enumerators[3].expression is None
        assert shape.enumerators[4].expression is None

    def test_trailing_comma(self):
        decl = _single("enum E { A, B, };")

        assert [e.name for e in decl.enumerators] == ["A", "B"]

    def test_forward_declarations_are_skipped(self, read_fixture):
        result = parse_source(read_fixture("struct_forward.hpp"))

        assert result.declarations == []
        assert result.diagnostics == []


@pytest.mark.unit
class TestRecords:
    """Struct, class and union declarations."""

    def test_empty_records(self, read_fixture):
        result = parse_source(read_fixture("struct_empty.hpp"))

        assert [decl.name for decl in result.declarations] == ["GameApp", "GameNetwork"]
        assert all(decl.kind == DeclarationKind.STRUCT for decl in result.declarations)
        assert all(not decl.fields for decl in result.declarations)

    def test_class_keyword_and_bases(self, read_fixture):
        result = parse_source(read_fixture("class.hpp"))
        scriptable = result.declarations[1]

        assert scriptable.kind == DeclarationKind.CLASS
        assert scriptable.name == "IScriptable"
        assert len(scriptable.bases) == 1
        assert scriptable.bases[0].access == "public"
        assert spelling(scriptable.bases[0].type_ref) == "ISerializable"
        assert [f.access for f in scriptable.fields] == ["private", "private"]

    def test_template_base(self, read_fixture):
        audio = parse_source(read_fixture("struct_inherit.hpp")).declarations[3]

        base = audio.bases[0].type_ref
        assert isinstance(base, TemplateInstance)
        assert base.name == "ASystem"
        assert spelling(base) == "ASystem<GameObject>"

    def test_namespaces(self, read_fixture):
        result = parse_source(read_fixture("struct_namespace.hpp"))
        names = [decl.qualified_name for decl in result.declarations]

        assert names == [
            "Awesome::GameApp",
            "Awesome::GameNetwork",
            "Epsiloon::RendererSystem",
            "Epsiloon::AudioSystem",
            "Universe::Body",
            "Universe::Galaxy::StellarSystem::Planet",
            "Universe::Galaxy::StellarSystem::Star",
        ]
        star = result.declarations[-1]
        assert star.namespace == ["Universe", "Galaxy", "StellarSystem"]
        assert star.bases[0].type_ref.name == "Universe::Body"

    def test_attributes_before_name(self, read_fixture):
        backpack = parse_source(read_fixture("struct_alignment.hpp")).declarations[0]

        assert backpack.name == "Backpack"
        assert spelling(backpack.bases[0].type_ref) == "Storage"

    def test_nested_types(self, read_fixture):
        player = _single(read_fixture("struct_nested.hpp"))

        assert [n.qualified_name for n in player.nested] == ["Player::Owner", "Player::Binding"]
        owner = player.nested[0]
        assert owner.parent == "Player"
        assert [e.name for e in owner.enumerators][0] == "Player"
        assert [f.name for f in player.fields] == ["position", "velocity", "rotation", "parent"]

    def test_anonymous_union_member(self):
        outer = _single("struct Outer { union { int32_t i; float f; }; uint8_t tail; };")

        assert len(outer.nested) == 1
        anonymous = outer.nested[0]
        assert anonymous.name.startswith("__anonymous_")
        assert anonymous.keyword == "union"
        assert outer.fields[0].name == anonymous.name
        assert outer.fields[0].type_ref.name == anonymous.name
        assert outer.fields[1].name == "tail"

    def test_nested_record_with_declarator(self):
        outer = _single("struct Outer { struct Inner { int a; } first, second; };")

        assert [f.name for f in outer.fields] == ["first", "second"]
        assert all(f.type_ref.name == "Inner" for f in outer.fields)

    def test_union_kind(self, read_fixture):
        result = parse_source(read_fixture("struct_offsets.hpp"))
        variant = result.declarations[2]

        assert variant.kind == DeclarationKind.UNION
        assert variant.is_union

    def test_template_declarations(self, read_fixture):
        result = parse_source(read_fixture("struct_template.hpp"))

        assert result.diagnostics == []
        assert [decl.name for decl in result.declarations] == ["Vector", "Pair", "Map", "Array"]
        array = result.declarations[3]
        assert array.kind == DeclarationKind.TEMPLATE
        assert [p.name for p in array.template_params] == ["T", "N"]
        assert array.template_params[1].kind == TemplateParamKind.VALUE
        assert spelling(array.template_params[1].value_type) == "uint32_t"

    def test_template_param_defaults(self):
        decl = _single("template<typename T = int, uint32_t N = 4> struct Buffer { T data[N]; };")

        assert spelling(decl.template_params[0].default) == "int"
        default = decl.template_params[1].default
        assert isinstance(default, Literal)
        assert default.value.value == 4


@pytest.mark.unit
class TestFields:
    """Data members, constants and annotations."""

    @pytest.fixture
    def game_app(self, read_fixture):
        return _single(read_fixture("struct.hpp"))

    def test_field_order_and_offsets(self, game_app):
        offsets = {f.name: f.explicit_offset for f in game_app.fields}

        assert offsets["isRunning"] == 0x00
        assert offsets["delta"] == 0x04
        assert offsets["context"] == 0x08
        assert offsets["buffer"] == 0x10
        assert offsets["lines"] == 0x20
        assert offsets["unk30"] == 0x30
        assert offsets["unk4B"] == 0x4B
        assert offsets["unk78"] is None

    def test_comment_text_is_kept(self, game_app):
        assert game_app.fields[1].comment == "04"

    def test_constants_are_not_fields(self, game_app):
        assert [c.name for c in game_app.constants] == ["kMode", "kPi", "kMax", "kAudioSize", "kBool"]
        assert all(c.is_constexpr for c in game_app.constants)
        assert "kMax" not in {f.name for f in game_app.fields}

    def test_constant_expressions(self, game_app):
        constants = {c.name: c for c in game_app.constants}

        assert constants["kMode"].expression.value.kind == ValueKind.BOOL
        assert constants["kPi"].expression.value.kind == ValueKind.FLOAT
        audio = constants["kAudioSize"].expression
        assert isinstance(audio, Cast)
        assert spelling(audio.target) == "uint32_t"
        assert audio.operand.parts == ["ESystemPoolSize", "Audio"]
        bool_hash = constants["kBool"].expression
        assert isinstance(bool_hash, IntrinsicCall)
        assert bool_hash.name == "FNV1a64"
        assert bool_hash.arguments[0].value.value == "Bool"

    def test_array_dimensions(self, game_app):
        fields = {f.name: f for f in game_app.fields}

        unk78 = fields["unk78"].array_dimensions[0]
        assert isinstance(unk78, BinaryOp)
        assert unk78.op == ">>"
        assert isinstance(fields["fixedConstant"].array_dimensions[0], NameLookup)

    def test_template_arguments(self, game_app):
        fields = {f.name: f for f in game_app.fields}

        assert spelling(fields["components"].type_ref) == "DynArray<Handle<void*>>"
        assert spelling(fields["gameObjectRef"].type_ref) == "Handle<game::Object*>"
        vector = fields["vector"].type_ref
        assert isinstance(vector.arguments[1], ConstantArgument)
        # A bare identifier argument stays a type name until resolution
        resources = fields["resources"].type_ref
        assert isinstance(resources.arguments[1], NamedType)
        assert resources.arguments[1].name == "kMax"

    def test_qualified_and_pointer_types(self, game_app):
        fields = {f.name: f for f in game_app.fields}

        assert fields["vehicle"].type_ref.name == "game::vehicle::BaseObject"
        assert fields["gameObject"].type_ref.pointer_depth == 1
        assert fields["context"].type_ref.name == "void"

    def test_duplicate_field_names_are_both_kept(self, game_app):
        assert [f.name for f in game_app.fields].count("pool") == 2

    def test_bitfields(self):
        decl = _single("struct Flags { uint32_t a : 3, b : 5; uint8_t c : 1; };")

        assert [f.name for f in decl.fields] == ["a", "b", "c"]
        assert [f.bitfield.value.value for f in decl.fields] == [3, 5, 1]

    def test_multiple_declarators_share_comment(self):
        decl = _single("struct P { float x, y; // 08\n};")

        assert decl.fields[0].explicit_offset == 8
        assert decl.fields[1].explicit_offset is None
        assert decl.fields[1].comment == "08"

    def test_default_member_initializers(self):
        decl = _single("struct S { int a = 5; int b{7}; };")

        assert decl.fields[0].default_value.value.value == 5
        assert decl.fields[1].default_value.value.value == 7

    def test_c_style_cast(self):
        decl = _single("struct S { static constexpr uint32_t k = (uint32_t)-1; };")

        expression = decl.constants[0].expression
        assert isinstance(expression, Cast)
        assert spelling(expression.target) == "uint32_t"


@pytest.mark.unit
class TestFunctions:
    """Member function signatures."""

    @pytest.fixture
    def functions(self, read_fixture):
        return {f.name: f for f in _single(read_fixture("struct_functions.hpp")).functions}

    def test_all_functions_parsed(self, functions):
        assert set(functions) == {
            "GameApp",
            "~GameApp",
            "GetType",
            "GetNext",
            "operator=",
            "operator()",
            "sub_00",
            "sub_08",
            "sub_0C",
        }

    def test_special_members(self, functions):
        assert functions["GameApp"].is_constructor
        assert functions["~GameApp"].is_destructor
        assert functions["~GameApp"].is_override
        assert functions["GetNext"].is_static
        assert functions["operator()"].is_const
        assert functions["operator()"].is_operator

    def test_virtual_flags(self, functions):
        assert functions["sub_08"].is_virtual
        assert not functions["sub_08"].is_pure_virtual
        assert functions["sub_0C"].is_pure_virtual
        assert not functions["sub_00"].is_dynamic

    def test_parameters(self, functions):
        parameters = functions["sub_0C"].parameters

        assert len(parameters) == 1
        assert parameters[0].name == "a1"
        assert spelling(parameters[0].type_ref) == "const Handle<IScriptable>&"

    def test_function_offset_comment(self):
        decl = _single("class C {\n  virtual void Tick(); // 08\n  void Draw() {}\n};")
        tick, draw = decl.functions

        assert tick.explicit_offset == 8
        assert draw.explicit_offset is None
        assert decl.fields == []


@pytest.mark.unit
class TestRecovery:
    """Diagnostics and resynchronisation."""

    def test_syntax_error_skips_only_broken_declaration(self):
        result = parse_source("struct Bad { int ; };\nstruct Good { int x; };", "bad.hpp")

        assert [decl.name for decl in result.declarations] == ["Good"]
        assert len(result.diagnostics) == 1
        diagnostic = result.diagnostics[0]
        assert diagnostic.kind == DiagnosticKind.SYNTAX_ERROR
        assert diagnostic.severity == Severity.ERROR
        assert diagnostic.location.file == "bad.hpp"
        assert diagnostic.location.line == 1

    def test_error_inside_namespace_resumes_in_namespace(self):
        source = "namespace ns {\n  struct A { int x y; };\n  struct B { int z; };\n}"
        result = parse_source(source)

        assert [decl.qualified_name for decl in result.declarations] == ["ns::B"]
        assert len(result.diagnostics) == 1

    def test_lex_error_aborts_file(self):
        result = parse_source('struct A { const char* s = "open; };', "lex.hpp")

        assert result.declarations == []
        assert result.failed
        assert result.diagnostics[0].kind == DiagnosticKind.LEX_ERROR

    def test_skipped_statements(self):
        source = "using Id = uint32_t;\ntypedef int Handle;\nstatic_assert(sizeof(int) == 4);\nstruct S { using Base = int; int x; };"
        result = parse_source(source)

        assert result.diagnostics == []
        assert [decl.name for decl in result.declarations] == ["S"]
        assert [f.name for f in result.declarations[0].fields] == ["x"]


@pytest.mark.unit
class TestDeclarationForms:
    """Typedef'd definitions, trailing variables and function pointer members."""

    def test_typedef_struct_definition(self):
        result = parse_source("typedef struct Foo { int x; } FooT;\nstruct B { int y; };")

        assert result.diagnostics == []
        assert [decl.name for decl in result.declarations] == ["Foo", "B"]
        assert [f.name for f in result.declarations[0].fields] == ["x"]

    def test_typedef_anonymous_struct_takes_alias_name(self):
        decl = _single("typedef struct {\n  int x; // 00\n} Anon;")

        assert decl.name == "Anon"
        assert decl.fields[0].explicit_offset == 0

    def test_typedef_anonymous_enum_and_alias_list(self):
        result = parse_source("typedef enum : uint8_t { A, B } EKind;\ntypedef struct { int x; } Node, *NodePtr;")

        assert result.diagnostics == []
        assert [decl.name for decl in result.declarations] == ["EKind", "Node"]
        assert [e.name for e in result.declarations[0].enumerators] == ["A", "B"]

    def test_nested_typedef_struct(self):
        decl = _single("struct Outer {\n  typedef struct { int v; } Inner;\n  Inner inner;\n};")

        assert [n.qualified_name for n in decl.nested] == ["Outer::Inner"]
        assert [f.name for f in decl.fields] == ["inner"]

    def test_trailing_variable_after_definition(self):
        result = parse_source("struct A { int x; } a, *pa;\nenum E { One } e;\nstruct B {};")

        assert result.diagnostics == []
        assert [decl.name for decl in result.declarations] == ["A", "E", "B"]

    def test_function_pointer_member(self):
        decl = _single("struct S {\n  void (*callback)(int, float); // 00\n  int x; // 08\n};")

        callback, x = decl.fields
        assert callback.name == "callback"
        assert callback.type_ref.pointer_depth == 1
        assert callback.explicit_offset == 0
        assert x.name == "x"

    def test_member_function_pointer_array(self):
        decl = _single("class C {\n  bool (C::*handlers[4])(int) const;\n  int y;\n};")

        assert [f.name for f in decl.fields] == ["handlers", "y"]
        assert decl.fields[0].type_ref.pointer_depth == 1
        assert len(decl.fields[0].array_dimensions) == 1
