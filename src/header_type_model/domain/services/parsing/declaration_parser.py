#!/usr/bin/env python3

"""Recursive descent parser for the declaration subset.

This module turns a token stream into TypeDeclaration objects, handling:
- Namespaces (including ``namespace a::b``)
- Enums with optional underlying type and initializer expressions
- Structs, classes and unions with base lists and nested types
- Template declarations
- Fields, static/constexpr members and member function signatures

A syntax error aborts only the enclosing top-level declaration; the parser
records a diagnostic and resumes at the next declaration boundary.
"""

import copy
from dataclasses import dataclass, field

from ....infrastructure.logging import get_logger
from ...errors import DeclarationSyntaxError, LexError
from ...models.declarations import (
    BUILTIN_TYPE_WORDS,
    PRIMITIVE_SCALARS,
    BaseSpecifier,
    BinaryOp,
    Cast,
    ConstantArgument,
    ConstantMember,
    DeclarationKind,
    Diagnostic,
    DiagnosticKind,
    Enumerator,
    Expression,
    Field,
    FunctionSignature,
    IntrinsicCall,
    Literal,
    NamedType,
    NameLookup,
    Parameter,
    ResolvedValue,
    Severity,
    SourceLocation,
    TemplateArgument,
    TemplateInstance,
    TemplateParam,
    TemplateParamKind,
    TypeDeclaration,
    TypeRef,
    UnaryOp,
    ValueKind,
    spelling,
)
from ...models.declarations.type_constants import normalize_builtin
from ..lexing import Lexer, Token, TokenKind
from .literals import parse_float_literal, parse_integer_literal, parse_offset_comment

logger = get_logger(__name__)

DECLARATION_KEYWORDS = frozenset(
    {"namespace", "enum", "struct", "class", "union", "template", "typedef", "using"}
)
RECORD_KEYWORDS = frozenset({"struct", "class", "union"})
ACCESS_SPECIFIERS = frozenset({"public", "private", "protected"})
SKIPPED_STATEMENTS = frozenset({"using", "friend", "static_assert", "extern"})
MEMBER_SPECIFIERS = frozenset(
    {
        "static",
        "virtual",
        "inline",
        "constexpr",
        "consteval",
        "constinit",
        "explicit",
        "mutable",
        "const",
        "volatile",
        "friend",
    }
)
CAST_KEYWORDS = frozenset({"static_cast", "reinterpret_cast", "const_cast", "bit_cast"})

# Binary operator precedence levels, loosest first
_BINARY_LEVELS: tuple[tuple[str, ...], ...] = (
    ("|",),
    ("^",),
    ("&",),
    ("<<", ">>"),
    ("+", "-"),
    ("*", "/", "%"),
)


@dataclass
class ParseResult:
    """Declarations and diagnostics produced from one file."""

    filename: str
    declarations: list[TypeDeclaration] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        """True when the file was aborted by a lexical error."""
        return any(d.kind == DiagnosticKind.LEX_ERROR for d in self.diagnostics)


class DeclarationParser:
    """Parses a token list into type declarations."""

    def __init__(self, tokens: list[Token], filename: str = "<input>"):
        """Initialize the parser.

        Args:
            tokens: Output of the lexer, terminated by an EOF token
            filename: Name used in source locations
        """
        self.tokens = tokens
        self.filename = filename
        self.pos = 0
        self.diagnostics: list[Diagnostic] = []
        self._template_depth = 0
        self._anonymous_count = 0

    def parse(self) -> ParseResult:
        """Parse the whole token stream."""
        declarations = self._parse_scope([], closing=False)
        logger.debug(
            f"Parsed {len(declarations)} top-level declaration(s) from {self.filename} "
            f"with {len(self.diagnostics)} diagnostic(s)"
        )
        return ParseResult(self.filename, declarations, self.diagnostics)

    # ---- Token helpers ----

    def _peek(self, offset: int = 0) -> Token:
        pos = self.pos + offset
        if pos < len(self.tokens):
            return self.tokens[pos]
        return self.tokens[-1]

    def _advance(self) -> Token:
        tok = self._peek()
        if tok.kind != TokenKind.EOF:
            self.pos += 1
        return tok

    def _at_end(self) -> bool:
        return self._peek().kind == TokenKind.EOF

    def _match(self, *values: str) -> Token | None:
        tok = self._peek()
        if tok.kind in (TokenKind.PUNCTUATION, TokenKind.IDENTIFIER) and tok.value in values:
            return self._advance()
        return None

    def _expect(self, value: str) -> Token:
        tok = self._peek()
        if tok.kind in (TokenKind.PUNCTUATION, TokenKind.IDENTIFIER) and tok.value == value:
            return self._advance()
        raise self._error(f"Expected '{value}', got {self._describe(tok)}")

    def _expect_identifier(self, what: str = "identifier") -> Token:
        tok = self._peek()
        if tok.kind == TokenKind.IDENTIFIER:
            return self._advance()
        raise self._error(f"Expected {what}, got {self._describe(tok)}")

    def _expect_closing_angle(self) -> None:
        """Expect '>' and split '>>' / '>=' / '>>=' tokens in generic context."""
        tok = self._peek()
        if tok.is_punct(">"):
            self._advance()
            return
        if tok.is_punct(">>", ">=", ">>="):
            rest = tok.value[1:]
            self.tokens[self.pos] = Token(TokenKind.PUNCTUATION, ">", tok.line, tok.column, tok.leading_comments)
            self.tokens.insert(self.pos + 1, Token(TokenKind.PUNCTUATION, rest, tok.line, tok.column + 1))
            self._advance()
            return
        raise self._error(f"Expected '>', got {self._describe(tok)}")

    def _location(self, tok: Token | None = None) -> SourceLocation:
        tok = tok or self._peek()
        return SourceLocation(self.filename, tok.line, tok.column)

    def _error(self, message: str) -> DeclarationSyntaxError:
        tok = self._peek()
        return DeclarationSyntaxError(message, tok.line, tok.column)

    @staticmethod
    def _describe(tok: Token) -> str:
        if tok.kind == TokenKind.EOF:
            return "end of file"
        return f"'{tok.value}'"

    def _skip_balanced(self, opening: str, closing: str) -> None:
        """Skip a balanced group starting at the current opening token."""
        depth = 0
        while not self._at_end():
            tok = self._advance()
            if tok.is_punct(opening):
                depth += 1
            elif tok.is_punct(closing):
                depth -= 1
                if depth == 0:
                    return
        raise self._error(f"Unbalanced '{opening}'")

    def _skip_statement(self) -> None:
        """Skip to the end of the current statement, honouring nested brackets."""
        while not self._at_end():
            tok = self._peek()
            if tok.is_punct(";"):
                self._advance()
                return
            if tok.is_punct("}"):
                return
            if tok.is_punct("{"):
                self._skip_balanced("{", "}")
            elif tok.is_punct("("):
                self._skip_balanced("(", ")")
            else:
                self._advance()

    def _skip_attributes(self) -> None:
        """Skip ``[[...]]``, ``alignas(...)`` and ``__declspec(...)`` style attributes."""
        while True:
            if self._peek().is_punct("[") and self._peek(1).is_punct("["):
                self._skip_balanced("[", "]")
            elif self._peek().is_word("alignas", "__declspec", "__attribute__") and self._peek(1).is_punct("("):
                self._advance()
                self._skip_balanced("(", ")")
            else:
                return

    def _trailing_comment(self, end: Token) -> str | None:
        """Return the first comment written on the same line right after ``end``."""
        following = self._peek()
        for comment in following.leading_comments:
            if comment.line == end.line:
                return comment.text.strip()
        return None

    def _anonymous_name(self) -> str:
        self._anonymous_count += 1
        return f"__anonymous_{self._anonymous_count}"

    # ---- Scopes and recovery ----

    def _parse_scope(self, namespace: list[str], closing: bool) -> list[TypeDeclaration]:
        declarations: list[TypeDeclaration] = []

        while not self._at_end():
            if closing and self._peek().is_punct("}"):
                break
            if self._match(";"):
                continue

            start = self.pos
            try:
                declarations.extend(self._parse_top_level(namespace))
            except DeclarationSyntaxError as e:
                self.diagnostics.append(
                    Diagnostic(
                        Severity.ERROR,
                        DiagnosticKind.SYNTAX_ERROR,
                        e.reason,
                        SourceLocation(self.filename, e.line, e.column),
                    )
                )
                logger.debug(f"{self.filename}: syntax error: {e}")
                self._synchronize(start, closing)

        return declarations

    def _synchronize(self, start: int, closing: bool) -> None:
        """Skip the broken declaration starting at ``start``."""
        self.pos = start
        depth = 0
        first = True
        while not self._at_end():
            tok = self._peek()
            if depth == 0 and tok.is_punct("}") and closing:
                return
            if depth == 0 and not first and tok.is_word(*DECLARATION_KEYWORDS):
                return
            self._advance()
            first = False
            if tok.is_punct("{"):
                depth += 1
            elif tok.is_punct("}"):
                depth -= 1
                if depth <= 0:
                    self._match(";")
                    return
            elif tok.is_punct(";") and depth == 0:
                return

    def _parse_top_level(self, namespace: list[str]) -> list[TypeDeclaration]:
        tok = self._peek()

        if tok.is_word("namespace", "inline") and (tok.value == "namespace" or self._peek(1).is_word("namespace")):
            return self._parse_namespace(namespace)

        if tok.is_word("template"):
            params = self._parse_template_params()
            if self._peek().is_word(*RECORD_KEYWORDS) and self._is_record_definition():
                declaration = self._parse_record(namespace, None, params)
                self._skip_variable_declarators()
                return [declaration]
            # Function or alias templates carry nothing for the type model
            self._skip_statement()
            return []

        if tok.is_word("enum"):
            if self._is_enum_definition():
                declaration = self._parse_enum(namespace, None)
                self._skip_variable_declarators()
                return [declaration]
            self._skip_statement()
            return []

        if tok.is_word(*RECORD_KEYWORDS):
            if self._is_record_definition():
                declaration = self._parse_record(namespace, None, [])
                self._skip_variable_declarators()
                return [declaration]
            # Forward declaration (struct X;) or a variable of elaborated type
            self._skip_statement()
            return []

        if tok.is_word("typedef"):
            return self._parse_typedef(namespace, None)

        if tok.is_word(*SKIPPED_STATEMENTS):
            self._skip_statement()
            return []

        raise self._error(f"Unexpected {self._describe(tok)} at declaration level")

    def _parse_namespace(self, namespace: list[str]) -> list[TypeDeclaration]:
        self._match("inline")
        self._expect("namespace")

        parts: list[str] = []
        if self._peek().kind == TokenKind.IDENTIFIER:
            parts.append(self._advance().value)
            while self._match("::"):
                self._match("inline")
                parts.append(self._expect_identifier("namespace name").value)

        self._expect("{")
        declarations = self._parse_scope(namespace + parts, closing=True)
        self._expect("}")
        self._match(";")
        return declarations

    def _parse_typedef(self, namespace: list[str], parent: str | None) -> list[TypeDeclaration]:
        """
        Parse ``typedef struct Foo { ... } FooT;`` style definitions.

        The record or enum definition is kept and the alias declarators are
        skipped. An anonymous definition takes the name of its first alias.
        Plain aliases (``typedef uint32_t Id;``) carry nothing for the type model.
        """
        self._expect("typedef")
        while self._match("const", "volatile"):
            pass

        tok = self._peek()
        if tok.is_word("enum") and self._is_enum_definition():
            if self._peek(1).is_punct("{", ":"):
                self._name_anonymous_definition()
            declaration = self._parse_enum(namespace, parent)
        elif tok.is_word(*RECORD_KEYWORDS) and self._is_record_definition():
            if self._peek(1).is_punct("{"):
                self._name_anonymous_definition()
            declaration = self._parse_record(namespace, parent, [])
        else:
            self._skip_statement()
            return []

        self._skip_statement()
        return [declaration]

    def _name_anonymous_definition(self) -> None:
        """Insert a name after the keyword at the cursor, taken from the typedef alias."""
        offset = 1
        while not self._peek(offset).is_punct("{") and self._peek(offset).kind != TokenKind.EOF:
            offset += 1
        offset = self._skip_ahead(offset, "{", "}")
        while self._peek(offset).is_punct("*", "&"):
            offset += 1
        alias = self._peek(offset)
        name = alias.value if alias.kind == TokenKind.IDENTIFIER else self._anonymous_name()

        keyword_tok = self._peek()
        self.tokens.insert(self.pos + 1, Token(TokenKind.IDENTIFIER, name, keyword_tok.line, keyword_tok.column))

    def _skip_variable_declarators(self) -> None:
        """Skip ``a, *b;`` following a definition at namespace scope."""
        tok = self._peek()
        if tok.is_punct("*", "&") or (
            tok.kind == TokenKind.IDENTIFIER and not tok.is_word(*DECLARATION_KEYWORDS, *SKIPPED_STATEMENTS, "inline")
        ):
            self._skip_statement()

    # ---- Lookahead ----

    def _is_record_definition(self) -> bool:
        """True if the record keyword at the cursor starts a definition with a body."""
        offset = 1
        while offset < 256:
            tok = self._peek(offset)
            if tok.kind == TokenKind.EOF:
                return False
            if tok.is_word("alignas", "__declspec", "__attribute__") and self._peek(offset + 1).is_punct("("):
                offset = self._skip_ahead(offset + 1, "(", ")")
                continue
            if tok.is_punct("[") and self._peek(offset + 1).is_punct("["):
                offset = self._skip_ahead(offset, "[", "]")
                continue
            if tok.is_punct("<"):
                # Specialisation arguments
                offset = self._skip_ahead(offset, "<", ">")
                continue
            if tok.is_punct("{", ":"):
                return True
            if tok.kind == TokenKind.PUNCTUATION and not tok.is_punct("::"):
                return False
            offset += 1
        return False

    def _skip_ahead(self, offset: int, opening: str, closing: str) -> int:
        """Return the lookahead offset just past the group opened at ``offset``."""
        depth = 0
        while True:
            tok = self._peek(offset)
            if tok.kind == TokenKind.EOF:
                return offset
            if tok.is_punct(opening):
                depth += 1
            elif tok.is_punct(closing):
                depth -= 1
            elif closing == ">" and tok.is_punct(">>"):
                depth -= 2
            offset += 1
            if depth <= 0:
                return offset

    def _is_enum_definition(self) -> bool:
        offset = 1
        while True:
            tok = self._peek(offset)
            if tok.kind == TokenKind.EOF or tok.is_punct(";", "*", "&", "}"):
                return False
            if tok.is_punct("{"):
                return True
            offset += 1

    # ---- Enums ----

    def _parse_enum(self, namespace: list[str], parent: str | None) -> TypeDeclaration:
        start = self._expect("enum")
        keyword = "enum"
        is_scoped = False
        if self._match("class", "struct"):
            keyword = "enum class"
            is_scoped = True
        self._skip_attributes()

        if self._peek().kind == TokenKind.IDENTIFIER:
            name = self._advance().value
        else:
            name = self._anonymous_name()

        underlying = None
        if self._match(":"):
            underlying = self._parse_type()

        declaration = TypeDeclaration(
            name=name,
            kind=DeclarationKind.ENUM,
            keyword=keyword,
            namespace=list(namespace),
            parent=parent,
            is_scoped=is_scoped,
            underlying_type=underlying,
            location=self._location(start),
        )

        self._expect("{")
        while not self._peek().is_punct("}"):
            name_tok = self._expect_identifier("enumerator name")
            self._skip_attributes()
            expression = None
            if self._match("="):
                expression = self._parse_expression()
            declaration.enumerators.append(
                Enumerator(
                    name=name_tok.value,
                    expression=expression,
                    is_alias=isinstance(expression, NameLookup),
                    location=self._location(name_tok),
                )
            )
            if not self._match(","):
                break
        self._expect("}")
        self._match(";")

        logger.debug(f"Parsed enum {declaration.qualified_name} ({len(declaration.enumerators)} values)")
        return declaration

    # ---- Records ----

    def _parse_template_params(self) -> list[TemplateParam]:
        self._expect("template")
        self._expect("<")
        params: list[TemplateParam] = []
        self._template_depth += 1
        try:
            if self._peek().is_punct(">", ">>"):
                self._expect_closing_angle()
                return params

            while True:
                params.append(self._parse_template_param())
                if not self._match(","):
                    break
            self._expect_closing_angle()
        finally:
            self._template_depth -= 1
        return params

    def _parse_template_param(self) -> TemplateParam:
        if self._peek().is_word("template"):
            # template template parameter: template<typename> class C
            self._parse_template_params()

        if self._peek().is_word("typename", "class") and not self._peek(1).is_punct("::"):
            self._advance()
            self._match("...")
            name = self._advance().value if self._peek().kind == TokenKind.IDENTIFIER else self._anonymous_name()
            default: TypeRef | Expression | None = None
            if self._match("="):
                default = self._parse_type_with_declarator()
            return TemplateParam(name=name, kind=TemplateParamKind.TYPE, default=default)

        value_type = self._parse_type_with_declarator()
        self._match("...")
        name = self._expect_identifier("template parameter name").value
        default = None
        if self._match("="):
            default = self._parse_expression()
        return TemplateParam(name=name, kind=TemplateParamKind.VALUE, value_type=value_type, default=default)

    def _parse_record(
        self, namespace: list[str], parent: str | None, template_params: list[TemplateParam]
    ) -> TypeDeclaration:
        keyword_tok = self._advance()
        keyword = keyword_tok.value
        self._skip_attributes()

        name_parts = [self._expect_identifier(f"{keyword} name").value]
        while self._match("::"):
            name_parts.append(self._expect_identifier(f"{keyword} name").value)
        if self._peek().is_punct("<"):
            # Explicit specialisation arguments are not matched; keep the primary name
            self._parse_template_args()
        self._match("final")

        if template_params:
            kind = DeclarationKind.TEMPLATE
        elif keyword == "union":
            kind = DeclarationKind.UNION
        elif keyword == "class":
            kind = DeclarationKind.CLASS
        else:
            kind = DeclarationKind.STRUCT

        declaration = TypeDeclaration(
            name=name_parts[-1],
            kind=kind,
            keyword=keyword,
            namespace=list(namespace) + (name_parts[:-1] if parent is None else []),
            parent=parent,
            template_params=template_params,
            location=self._location(keyword_tok),
        )

        if self._match(":"):
            declaration.bases = self._parse_base_list()

        self._expect("{")
        self._parse_record_body(declaration)
        self._expect("}")

        logger.debug(
            f"Parsed {keyword} {declaration.qualified_name}: {len(declaration.fields)} fields, "
            f"{len(declaration.functions)} functions, {len(declaration.nested)} nested types"
        )
        return declaration

    def _parse_base_list(self) -> list[BaseSpecifier]:
        bases: list[BaseSpecifier] = []
        while True:
            access = None
            is_virtual = False
            while self._peek().is_word("public", "private", "protected", "virtual"):
                word = self._advance().value
                if word == "virtual":
                    is_virtual = True
                else:
                    access = word
            bases.append(BaseSpecifier(type_ref=self._parse_type(), access=access, is_virtual=is_virtual))
            if not self._match(","):
                return bases

    def _parse_record_body(self, declaration: TypeDeclaration) -> None:
        access = "private" if declaration.keyword == "class" else "public"

        while not self._peek().is_punct("}"):
            if self._at_end():
                raise self._error(f"Unterminated body of {declaration.qualified_name}")

            tok = self._peek()

            if self._match(";"):
                continue

            if tok.is_word(*ACCESS_SPECIFIERS) and self._peek(1).is_punct(":"):
                access = self._advance().value
                self._advance()
                continue

            if tok.is_word("typedef"):
                declaration.nested.extend(self._parse_typedef(declaration.namespace, declaration.qualified_name))
                continue

            if tok.is_word(*SKIPPED_STATEMENTS):
                self._skip_statement()
                continue

            if tok.is_word("template"):
                params = self._parse_template_params()
                if self._peek().is_word(*RECORD_KEYWORDS) and self._is_record_definition():
                    declaration.nested.append(
                        self._parse_record(declaration.namespace, declaration.qualified_name, params)
                    )
                    self._parse_trailing_declarators(declaration, access)
                else:
                    self._parse_member(declaration, access)
                continue

            if tok.is_word("enum") and self._is_enum_definition():
                declaration.nested.append(self._parse_enum(declaration.namespace, declaration.qualified_name))
                continue

            if tok.is_word(*RECORD_KEYWORDS) and self._is_record_definition():
                self._parse_nested_record(declaration, access)
                continue

            self._parse_member(declaration, access)

    def _parse_nested_record(self, declaration: TypeDeclaration, access: str) -> None:
        if self._peek(1).is_punct("{"):
            # Anonymous struct/union: give it a name and a member of that type
            keyword_tok = self._advance()
            name = self._anonymous_name()
            self.tokens.insert(self.pos, Token(TokenKind.IDENTIFIER, name, keyword_tok.line, keyword_tok.column))
            self.pos -= 1
            nested = self._parse_record(declaration.namespace, declaration.qualified_name, [])
            declaration.nested.append(nested)
            if self._peek().kind == TokenKind.IDENTIFIER:
                self._parse_field_declarators(declaration, NamedType(name), access, is_static=False, is_constexpr=False)
            else:
                declaration.fields.append(
                    Field(name=name, type_ref=NamedType(name), access=access, location=nested.location)
                )
                self._match(";")
            return

        nested = self._parse_record(declaration.namespace, declaration.qualified_name, [])
        declaration.nested.append(nested)
        self._parse_trailing_declarators(declaration, access, nested.name)

    def _parse_trailing_declarators(self, declaration: TypeDeclaration, access: str, type_name: str | None = None) -> None:
        """Handle ``struct Inner { ... } inner;`` style member declarations."""
        if type_name is not None and not self._peek().is_punct(";", "}"):
            self._parse_field_declarators(declaration, NamedType(type_name), access, is_static=False, is_constexpr=False)
            return
        self._match(";")

    # ---- Members ----

    def _parse_member(self, declaration: TypeDeclaration, access: str) -> None:
        start = self._peek()
        specifiers: set[str] = set()
        self._skip_attributes()
        while self._peek().is_word(*MEMBER_SPECIFIERS):
            specifiers.add(self._advance().value)
            self._skip_attributes()

        # Destructor
        if self._peek().is_punct("~"):
            self._advance()
            name = "~" + self._expect_identifier("destructor name").value
            self._parse_function(declaration, name, None, specifiers, start, is_destructor=True)
            return

        # Constructor
        if self._peek().is_word(declaration.name) and self._peek(1).is_punct("("):
            self._advance()
            self._parse_function(declaration, declaration.name, None, specifiers, start, is_constructor=True)
            return

        # Conversion operator
        if self._peek().is_word("operator"):
            self._advance()
            target = self._parse_type_with_declarator()
            name = f"operator {spelling(target)}"
            self._parse_function(declaration, name, target, specifiers, start, is_operator=True)
            return

        base_type = self._parse_type()
        if "const" in specifiers:
            base_type.is_const = True

        # Member function: type [ptr-ops] name '(' or type [ptr-ops] operator...
        saved = self.pos
        candidate = copy.deepcopy(base_type)
        self._parse_pointer_operators(candidate)
        if self._peek().is_word("operator"):
            self._advance()
            name = "operator" + self._parse_operator_symbol()
            self._parse_function(declaration, name, candidate, specifiers, start, is_operator=True)
            return
        if self._peek().kind == TokenKind.IDENTIFIER and self._peek(1).is_punct("("):
            name = self._advance().value
            self._parse_function(declaration, name, candidate, specifiers, start)
            return
        self.pos = saved

        self._parse_field_declarators(
            declaration,
            base_type,
            access,
            is_static="static" in specifiers,
            is_constexpr="constexpr" in specifiers,
        )

    def _parse_operator_symbol(self) -> str:
        if self._peek().is_punct("(") and self._peek(1).is_punct(")"):
            self._advance()
            self._advance()
            return "()"
        if self._peek().is_punct("[") and self._peek(1).is_punct("]"):
            self._advance()
            self._advance()
            return "[]"
        if self._peek().is_word("new", "delete"):
            word = self._advance().value
            if self._peek().is_punct("[") and self._peek(1).is_punct("]"):
                self._advance()
                self._advance()
                word += "[]"
            return " " + word
        symbol = ""
        while not self._peek().is_punct("(") and not self._at_end():
            symbol += self._advance().value
        if not symbol:
            raise self._error("Expected operator symbol")
        return symbol

    def _parse_pointer_operators(self, ref: TypeRef) -> None:
        while True:
            if self._match("*"):
                ref.pointer_depth += 1
                while self._match("const", "volatile", "__restrict", "restrict"):
                    pass
            elif self._match("&", "&&"):
                ref.is_reference = True
            else:
                return

    def _parse_field_declarators(
        self,
        declaration: TypeDeclaration,
        base_type: TypeRef,
        access: str,
        is_static: bool,
        is_constexpr: bool,
    ) -> None:
        pending: list[Field] = []

        while True:
            type_ref = copy.deepcopy(base_type)
            self._parse_pointer_operators(type_ref)
            dimensions: list[Expression] = []
            if self._peek().is_punct("(") and self._is_function_pointer_declarator():
                name_tok = self._parse_function_pointer_declarator(type_ref, dimensions)
            else:
                name_tok = self._expect_identifier("member name")
            self._skip_attributes()

            while self._match("["):
                if self._peek().is_punct("]"):
                    raise self._error("Flexible array members are not supported")
                dimensions.append(self._parse_expression())
                self._expect("]")

            bitfield = None
            if self._match(":"):
                bitfield = self._parse_expression()

            initializer = None
            if self._match("="):
                initializer = self._parse_expression()
            elif self._peek().is_punct("{"):
                self._advance()
                if not self._peek().is_punct("}"):
                    initializer = self._parse_expression()
                    while self._match(","):
                        self._parse_expression()
                self._expect("}")

            location = self._location(name_tok)
            if is_static or is_constexpr:
                declaration.constants.append(
                    ConstantMember(
                        name=name_tok.value,
                        type_ref=type_ref,
                        expression=initializer,
                        is_constexpr=is_constexpr,
                        array_dimensions=dimensions,
                        location=location,
                    )
                )
            else:
                new_field = Field(
                    name=name_tok.value,
                    type_ref=type_ref,
                    array_dimensions=dimensions,
                    bitfield=bitfield,
                    default_value=initializer,
                    access=access,
                    location=location,
                )
                declaration.fields.append(new_field)
                pending.append(new_field)

            if not self._match(","):
                break

        if self._peek().is_punct(";"):
            end = self._advance()
            comment = self._trailing_comment(end)
            if comment is not None:
                offset = parse_offset_comment(comment)
                for annotated in pending:
                    annotated.comment = comment
                # The annotation describes the first declarator
                if pending:
                    pending[0].explicit_offset = offset
        elif not self._peek().is_punct("}"):
            raise self._error(f"Expected ';' after member, got {self._describe(self._peek())}")

    def _is_function_pointer_declarator(self) -> bool:
        """True for ``(*name)(...)`` or ``(Class::*name)(...)`` at the cursor."""
        offset = 1
        while self._peek(offset).kind == TokenKind.IDENTIFIER and self._peek(offset + 1).is_punct("::"):
            offset += 2
        return self._peek(offset).is_punct("*", "&")

    def _parse_function_pointer_declarator(self, type_ref: TypeRef, dimensions: list[Expression]) -> Token:
        """
        Parse ``(*name[N])(params)``.

        The member is recorded as a pointer to the return type: only its
        pointer size matters for the layout.
        """
        self._expect("(")
        while not self._peek().is_punct("*", "&"):
            self._advance()
        self._parse_pointer_operators(type_ref)
        name_tok = self._expect_identifier("member name")
        while self._match("["):
            dimensions.append(self._parse_expression())
            self._expect("]")
        self._expect(")")

        if not self._peek().is_punct("("):
            raise self._error(f"Expected parameter list, got {self._describe(self._peek())}")
        self._skip_balanced("(", ")")
        while self._match("const", "noexcept"):
            pass
        return name_tok

    def _parse_function(
        self,
        declaration: TypeDeclaration,
        name: str,
        return_type: TypeRef | None,
        specifiers: set[str],
        start: Token,
        is_constructor: bool = False,
        is_destructor: bool = False,
        is_operator: bool = False,
    ) -> None:
        signature = FunctionSignature(
            name=name,
            return_type=return_type,
            is_static="static" in specifiers,
            is_virtual="virtual" in specifiers,
            is_operator=is_operator,
            is_constructor=is_constructor,
            is_destructor=is_destructor,
            location=self._location(start),
        )
        signature.parameters = self._parse_parameters()

        # Trailing qualifiers
        while True:
            if self._match("const"):
                signature.is_const = True
            elif self._match("volatile", "&", "&&", "final"):
                pass
            elif self._match("override"):
                signature.is_override = True
            elif self._match("noexcept", "throw"):
                if self._peek().is_punct("("):
                    self._skip_balanced("(", ")")
            elif self._match("->"):
                signature.return_type = self._parse_type_with_declarator()
            elif self._peek().is_punct("[") and self._peek(1).is_punct("["):
                self._skip_attributes()
            else:
                break

        if self._match("="):
            if self._match("default"):
                signature.is_defaulted = True
            elif self._match("delete"):
                signature.is_deleted = True
            else:
                value = self._advance()
                if value.kind != TokenKind.INTEGER or parse_integer_literal(value.value) != 0:
                    raise self._error(f"Expected '0', 'default' or 'delete', got '{value.value}'")
                signature.is_pure_virtual = True

        if self._peek().is_punct(":") and is_constructor:
            # Member initializer list before an inline body
            while not self._peek().is_punct("{") and not self._at_end():
                self._advance()

        if self._peek().is_punct("{"):
            self._skip_balanced("{", "}")
            self._match(";")
        elif self._peek().is_punct(";"):
            end = self._advance()
            comment = self._trailing_comment(end)
            if comment is not None:
                signature.explicit_offset = parse_offset_comment(comment)
        elif not self._peek().is_punct("}"):
            raise self._error(f"Expected ';' after declaration of {name}, got {self._describe(self._peek())}")

        declaration.functions.append(signature)

    def _parse_parameters(self) -> list[Parameter]:
        self._expect("(")
        parameters: list[Parameter] = []
        if self._match(")"):
            return parameters
        if self._peek().is_word("void") and self._peek(1).is_punct(")"):
            self._advance()
            self._advance()
            return parameters

        while True:
            if self._match("..."):
                self._expect(")")
                return parameters
            self._skip_attributes()
            type_ref = self._parse_type_with_declarator()
            name = None
            if self._peek().kind == TokenKind.IDENTIFIER:
                name = self._advance().value
            while self._peek().is_punct("["):
                self._skip_balanced("[", "]")
                type_ref.pointer_depth += 1
            if self._match("="):
                self._skip_default_argument()
            parameters.append(Parameter(type_ref=type_ref, name=name))
            if not self._match(","):
                break
        self._expect(")")
        return parameters

    def _skip_default_argument(self) -> None:
        depth = 0
        while not self._at_end():
            tok = self._peek()
            if depth == 0 and tok.is_punct(",", ")"):
                return
            if tok.is_punct("(", "{", "["):
                depth += 1
            elif tok.is_punct(")", "}", "]"):
                depth -= 1
            self._advance()

    # ---- Types ----

    def _parse_type(self) -> TypeRef:
        """Parse a type without pointer/reference declarators."""
        is_const = False
        while self._peek().is_word("const", "volatile", "typename", "struct", "class", "enum", "union", "mutable"):
            if self._advance().value == "const":
                is_const = True

        tok = self._peek()
        ref: TypeRef
        if tok.is_word(*BUILTIN_TYPE_WORDS):
            words: list[str] = []
            while self._peek().is_word(*BUILTIN_TYPE_WORDS):
                words.append(self._advance().value)
                while self._match("const", "volatile"):
                    is_const = True
            ref = NamedType(normalize_builtin(words))
        elif tok.kind == TokenKind.IDENTIFIER or tok.is_punct("::"):
            ref = self._parse_qualified_type()
        else:
            raise self._error(f"Expected type, got {self._describe(tok)}")

        while self._match("const", "volatile"):
            is_const = True
        ref.is_const = ref.is_const or is_const
        return ref

    def _parse_qualified_type(self) -> TypeRef:
        parts: list[str] = []
        self._match("::")
        parts.append(self._expect_identifier("type name").value)

        arguments: list[TemplateArgument] | None = None
        while True:
            if self._peek().is_punct("<"):
                arguments = self._parse_template_args()
                if self._peek().is_punct("::"):
                    # Dependent name like Foo<T>::Bar: keep it as one opaque spelling
                    head = TemplateInstance(name="::".join(parts), arguments=arguments)
                    parts = [spelling(head)]
                    arguments = None
                    continue
                break
            if self._peek().is_punct("::") and self._peek(1).kind == TokenKind.IDENTIFIER:
                self._advance()
                self._match("template")
                parts.append(self._advance().value)
                continue
            break

        name = "::".join(parts)
        if arguments is not None:
            return TemplateInstance(name=name, arguments=arguments)
        return NamedType(name=name)

    def _parse_type_with_declarator(self) -> TypeRef:
        ref = self._parse_type()
        self._parse_pointer_operators(ref)
        return ref

    def _parse_template_args(self) -> list[TemplateArgument]:
        self._expect("<")
        arguments: list[TemplateArgument] = []
        self._template_depth += 1
        try:
            if self._peek().is_punct(">", ">>", ">=", ">>="):
                self._expect_closing_angle()
                return arguments
            while True:
                arguments.append(self._parse_template_argument())
                if not self._match(","):
                    break
            self._expect_closing_angle()
        finally:
            self._template_depth -= 1
        return arguments

    def _parse_template_argument(self) -> TemplateArgument:
        tok = self._peek()
        starts_expression = (
            tok.kind in (TokenKind.INTEGER, TokenKind.FLOAT, TokenKind.CHARACTER, TokenKind.STRING)
            or tok.is_punct("(", "-", "+", "~", "!")
            or tok.is_word("true", "false", "nullptr", "sizeof", *CAST_KEYWORDS)
        )
        if not starts_expression:
            saved = self.pos
            try:
                ref = self._parse_type_with_declarator()
                if self._peek().is_punct(",", ">", ">>", ">=", ">>="):
                    return ref
            except DeclarationSyntaxError:
                pass
            self.pos = saved

        return ConstantArgument(expression=self._parse_expression())

    # ---- Expressions ----

    def _parse_expression(self, level: int = 0) -> Expression:
        if level == len(_BINARY_LEVELS):
            return self._parse_unary()

        left = self._parse_expression(level + 1)
        operators = _BINARY_LEVELS[level]
        while True:
            tok = self._peek()
            if tok.kind != TokenKind.PUNCTUATION or tok.value not in operators:
                return left
            # Inside template arguments '>>' closes the list
            if tok.value == ">>" and self._template_depth > 0:
                return left
            self._advance()
            right = self._parse_expression(level + 1)
            left = BinaryOp(op=tok.value, left=left, right=right, location=self._location(tok))

    def _parse_unary(self) -> Expression:
        tok = self._peek()
        if tok.is_punct("-", "+", "~", "!"):
            self._advance()
            operand = self._parse_unary()
            return UnaryOp(op=tok.value, operand=operand, location=self._location(tok))
        return self._parse_primary()

    def _parse_primary(self) -> Expression:
        tok = self._peek()
        location = self._location(tok)

        if tok.kind == TokenKind.INTEGER:
            self._advance()
            try:
                value = parse_integer_literal(tok.value)
            except ValueError:
                raise DeclarationSyntaxError(f"Malformed integer literal '{tok.value}'", tok.line, tok.column)
            return Literal(ResolvedValue.integer(value), location)

        if tok.kind == TokenKind.FLOAT:
            self._advance()
            try:
                number = parse_float_literal(tok.value)
            except ValueError:
                raise DeclarationSyntaxError(f"Malformed float literal '{tok.value}'", tok.line, tok.column)
            return Literal(ResolvedValue(ValueKind.FLOAT, number), location)

        if tok.kind == TokenKind.CHARACTER:
            self._advance()
            return Literal(ResolvedValue.integer(ord(tok.value[0]) if tok.value else 0), location)

        if tok.kind == TokenKind.STRING:
            text = ""
            while self._peek().kind == TokenKind.STRING:
                text += self._advance().value
            return Literal(ResolvedValue(ValueKind.STRING, text), location)

        if tok.is_word("true", "false"):
            self._advance()
            return Literal(ResolvedValue(ValueKind.BOOL, tok.value == "true"), location)

        if tok.is_word("nullptr"):
            self._advance()
            return Literal(ResolvedValue.integer(0), location)

        if tok.is_punct("("):
            return self._parse_parenthesized()

        if tok.is_word(*CAST_KEYWORDS):
            self._advance()
            self._expect("<")
            self._template_depth += 1
            try:
                target = self._parse_type_with_declarator()
                self._expect_closing_angle()
            finally:
                self._template_depth -= 1
            operand = self._parse_call_operand()
            return Cast(target=target, operand=operand, location=location)

        if tok.is_word("sizeof", "alignof", "offsetof"):
            self._advance()
            if self._peek().is_punct("("):
                self._skip_balanced("(", ")")
            return IntrinsicCall(name=tok.value, location=location)

        if tok.is_word(*BUILTIN_TYPE_WORDS):
            target = self._parse_type()
            operand = self._parse_call_operand()
            return Cast(target=target, operand=operand, location=location)

        if tok.kind == TokenKind.IDENTIFIER or tok.is_punct("::"):
            self._match("::")
            parts = [self._expect_identifier().value]
            while self._peek().is_punct("::") and self._peek(1).kind == TokenKind.IDENTIFIER:
                self._advance()
                parts.append(self._advance().value)
            if self._peek().is_punct("("):
                return IntrinsicCall(name="::".join(parts), arguments=self._parse_arguments(), location=location)
            return NameLookup(parts=parts, location=location)

        raise self._error(f"Expected expression, got {self._describe(tok)}")

    def _parse_parenthesized(self) -> Expression:
        open_tok = self._expect("(")
        saved_depth = self._template_depth
        self._template_depth = 0
        try:
            # C-style cast: (uint32_t)expr
            head = self._peek()
            if head.is_word(*BUILTIN_TYPE_WORDS, "const") or (
                head.value in PRIMITIVE_SCALARS and self._peek(1).is_punct(")", "*")
            ):
                saved = self.pos
                try:
                    target = self._parse_type_with_declarator()
                    if self._match(")"):
                        operand = self._parse_unary()
                        return Cast(target=target, operand=operand, location=self._location(open_tok))
                except DeclarationSyntaxError:
                    pass
                self.pos = saved
            expression = self._parse_expression()
            self._expect(")")
            return expression
        finally:
            self._template_depth = saved_depth

    def _parse_call_operand(self) -> Expression:
        self._expect("(")
        saved_depth = self._template_depth
        self._template_depth = 0
        try:
            operand = self._parse_expression()
            self._expect(")")
        finally:
            self._template_depth = saved_depth
        return operand

    def _parse_arguments(self) -> list[Expression]:
        self._expect("(")
        saved_depth = self._template_depth
        self._template_depth = 0
        arguments: list[Expression] = []
        try:
            if self._match(")"):
                return arguments
            while True:
                arguments.append(self._parse_expression())
                if not self._match(","):
                    break
            self._expect(")")
        finally:
            self._template_depth = saved_depth
        return arguments


def parse_source(source: str, filename: str = "<input>") -> ParseResult:
    """Lex and parse one file.

    A lexical error aborts only this file and is reported as a LEX_ERROR
    diagnostic with no declarations.

    Args:
        source: Raw declaration text
        filename: Name used in source locations

    Returns:
        ParseResult with declarations and diagnostics
    """
    try:
        tokens = Lexer(source, filename).tokenize()
    except LexError as e:
        logger.warning(f"{filename}: {e}")
        return ParseResult(
            filename,
            diagnostics=[
                Diagnostic(
                    Severity.ERROR,
                    DiagnosticKind.LEX_ERROR,
                    e.reason,
                    SourceLocation(filename, e.line, e.column),
                )
            ],
        )
    return DeclarationParser(tokens, filename).parse()
