#!/usr/bin/env python3

"""Built-in scalar types understood by the declaration subset.

Sizes are the usual LP64 values. Pointer-sized entries are marked with ``None``
and take their size from the configured ABI.
"""

# name -> (size in bytes, is_signed); None means pointer-sized
PRIMITIVE_SCALARS: dict[str, tuple[int | None, bool]] = {
    # Basic C types
    "bool": (1, False),
    "char": (1, True),
    "signed char": (1, True),
    "unsigned char": (1, False),
    "short": (2, True),
    "short int": (2, True),
    "unsigned short": (2, False),
    "unsigned short int": (2, False),
    "int": (4, True),
    "signed": (4, True),
    "signed int": (4, True),
    "unsigned": (4, False),
    "unsigned int": (4, False),
    "long": (8, True),
    "long int": (8, True),
    "unsigned long": (8, False),
    "unsigned long int": (8, False),
    "long long": (8, True),
    "long long int": (8, True),
    "unsigned long long": (8, False),
    "unsigned long long int": (8, False),
    "float": (4, True),
    "double": (8, True),
    "long double": (16, True),
    # C++ character types
    "wchar_t": (2, False),
    "char8_t": (1, False),
    "char16_t": (2, False),
    "char32_t": (4, False),
    # Platform-specific types
    "size_t": (None, False),
    "ptrdiff_t": (None, True),
    "intptr_t": (None, True),
    "uintptr_t": (None, False),
    # Fixed-width integer types (stdint.h)
    "int8_t": (1, True),
    "uint8_t": (1, False),
    "int16_t": (2, True),
    "uint16_t": (2, False),
    "int32_t": (4, True),
    "uint32_t": (4, False),
    "int64_t": (8, True),
    "uint64_t": (8, False),
    # Short aliases common in reverse-engineered headers
    "u8": (1, False),
    "s8": (1, True),
    "u16": (2, False),
    "s16": (2, True),
    "u32": (4, False),
    "s32": (4, True),
    "u64": (8, False),
    "s64": (8, True),
    "f32": (4, True),
    "f64": (8, True),
}

FLOATING_TYPE_NAMES = frozenset({"float", "double", "long double", "f32", "f64"})

# Words that may combine into a multi-word builtin type name
BUILTIN_TYPE_WORDS = frozenset(
    {"unsigned", "signed", "short", "long", "int", "char", "double", "float", "bool", "void"}
)

# void and auto have no size; they only appear behind pointers or as placeholders
PRIMITIVE_TYPE_NAMES = frozenset(PRIMITIVE_SCALARS) | {"void", "auto", "nullptr_t"}


def normalize_builtin(words: list[str]) -> str:
    """Join the words of a multi-word builtin in canonical order.

    ``long unsigned int`` and ``unsigned long int`` both become
    ``unsigned long int``.
    """
    sign = [w for w in words if w in ("signed", "unsigned")]
    rest = [w for w in words if w not in ("signed", "unsigned")]
    return " ".join(sign[:1] + rest)
