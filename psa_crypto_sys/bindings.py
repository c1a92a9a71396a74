#!/usr/bin/env python3
"""
Binding generation: src/c/shim.h -> <out>/shim_bindings.py

The shim header (which pulls in psa/crypto.h) is run through the C
preprocessor, filtered, and declared to cffi. The result is written as an
out-of-line ABI mode module: it defines ``ffi`` and is used as

    from shim_bindings import ffi
    lib = ffi.dlopen(path_to_library)

Symbols are resolved on first access, so a function declared in the
header but missing from the library only fails when it is called.

Filtering before cdef():
- function bodies (static inline helpers) and duplicate prototypes dropped
- blocklisted types dropped
- typedefs of types cffi knows natively (int32_t, size_t, ...) dropped, so
  they resolve to cffi's own primitives instead of being redeclared
- types already declared by an included types module dropped
- integer object macros from ``cc -dM`` appended as #define constants
"""

import importlib
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

import cffi
from cffi import model
from pycparser import c_ast, c_generator, c_parser

from .config import BINDINGS_FILE_NAME, PUBLIC_HEADER, BuildConfig
from .directives import RerunWatchSet
from .errors import BindingGenerationFailed
from .shim import include_flags
from .utils import console, run_command


BINDINGS_MODULE = Path(BINDINGS_FILE_NAME).stem

# Compiler extensions pycparser does not understand
PARSER_DEFINES = [
    "-D__attribute__(x)=",
    "-D__extension__=",
    "-D__restrict=",
    "-D__restrict__=",
    "-D__inline=",
    "-D__inline__=",
    "-D__asm__(x)=",
    "-D__asm(x)=",
    "-D__builtin_va_list=void*",
]

PREPROCESS_STD = "-std=c99"

COMMENT_BANNER = "# Generated by psa-crypto-sys from the shim header. Do not edit."

# Typedef names cffi resolves to its own primitive types
NATIVE_TYPE_NAMES: FrozenSet[str] = frozenset(
    name for name in model.PrimitiveType.ALL_PRIMITIVE_TYPES if " " not in name
)

# Native only when size_t_is_usize is on; otherwise the header's typedef is kept
WORD_SIZED_TYPES = frozenset({"size_t", "ssize_t"})


@dataclass(frozen=True)
class BindgenOptions:
    """
    generate_comments: prefix the module with the C prototypes it declares
    size_t_is_usize: size_t/ssize_t are cffi's word-sized primitives
    blocklist_types: types left out of the bindings
    types_module: dotted name of a module whose ``ffi`` (a cffi.FFI prepared
        with set_source(name, None)) supplies shared type definitions; they
        are included instead of being declared again
    """

    generate_comments: bool = False
    size_t_is_usize: bool = True
    blocklist_types: Tuple[str, ...] = ("max_align_t",)
    types_module: Optional[str] = None


@dataclass(frozen=True)
class CdefSource:
    text: str
    prototypes: List[str]


def parse_int_literal(text: str) -> int:
    literal = text.rstrip("uUlL")
    if literal.lower().startswith("0x"):
        return int(literal, 16)
    if len(literal) > 1 and literal.startswith("0"):
        return int(literal, 8)
    return int(literal)


def integer_macros(dump: str) -> Dict[str, int]:
    """Integer-literal object macros from `cc -dM -E` output."""
    macros = {}
    for line in dump.splitlines():
        parts = line.split(None, 2)
        if len(parts) != 3 or parts[0] != "#define" or "(" in parts[1]:
            continue
        name, value = parts[1], parts[2].strip()
        while value.startswith("(") and value.endswith(")"):
            value = value[1:-1].strip()
        negative = value.startswith("-")
        digits = value.lstrip("+-")
        try:
            number = parse_int_literal(digits)
        except ValueError:
            continue
        macros[name] = -number if negative else number
    return macros


########################################################################
# Declaration Filtering
########################################################################

def _is_function(node) -> bool:
    return isinstance(node, c_ast.Decl) and isinstance(node.type, c_ast.FuncDecl)


def _record_key(node) -> Optional[str]:
    """'struct foo' / 'union foo' for a tagged record declaration."""
    target = node.type if isinstance(node, c_ast.Decl) else None
    if isinstance(target, c_ast.Struct) and target.name:
        return f"struct {target.name}"
    if isinstance(target, c_ast.Union) and target.name:
        return f"union {target.name}"
    return None


class _Enumerators(c_ast.NodeVisitor):
    def __init__(self):
        self.names: Set[str] = set()

    def visit_Enumerator(self, node):
        self.names.add(node.name)


def included_types(options: BindgenOptions) -> Tuple[Optional[cffi.FFI], Set[str]]:
    """The shared types FFI and the keys ('typedef x', 'struct y', ...) it declares."""
    if options.types_module is None:
        return None, set()
    try:
        module = importlib.import_module(options.types_module)
    except ImportError as e:
        raise BindingGenerationFailed(f"cannot import types module {options.types_module}: {e}") from e

    ffi = getattr(module, "ffi", None)
    if not isinstance(ffi, cffi.FFI):
        raise BindingGenerationFailed(
            f"{options.types_module}.ffi is not a cffi.FFI",
            hint="the types module must expose the FFI builder prepared with set_source(name, None)",
        )
    typedefs, structs, unions = ffi.list_types()
    keys = {f"typedef {n}" for n in typedefs}
    keys |= {f"struct {n}" for n in structs}
    keys |= {f"union {n}" for n in unions}
    return ffi, keys


def prepare_cdef(
    ast: c_ast.FileAST,
    options: BindgenOptions,
    macros: Optional[Dict[str, int]] = None,
    declared: Optional[Set[str]] = None,
) -> CdefSource:
    """Reduce a parsed header to declarations cdef() accepts."""
    declared = declared or set()
    blocklist = set(options.blocklist_types)
    generator = c_generator.CGenerator()

    kept = []
    prototypes = []
    names: Set[str] = set()
    for node in ast.ext:
        if isinstance(node, c_ast.FuncDef):
            continue
        if isinstance(node, c_ast.Typedef):
            if node.name in blocklist or f"typedef {node.name}" in declared:
                continue
            if node.name in NATIVE_TYPE_NAMES:
                if node.name not in WORD_SIZED_TYPES or options.size_t_is_usize:
                    continue
        elif _is_function(node):
            if "static" in (node.storage or []) or "inline" in (node.funcspec or []):
                continue
            if node.name in names:
                continue
            prototypes.append(generator.visit(node))
        elif isinstance(node, c_ast.Decl):
            key = _record_key(node)
            if key is not None and (key in declared or key.split()[1] in blocklist):
                continue
            # Only extern variables are visible through dlopen()
            if node.name is not None and "extern" not in (node.storage or []):
                continue
        if getattr(node, "name", None):
            names.add(node.name)
        kept.append(node)

    enumerators = _Enumerators()
    enumerators.visit(ast)
    names |= enumerators.names

    lines = [generator.visit(c_ast.FileAST(kept))]
    for name, value in sorted((macros or {}).items()):
        if name.startswith("_") or name in names:
            continue
        lines.append(f"#define {name} {value}")
    return CdefSource(text="\n".join(lines) + "\n", prototypes=prototypes)


########################################################################
# Generation Pipeline
########################################################################

def parse_header(source: str, filename: str = "<shim>") -> c_ast.FileAST:
    try:
        return c_parser.CParser().parse(source, filename)
    except c_parser.ParseError as e:
        raise BindingGenerationFailed(f"unable to parse {filename}", output=str(e)) from e


def build_ffi(
    source: str,
    options: Optional[BindgenOptions] = None,
    macros: Optional[Dict[str, int]] = None,
    filename: str = "<shim>",
    module_name: str = BINDINGS_MODULE,
) -> Tuple[cffi.FFI, CdefSource]:
    """Declare preprocessed C source to a new out-of-line ABI mode FFI."""
    options = options or BindgenOptions()
    types_ffi, declared = included_types(options)
    cdef = prepare_cdef(parse_header(source, filename), options, macros, declared)

    ffi = cffi.FFI()
    if types_ffi is not None:
        ffi.include(types_ffi)
    try:
        ffi.cdef(cdef.text)
    except (cffi.CDefError, cffi.FFIError) as e:
        raise BindingGenerationFailed(f"cffi rejected the declarations of {filename}", output=str(e)) from e
    ffi.set_source(module_name, None)
    return ffi, cdef


def write_bindings(
    source: str,
    out_path: Path,
    options: Optional[BindgenOptions] = None,
    macros: Optional[Dict[str, int]] = None,
    filename: str = "<shim>",
) -> Path:
    """Write the bindings module for preprocessed C source to out_path."""
    options = options or BindgenOptions()
    ffi, cdef = build_ffi(source, options, macros, filename, module_name=out_path.stem)
    try:
        ffi.emit_python_code(str(out_path))
    except cffi.VerificationError as e:
        raise BindingGenerationFailed(f"unable to emit {out_path.name}", output=str(e)) from e

    if options.generate_comments:
        header = [COMMENT_BANNER, "#"] + [f"# {prototype}" for prototype in cdef.prototypes]
        body = out_path.read_text(encoding="utf-8")
        out_path.write_text("\n".join(header) + "\n" + body, encoding="utf-8")
    return out_path


def preprocess_header(config: BuildConfig, include_dir: Path, config_header: Optional[Path]) -> Tuple[str, str]:
    """
    Run the C preprocessor over the shim header.

    Returns:
        (preprocessed source, macro definition dump)
    """
    flags = include_flags(config.out_dir, include_dir, config_header)
    header = str(config.shim_header)
    source = run_command(
        [config.cc, "-E", "-P", PREPROCESS_STD] + flags + PARSER_DEFINES + [header],
        BindingGenerationFailed,
        f"Preprocessing {config.shim_header.name}",
    )
    macros = run_command(
        [config.cc, "-E", "-dM", PREPROCESS_STD] + flags + [header],
        BindingGenerationFailed,
        f"Collecting macros of {config.shim_header.name}",
    )
    return source, macros


def generate_bindings(
    config: BuildConfig,
    include_dir: Path,
    watch: RerunWatchSet,
    config_header: Optional[Path] = None,
    options: Optional[BindgenOptions] = None,
) -> Path:
    """
    Generate <out>/shim_bindings.py for the backend at include_dir.

    Raises:
        BindingGenerationFailed: preprocessing, parsing or cdef() failed
    """
    watch.declare(include_dir / PUBLIC_HEADER)
    watch.declare(config.shim_header)

    source, macro_dump = preprocess_header(config, include_dir, config_header)

    config.out_dir.mkdir(parents=True, exist_ok=True)
    out_path = write_bindings(
        source,
        config.out_dir / BINDINGS_FILE_NAME,
        options=options,
        macros=integer_macros(macro_dump),
        filename=str(config.shim_header),
    )
    console.print(f"[green]Bindings written to {out_path}[/]")
    return out_path
