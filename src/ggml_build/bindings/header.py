"""C header preprocessing and declaration parsing.

The entry header is run through the C preprocessor with ``-dD`` so every
include is resolved and object-like macros survive as ``#define`` lines.
The result is parsed into a HeaderSurface.

The parser handles what public C library headers declare: function
prototypes, struct/union definitions (bitfields, arrays, nested anonymous
members), opaque forward declarations, enums with constant expressions,
typedef aliases, function-pointer typedefs and literal-valued macros. Array
sizes may use ``sizeof`` over primitive types and typedefs of them.
Anything else is skipped; declarations that fail to parse are recorded by
name in ``HeaderSurface.unparsed``.
"""

from __future__ import annotations

import ast
import logging
import os
import re
import shlex
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Optional, Union

from ggml_build.bindings.surface import (
    CConstant,
    CEnum,
    CField,
    CFunction,
    CRecord,
    CSignature,
    CType,
    HeaderSurface,
    c_sizeof,
)
from ggml_build.exceptions import BindingGenerationFailure
from ggml_build.models import SymbolKind

logger = logging.getLogger(__name__)

COMPILER_CANDIDATES = ("clang", "gcc", "cc")

QUALIFIERS = frozenset(
    {"const", "volatile", "restrict", "static", "extern", "register", "auto", "_Atomic"}
)
_INT_WORDS = frozenset({"signed", "unsigned", "short", "long", "int", "char"})
TYPE_KEYWORDS = _INT_WORDS | {"void", "float", "double", "bool", "struct", "union", "enum"}

_IDENT = r"[A-Za-z_][A-Za-z0-9_]*"
_FUNC_PTR_RE = re.compile(
    rf"^(?P<ret>[^()]+?)\(\s*\*\s*(?P<name>{_IDENT})?\s*(?P<dims>(?:\[[^\]]*\]\s*)*)\)\s*\((?P<params>.*)\)$",
    flags=re.S,
)
_FUNC_RE = re.compile(rf"^(?P<ret>[^()]+?)\b(?P<name>{_IDENT})\s*\((?P<params>.*)\)$", flags=re.S)
_BODY_RE = re.compile(rf"^(?P<kind>struct|union|enum)\s*(?P<tag>{_IDENT})?\s*\{{", flags=re.S)
_DEFINE_RE = re.compile(rf"^\s*#\s*define\s+(?P<name>{_IDENT})(?P<func>\()?(?:\s+(?P<value>.*?))?\s*$")
_UNDEF_RE = re.compile(rf"^\s*#\s*undef\s+(?P<name>{_IDENT})")
_STRING_RE = re.compile(r'"(?:[^"\\]|\\.)*"')
_SIZEOF_RE = re.compile(r"\bsizeof\s*\(\s*([^()]+?)\s*\)")
_FLOAT_RE = re.compile(r"^[+-]?(?:\d+\.\d*|\.\d+|\d+(?=[eE]))(?:[eE][+-]?\d+)?[fFlL]?$")

ConstValue = Union[int, float, str]


# ---------------------------------------------------------------------------
# Preprocessing
# ---------------------------------------------------------------------------


def find_preprocessor(environ: Optional[Mapping[str, str]] = None) -> Optional[list[str]]:
    """Command prefix of the C compiler used for preprocessing.

    ``$CC`` wins (it may carry a launcher such as ``ccache gcc``); otherwise
    the first of clang/gcc/cc found on PATH.
    """
    environ = os.environ if environ is None else environ
    cc = environ.get("CC", "").strip()
    if cc:
        return shlex.split(cc)
    for candidate in COMPILER_CANDIDATES:
        path = shutil.which(candidate)
        if path:
            return [path]
    return None


def preprocess_header(
    header: Path,
    include_dirs: Sequence[Path] = (),
    compiler: Optional[Sequence[str]] = None,
    extra_args: Sequence[str] = (),
) -> str:
    """Run the C preprocessor over ``header`` and return its output.

    Raises:
        BindingGenerationFailure: No compiler, or the preprocessor failed.
            The compiler's stderr is kept verbatim in ``diagnostics``.
    """
    prefix = list(compiler) if compiler else find_preprocessor()
    if not prefix:
        raise BindingGenerationFailure(
            "No C preprocessor found. Set CC or install clang or gcc."
        )

    cmd = [*prefix, "-E", "-dD", "-x", "c", "-std=c11"]
    cmd += [f"-I{d}" for d in include_dirs]
    cmd += list(extra_args)
    cmd.append(str(header))

    logger.debug("Preprocessing header: %s", " ".join(cmd))
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except FileNotFoundError:
        raise BindingGenerationFailure(f"C preprocessor not found: {prefix[0]}")

    if proc.returncode != 0:
        raise BindingGenerationFailure(
            f"Preprocessing {header} failed with exit code {proc.returncode}",
            diagnostics=proc.stderr,
        )
    return proc.stdout


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def normalize_ws(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def strip_c_comments(content: str) -> str:
    content = re.sub(r"/\*.*?\*/", " ", content, flags=re.S)
    return re.sub(r"//.*?$", "", content, flags=re.M)


def _strip_balanced_calls(text: str, token_pattern: str) -> str:
    """Remove ``token(...)`` constructs with balanced parentheses."""
    token_re = re.compile(token_pattern)
    while True:
        match = token_re.search(text)
        if not match:
            return text
        open_idx = text.find("(", match.end())
        if open_idx < 0 or text[match.end():open_idx].strip():
            text = f"{text[:match.start()]} {text[match.end():]}"
            continue
        depth = 0
        end_idx = len(text)
        for idx in range(open_idx, len(text)):
            if text[idx] == "(":
                depth += 1
            elif text[idx] == ")":
                depth -= 1
                if depth == 0:
                    end_idx = idx + 1
                    break
        text = f"{text[:match.start()]} {text[end_idx:]}"


def strip_c_decl_attributes(text: str) -> str:
    text = _strip_balanced_calls(
        text, r"\b(?:__attribute__|__declspec|__asm__|__asm|asm|_Alignas|_Static_assert)\b"
    )
    text = re.sub(
        r"\b(?:__extension__|__inline__|__inline|inline|__restrict__|__restrict|"
        r"__cdecl|__stdcall|__fastcall|__vectorcall|_Noreturn|__volatile__|"
        r"_Thread_local|__thread)\b",
        " ",
        text,
    )
    return re.sub(r"\b_Bool\b", "bool", text)


def split_top_level(text: str, sep: str) -> list[str]:
    """Split on ``sep`` outside parentheses, brackets and braces."""
    parts: list[str] = []
    depth = 0
    start = 0
    for idx, ch in enumerate(text):
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == sep and depth == 0:
            parts.append(text[start:idx])
            start = idx + 1
    parts.append(text[start:])
    return [normalize_ws(p) for p in parts if p.strip()]


def _matching_brace(text: str, open_idx: int) -> int:
    depth = 0
    for idx in range(open_idx, len(text)):
        if text[idx] == "{":
            depth += 1
        elif text[idx] == "}":
            depth -= 1
            if depth == 0:
                return idx
    raise ValueError("unbalanced braces")


def split_statements(code: str) -> list[str]:
    """Top-level declarations, with function definitions dropped."""
    statements: list[str] = []
    buf: list[str] = []
    braces = parens = 0
    for ch in code:
        buf.append(ch)
        if ch == "(":
            parens += 1
        elif ch == ")":
            parens -= 1
        elif ch == "{":
            braces += 1
        elif ch == "}":
            braces -= 1
            if braces == 0 and parens == 0:
                text = "".join(buf)
                head = text[: text.index("{")].rstrip()
                if head.endswith(")"):
                    # function definition
                    buf = []
        elif ch == ";" and braces == 0 and parens == 0:
            stmt = normalize_ws("".join(buf[:-1]))
            if stmt:
                statements.append(stmt)
            buf = []
    return statements


# ---------------------------------------------------------------------------
# Constant expressions
# ---------------------------------------------------------------------------


def sanitize_c_int_expr(expr: str) -> str:
    compact = normalize_ws(expr)
    compact = re.sub(r"\b(0[xX][0-9A-Fa-f]+)[uUlL]+\b", r"\1", compact)
    compact = re.sub(r"\b([0-9]+)[uUlL]+\b", r"\1", compact)
    compact = re.sub(r"\b0([0-7]+)\b", r"0o\1", compact)
    return compact


def eval_c_int_expr(
    expr: str,
    known: Optional[Mapping[str, ConstValue]] = None,
    typedefs: Optional[Mapping[str, CType]] = None,
) -> Optional[int]:
    """Evaluate an integer constant expression. None if it is not one.

    ``sizeof(type)`` is resolved for primitives, pointers, enums and the
    ``typedefs`` over them, using the host's ctypes sizes.
    """
    known = known or {}

    def substitute(match: re.Match[str]) -> str:
        value = known.get(match.group(0))
        if isinstance(value, int) and not isinstance(value, bool):
            return f"({value})"
        return match.group(0)

    def substitute_sizeof(match: re.Match[str]) -> str:
        try:
            size = c_sizeof(parse_type(match.group(1)), typedefs)
        except ValueError:
            size = None
        return match.group(0) if size is None else f"({size})"

    sanitized = _SIZEOF_RE.sub(substitute_sizeof, normalize_ws(expr))
    sanitized = re.sub(_IDENT, substitute, sanitize_c_int_expr(sanitized))
    sanitized = re.sub(r"'(\\?.)'", lambda m: str(ord(ast.literal_eval(m.group(0)))), sanitized)
    try:
        tree = ast.parse(sanitized, mode="eval")
    except (SyntaxError, ValueError):
        return None

    def _eval(node: ast.AST) -> int:
        if isinstance(node, ast.Expression):
            return _eval(node.body)
        if isinstance(node, ast.Constant) and isinstance(node.value, int):
            return int(node.value)
        if isinstance(node, ast.UnaryOp):
            value = _eval(node.operand)
            if isinstance(node.op, ast.UAdd):
                return +value
            if isinstance(node.op, ast.USub):
                return -value
            if isinstance(node.op, ast.Invert):
                return ~value
            raise ValueError("unsupported unary op")
        if isinstance(node, ast.BinOp):
            left = _eval(node.left)
            right = _eval(node.right)
            op = node.op
            if isinstance(op, ast.Add):
                return left + right
            if isinstance(op, ast.Sub):
                return left - right
            if isinstance(op, ast.Mult):
                return left * right
            if isinstance(op, (ast.Div, ast.FloorDiv)):
                # C division truncates toward zero
                quotient = abs(left) // abs(right)
                return quotient if (left >= 0) == (right >= 0) else -quotient
            if isinstance(op, ast.Mod):
                return left - right * int(left / right)
            if isinstance(op, ast.LShift):
                return left << right
            if isinstance(op, ast.RShift):
                return left >> right
            if isinstance(op, ast.BitOr):
                return left | right
            if isinstance(op, ast.BitAnd):
                return left & right
            if isinstance(op, ast.BitXor):
                return left ^ right
            raise ValueError("unsupported binary op")
        raise ValueError("unsupported expression")

    try:
        return _eval(tree)
    except (ValueError, ZeroDivisionError):
        return None


def parse_constant_value(expr: str, known: Mapping[str, ConstValue]) -> Optional[ConstValue]:
    """Value of a macro body if it is a string, float or integer literal expression."""
    expr = normalize_ws(expr)
    if not expr:
        return None
    if _STRING_RE.sub("", expr).strip() == "" and expr.startswith('"'):
        try:
            return "".join(ast.literal_eval(s) for s in _STRING_RE.findall(expr))
        except (SyntaxError, ValueError):
            return None
    unwrapped = expr
    while unwrapped.startswith("(") and unwrapped.endswith(")"):
        unwrapped = unwrapped[1:-1].strip()
    if _FLOAT_RE.match(unwrapped) and re.search(r"[.eE]", unwrapped):
        return float(unwrapped.rstrip("fFlL"))
    if expr in known and not isinstance(known[expr], int):
        return known[expr]
    return eval_c_int_expr(expr, known)


# ---------------------------------------------------------------------------
# Declarators
# ---------------------------------------------------------------------------


def normalize_base(words: list[str]) -> str:
    """Canonical spelling of a base type from its (qualifier-free) words."""
    if not words:
        raise ValueError("missing type")
    if words[0] in ("struct", "union", "enum"):
        if len(words) < 2:
            raise ValueError("anonymous tag reference")
        return f"{words[0]} {words[1]}"
    if all(w in _INT_WORDS or w == "double" for w in words):
        longs = words.count("long")
        if "double" in words:
            return "long double" if longs else "double"
        unsigned = "unsigned" in words
        if "char" in words:
            if unsigned:
                return "unsigned char"
            return "signed char" if "signed" in words else "char"
        if "short" in words:
            core = "short"
        elif longs == 1:
            core = "long"
        elif longs >= 2:
            core = "long long"
        else:
            core = "int"
        return f"unsigned {core}" if unsigned else core
    return " ".join(words)


def parse_type(text: str) -> CType:
    """Parse an abstract type such as ``const struct ggml_tensor * const *``."""
    pointers = text.count("*")
    words = [w for w in re.findall(_IDENT, text) if w not in QUALIFIERS]
    return CType(base=normalize_base(words), pointers=pointers)


def _eval_dims(
    dims: str,
    known: Mapping[str, ConstValue],
    typedefs: Optional[Mapping[str, CType]] = None,
) -> tuple[int, ...]:
    out = []
    for raw in re.findall(r"\[([^\]]*)\]", dims):
        if not raw.strip():
            out.append(0)
            continue
        value = eval_c_int_expr(raw, known, typedefs)
        if value is None:
            raise ValueError(f"unresolved array size {raw!r}")
        out.append(value)
    return tuple(out)


def split_declaration(decl: str) -> tuple[str, Optional[str], str]:
    """Split ``type name[dims]`` into (type text, name or None, dims text)."""
    decl = normalize_ws(decl)
    dims_match = re.search(r"(\s*\[[^\]]*\])+\s*$", decl)
    dims = ""
    if dims_match:
        dims = dims_match.group(0)
        decl = decl[: dims_match.start()]
    match = re.match(rf"^(?P<rest>.*?)(?P<name>{_IDENT})\s*$", decl, flags=re.S)
    if not match:
        return decl, None, dims
    rest, name = match.group("rest"), match.group("name")
    rest_words = [w for w in re.findall(_IDENT, rest) if w not in QUALIFIERS]
    is_name = (
        bool(rest_words or "*" in rest)
        and name not in TYPE_KEYWORDS
        and name not in QUALIFIERS
        and not re.search(r"\b(?:struct|union|enum)\s*$", rest)
    )
    if is_name:
        return rest, name, dims
    return decl, None, dims


class _Parser:
    """Single-use parser accumulating one HeaderSurface."""

    def __init__(self):
        self.surface = HeaderSurface()
        self.known: dict[str, ConstValue] = {}
        self._anon = 0

    # -- declarators ------------------------------------------------------

    def parse_params(self, params: str) -> tuple[tuple[CType, ...], bool]:
        params = normalize_ws(params)
        if params in ("", "void"):
            return (), False
        argtypes: list[CType] = []
        variadic = False
        for param in split_top_level(params, ","):
            if param == "...":
                variadic = True
                continue
            ctype, _ = self.parse_declarator(param, decay_arrays=True)
            argtypes.append(ctype)
        return tuple(argtypes), variadic

    def parse_signature(self, ret: str, params: str) -> CSignature:
        argtypes, variadic = self.parse_params(params)
        return CSignature(restype=parse_type(ret), argtypes=argtypes, variadic=variadic)

    def parse_declarator(self, decl: str, decay_arrays: bool = False) -> tuple[CType, Optional[str]]:
        """Parse a non-function declarator into its type and optional name."""
        fp = _FUNC_PTR_RE.match(decl)
        if fp:
            signature = self.parse_signature(fp.group("ret"), fp.group("params"))
            array = _eval_dims(fp.group("dims") or "", self.known, self.surface.typedefs)
            return CType(base="", array=array, signature=signature), fp.group("name")

        type_text, name, dims = split_declaration(decl)
        ctype = parse_type(type_text)
        array = _eval_dims(dims, self.known, self.surface.typedefs)
        if array and decay_arrays:
            return ctype.pointer_to(), name
        if array:
            ctype = CType(ctype.base, ctype.pointers, array)
        return ctype, name

    # -- statements -------------------------------------------------------

    def statement(self, stmt: str) -> None:
        if stmt.startswith("typedef "):
            self.typedef(stmt[len("typedef "):].strip())
            return

        body = _BODY_RE.match(stmt)
        if body:
            close = _matching_brace(stmt, body.end() - 1)
            self.definition(
                body.group("kind"), body.group("tag"), stmt[body.end():close], typedef_name=None
            )
            return

        fwd = re.fullmatch(rf"(struct|union|enum)\s+({_IDENT})", stmt)
        if fwd:
            kind, tag = fwd.groups()
            if kind != "enum" and tag not in self.surface.records:
                self.surface.records[tag] = CRecord(name=tag, union=kind == "union")
            return

        if stmt.startswith("static "):
            return
        if stmt.startswith("extern "):
            stmt = stmt[len("extern "):]

        if _FUNC_PTR_RE.match(stmt):
            # global function-pointer variable
            return
        func = _FUNC_RE.match(stmt)
        if func:
            name = func.group("name")
            signature = self.parse_signature(func.group("ret"), func.group("params"))
            self.surface.functions[name] = CFunction(name=name, signature=signature)

    def typedef(self, rest: str) -> None:
        body = _BODY_RE.match(rest)
        if body:
            close = _matching_brace(rest, body.end() - 1)
            declarators = split_top_level(rest[close + 1:], ",")
            kind, tag = body.group("kind"), body.group("tag")
            plain = [d for d in declarators if re.fullmatch(_IDENT, d)]
            key = self.definition(
                kind, tag, rest[body.end():close], typedef_name=tag or (plain[0] if plain else None)
            )
            if key is None:
                return
            base = f"{kind} {key}" if tag else key
            for decl in declarators:
                ctype, name = self.parse_declarator(f"{base} {decl}")
                if name and name != key:
                    self.surface.typedefs[name] = ctype
            return

        fp = _FUNC_PTR_RE.match(rest)
        if fp and fp.group("name"):
            if fp.group("dims").strip():
                return
            self.surface.callbacks[fp.group("name")] = self.parse_signature(
                fp.group("ret"), fp.group("params")
            )
            return
        if _FUNC_RE.match(rest):
            logger.debug("Skipping function type typedef: %s", rest)
            return

        declarators = split_top_level(rest, ",")
        first_type, first_name, _ = split_declaration(declarators[0])
        base_text = first_type.replace("*", " ")
        for idx, decl in enumerate(declarators):
            ctype, name = self.parse_declarator(decl if idx == 0 else f"{base_text} {decl}")
            if name is None:
                continue
            if ctype.base in (f"struct {name}", f"union {name}") and not ctype.pointers:
                self._implied_record(ctype.base)
                continue
            self.surface.typedefs[name] = ctype
            self._implied_record(ctype.base)

    def definition(
        self, kind: str, tag: Optional[str], body: str, typedef_name: Optional[str]
    ) -> Optional[str]:
        """Register a struct/union/enum body. Returns its key."""
        key = tag or typedef_name
        if kind == "enum":
            members = self.enum_members(body)
            if key is None:
                for name, value in members.items():
                    self.surface.constants[name] = CConstant(name=name, value=value)
                return None
            self.surface.enums[key] = CEnum(name=key, members=members)
            return key

        if key is None:
            key = self._anonymous_name("anon")
        record = CRecord(name=key, union=kind == "union")
        record.fields = self.record_fields(record, body)
        # registered only after every field parsed
        self.surface.records[key] = record
        return key

    def enum_members(self, body: str) -> dict[str, int]:
        members: dict[str, int] = {}
        next_value = 0
        for item in split_top_level(body, ","):
            match = re.match(rf"^(?P<name>{_IDENT})(?:\s*=\s*(?P<expr>.+))?$", item, flags=re.S)
            if not match:
                continue
            name, expr = match.group("name"), match.group("expr")
            if expr is not None:
                value = eval_c_int_expr(expr, self.known, self.surface.typedefs)
                if value is None:
                    raise ValueError(f"unresolved enumerator {name} = {expr}")
            else:
                value = next_value
            members[name] = value
            self.known[name] = value
            next_value = value + 1
        return members

    def record_fields(self, record: CRecord, body: str) -> list[CField]:
        fields: list[CField] = []
        for member in split_top_level(body, ";"):
            nested = _BODY_RE.match(member)
            if nested:
                close = _matching_brace(member, nested.end() - 1)
                kind, tag = nested.group("kind"), nested.group("tag")
                inner = member[nested.end():close]
                declarators = split_top_level(member[close + 1:], ",")
                if kind == "enum":
                    key = self.definition(kind, tag, inner, typedef_name=None)
                    base = f"enum {key}" if key else "int"
                else:
                    key = tag or self._anonymous_name(record.name)
                    self.definition(kind, key, inner, typedef_name=None)
                    base = f"{kind} {key}"
                if not declarators:
                    field_name = f"_anon{len(record.anonymous)}"
                    fields.append(CField(name=field_name, ctype=CType(base)))
                    record.anonymous.append(field_name)
                for decl in declarators:
                    ctype, name = self.parse_declarator(f"{base} {decl}")
                    if name:
                        fields.append(CField(name=name, ctype=ctype))
                continue

            bitfield = re.match(rf"^(?P<decl>.+?)\s*:\s*(?P<bits>[^:]+)$", member)
            if bitfield and not _FUNC_PTR_RE.match(member):
                bits = eval_c_int_expr(bitfield.group("bits"), self.known, self.surface.typedefs)
                ctype, name = self.parse_declarator(bitfield.group("decl"))
                if bits is None:
                    raise ValueError(f"unresolved bitfield width in {member!r}")
                if name:
                    fields.append(CField(name=name, ctype=ctype, bits=bits))
                continue

            declarators = split_top_level(member, ",")
            first_type, _, _ = split_declaration(declarators[0])
            base_text = first_type.replace("*", " ")
            for idx, decl in enumerate(declarators):
                ctype, name = self.parse_declarator(decl if idx == 0 else f"{base_text} {decl}")
                if name:
                    fields.append(CField(name=name, ctype=ctype))
                    self._implied_record(ctype.base)
        return fields

    # -- helpers ----------------------------------------------------------

    def _anonymous_name(self, prefix: str) -> str:
        name = f"{prefix}_anon{self._anon}"
        self._anon += 1
        return name

    def _implied_record(self, base: str) -> None:
        match = re.fullmatch(rf"(struct|union) ({_IDENT})", base)
        if match and match.group(2) not in self.surface.records:
            self.surface.records[match.group(2)] = CRecord(
                name=match.group(2), union=match.group(1) == "union"
            )

    def implied_records(self) -> None:
        """Add opaque records for struct tags only ever used through pointers."""
        pending: list[CType] = list(self.surface.typedefs.values())
        pending += [CType("", signature=f.signature) for f in self.surface.functions.values()]
        pending += [CType("", signature=s) for s in self.surface.callbacks.values()]
        for record in list(self.surface.records.values()):
            pending += [f.ctype for f in record.fields or ()]
        while pending:
            ctype = pending.pop()
            if ctype.signature is not None:
                pending.append(ctype.signature.restype)
                pending.extend(ctype.signature.argtypes)
            else:
                self._implied_record(ctype.base)


def declared_symbol(stmt: str) -> Optional[tuple[str, SymbolKind]]:
    """Name and kind of what a top-level statement declares, if discernible."""
    is_typedef = stmt.startswith("typedef ")
    rest = stmt[len("typedef "):].strip() if is_typedef else stmt
    body = _BODY_RE.match(rest)
    if body:
        if body.group("tag"):
            return body.group("tag"), SymbolKind.TYPE
        names = re.findall(_IDENT, rest[rest.rfind("}") + 1:])
        return (names[0], SymbolKind.TYPE) if names else None

    fp = _FUNC_PTR_RE.match(rest)
    if fp:
        if is_typedef and fp.group("name"):
            return fp.group("name"), SymbolKind.TYPE
        return None
    func = _FUNC_RE.match(rest)
    if func:
        kind = SymbolKind.TYPE if is_typedef else SymbolKind.FUNCTION
        return func.group("name"), kind

    names = re.findall(_IDENT, re.sub(r"\[[^\]]*\]", " ", rest))
    if is_typedef and names:
        return names[-1], SymbolKind.TYPE
    return None


def parse_header(text: str) -> HeaderSurface:
    """Parse preprocessed (or plain) C header text into a HeaderSurface."""
    parser = _Parser()
    text = strip_c_comments(text.replace("\\\n", " "))

    code_lines: list[str] = []
    for line in text.splitlines():
        if not line.lstrip().startswith("#"):
            code_lines.append(line)
            continue
        undef = _UNDEF_RE.match(line)
        if undef:
            parser.known.pop(undef.group("name"), None)
            parser.surface.constants.pop(undef.group("name"), None)
            continue
        define = _DEFINE_RE.match(line)
        if not define or define.group("func") or define.group("value") is None:
            continue
        name = define.group("name")
        value = parse_constant_value(define.group("value"), parser.known)
        if value is None:
            continue
        parser.known[name] = value
        parser.surface.constants[name] = CConstant(name=name, value=value)

    code = strip_c_decl_attributes("\n".join(code_lines))
    for stmt in split_statements(code):
        try:
            parser.statement(stmt)
        except (ValueError, IndexError) as e:
            logger.debug("Skipping unparsed declaration %r: %s", stmt[:120], e)
            declared = declared_symbol(stmt)
            if declared is not None:
                name, kind = declared
                parser.surface.unparsed[name] = kind

    parser.implied_records()
    return parser.surface


def load_header_surface(
    header: Path,
    include_dirs: Sequence[Path] = (),
    compiler: Optional[Sequence[str]] = None,
    extra_args: Sequence[str] = (),
) -> HeaderSurface:
    """Preprocess and parse ``header``.

    Raises:
        BindingGenerationFailure: Preprocessing failed or nothing was parsed.
    """
    header = Path(header)
    if not header.is_file():
        raise BindingGenerationFailure(f"Binding entry header not found: {header}")
    text = preprocess_header(header, include_dirs, compiler, extra_args)
    surface = parse_header(text)
    if surface.is_empty():
        raise BindingGenerationFailure(f"No declarations found in {header}")
    logger.info("Parsed %s: %s", header.name, surface.counts())
    return surface
