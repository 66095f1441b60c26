"""Tests for the symbol allowlist filter."""

import pytest
from pydantic import ValidationError

from ggml_build.bindings.allowlist import DEFAULT_ALLOWLIST, Allowlist, filter_surface
from ggml_build.bindings.header import parse_header
from ggml_build.models import SymbolAllowlistRule, SymbolKind

HEADER = """\
#define GGML_MAX_DIMS 4
#define GGUF_MAGIC "GGUF"
#define LLAMA_MAX_SEQ 64
struct ggml_context;
struct llama_model;
enum ggml_type { GGML_TYPE_F32, GGML_TYPE_F16 };
enum llama_vocab_type { LLAMA_VOCAB_TYPE_NONE };
typedef void (*ggml_abort_callback)(const char * msg);
typedef int llama_token;
struct gguf_context * gguf_init_empty(void);
struct ggml_context * ggml_init(size_t mem);
int llama_tokenize(const char * text);
void abort(void);
"""


@pytest.fixture
def surface():
    return parse_header(HEADER)


class TestDefaultAllowlist:
    def test_admits_ggml_and_gguf_only(self, surface):
        filtered = filter_surface(surface)
        assert set(filtered.functions) == {"ggml_init", "gguf_init_empty"}
        assert set(filtered.records) == {"ggml_context", "gguf_context"}
        assert set(filtered.enums) == {"ggml_type"}
        assert set(filtered.callbacks) == {"ggml_abort_callback"}
        assert filtered.typedefs == {}
        assert set(filtered.constants) == {"GGML_MAX_DIMS", "GGUF_MAGIC"}

    def test_result_is_subset(self, surface):
        filtered = filter_surface(surface)
        full = surface.symbols()
        for kind, names in filtered.symbols().items():
            assert names <= full[kind]

    def test_input_not_modified(self, surface):
        before = surface.counts()
        filter_surface(surface)
        assert surface.counts() == before
        assert "llama_tokenize" in surface.functions

    def test_enumerators_travel_with_enum(self, surface):
        filtered = filter_surface(surface, Allowlist.from_prefixes(types=("ggml_type",)))
        assert filtered.enums["ggml_type"].members == {"GGML_TYPE_F32": 0, "GGML_TYPE_F16": 1}
        assert filtered.constants == {}

    def test_unparsed_names_are_filtered(self):
        surface = parse_header(
            "struct ggml_bad { int x[UNKNOWN]; };\n"
            "struct llama_bad { int x[UNKNOWN]; };\n"
            "void ggml_ok(void);\n"
        )
        assert set(surface.unparsed) == {"ggml_bad", "llama_bad"}
        assert filter_surface(surface).unparsed == {"ggml_bad": SymbolKind.TYPE}


class TestAllowlistRules:
    def test_full_match_required(self):
        rules = Allowlist([SymbolAllowlistRule(kind=SymbolKind.FUNCTION, pattern="ggml")])
        assert not rules.admits(SymbolKind.FUNCTION, "ggml_init")
        assert rules.admits(SymbolKind.FUNCTION, "ggml")

    def test_kind_must_match(self):
        assert DEFAULT_ALLOWLIST.admits(SymbolKind.FUNCTION, "ggml_init")
        assert not DEFAULT_ALLOWLIST.admits(SymbolKind.CONSTANT, "ggml_init")
        assert DEFAULT_ALLOWLIST.admits(SymbolKind.CONSTANT, "GGML_MAX_DIMS")

    def test_prefix_is_escaped(self):
        rules = Allowlist.from_prefixes(functions=("a.b",))
        assert rules.admits(SymbolKind.FUNCTION, "a.b_c")
        assert not rules.admits(SymbolKind.FUNCTION, "axb_c")

    def test_extend(self, surface):
        extended = DEFAULT_ALLOWLIST.extend(
            [SymbolAllowlistRule(kind=SymbolKind.FUNCTION, pattern=r"llama_\w+")]
        )
        assert len(extended) == len(DEFAULT_ALLOWLIST) + 1
        assert len(DEFAULT_ALLOWLIST) == 6
        assert "llama_tokenize" in filter_surface(surface, extended).functions

    def test_plain_rule_iterable(self, surface):
        filtered = filter_surface(
            surface, [SymbolAllowlistRule(kind=SymbolKind.TYPE, pattern="llama_.*")]
        )
        assert set(filtered.records) == {"llama_model"}
        assert set(filtered.typedefs) == {"llama_token"}
        assert filtered.functions == {}

    def test_empty_allowlist_admits_nothing(self, surface):
        assert filter_surface(surface, Allowlist()).is_empty()

    def test_invalid_pattern_rejected(self):
        with pytest.raises(ValidationError):
            SymbolAllowlistRule(kind=SymbolKind.TYPE, pattern="ggml_(")

    def test_repr(self):
        assert "function:ggml_.*" in repr(DEFAULT_ALLOWLIST)
