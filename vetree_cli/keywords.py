"""Keyword tables used by the structural extractor.

Instantiation detection is a shallow pattern match; a candidate whose type
or instance name appears in ``INSTANCE_KEYWORD_DENYLIST`` is discarded. The
table is data so coverage gaps are fixed here (or through the
``extra_keywords`` scan option) without touching the scanner.
"""

from __future__ import annotations

from typing import FrozenSet, Iterable

PORT_DIRECTIONS: FrozenSet[str] = frozenset({"input", "output", "inout", "ref"})

INSTANCE_KEYWORD_DENYLIST: FrozenSet[str] = frozenset({
    # control flow
    "if", "else", "begin", "end", "case", "casex", "casez", "endcase",
    "for", "foreach", "while", "do", "repeat", "forever", "return",
    "break", "continue", "wait", "disable", "fork", "join",
    "join_any", "join_none", "unique", "unique0", "priority",
    # processes
    "always", "always_ff", "always_comb", "always_latch",
    "initial", "final",
    "assign", "deassign", "force", "release",
    # declarations
    "wire", "reg", "logic", "bit", "byte", "int", "integer", "shortint",
    "longint", "real", "realtime", "time", "genvar", "var", "signed",
    "unsigned", "tri", "tri0", "tri1", "supply0", "supply1", "wand", "wor",
    "input", "output", "inout", "ref", "typedef", "struct", "union", "enum",
    "parameter", "localparam", "defparam", "automatic", "static", "const",
    # blocks
    "module", "endmodule", "macromodule",
    "function", "endfunction",
    "task", "endtask",
    "generate", "endgenerate",
    "specify", "endspecify",
    "primitive", "endprimitive",
    "interface", "endinterface", "package", "endpackage",
    "class", "endclass", "program", "endprogram",
    "clocking", "endclocking", "modport", "import", "export",
    # assertions
    "assert", "assume", "cover", "property", "endproperty",
    "sequence", "endsequence",
})


def build_denylist(extra: Iterable[str] = ()) -> FrozenSet[str]:
    """Return the default denylist extended with *extra* (case-insensitive)."""
    extra_lower = {word.strip().lower() for word in extra if word.strip()}
    if not extra_lower:
        return INSTANCE_KEYWORD_DENYLIST
    return INSTANCE_KEYWORD_DENYLIST | extra_lower
