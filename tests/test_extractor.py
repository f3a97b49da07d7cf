"""Tests for structural extraction of modules, ports and instances."""

from vetree_cli.extractor import (
    VerilogExtractor,
    extract_modules,
    find_matching_paren,
    find_module_spans,
    split_top_level,
)
from vetree_cli.keywords import build_denylist
from vetree_cli.models import PortDirection
from vetree_cli.positions import LineIndex
from vetree_cli.sanitizer import sanitize


def extract(text: str, file_path: str = "test.v"):
    return extract_modules(sanitize(text), file_path)


def test_one_line_module_with_instance():
    """Ports, instance and bindings of a single-line module."""
    modules = extract("module m(input a, output [7:0] b); sub u1(.a(a), .b(net1)); endmodule")

    assert len(modules) == 1
    module = modules[0]
    assert module.name == "m"
    assert [(p.direction, p.name, p.range_text) for p in module.ports] == [
        (PortDirection.INPUT, "a", None),
        (PortDirection.OUTPUT, "b", "[7:0]"),
    ]
    assert len(module.instances) == 1
    inst = module.instances[0]
    assert (inst.module_name, inst.instance_name) == ("sub", "u1")
    assert [(b.port_name, b.expr) for b in inst.bindings] == [("a", "a"), ("b", "net1")]


class TestModuleHeaders:
    """Header and port list parsing."""

    def test_parameter_block_is_skipped(self):
        """Test that #(...) parameters are not ports."""
        modules = extract("module alu #(parameter W = 8, parameter D = 2) (input [W-1:0] x, output y);\nendmodule")
        assert [p.name for p in modules[0].ports] == ["x", "y"]
        assert modules[0].ports[0].range_text == "[W-1:0]"

    def test_default_value_is_not_the_name(self):
        """Test port names with default values."""
        modules = extract("module m(output logic ready = 1'b0, input wire [3:0] sel);\nendmodule")
        assert [p.name for p in modules[0].ports] == ["ready", "sel"]

    def test_empty_fragments_are_skipped(self):
        """Test stray commas in the port list."""
        modules = extract("module m(input a, , output b);\nendmodule")
        assert [p.name for p in modules[0].ports] == ["a", "b"]

    def test_non_ansi_ports_have_unknown_direction(self):
        """Test bare port names."""
        modules = extract("module m(a, b);\n  input a;\n  output b;\nendmodule")
        ports = modules[0].ports
        assert [p.name for p in ports] == ["a", "b"]
        assert all(p.direction is PortDirection.UNKNOWN for p in ports)

    def test_direction_is_case_insensitive(self):
        """Test upper-case direction keywords."""
        modules = extract("module m(INPUT a, Inout b, ref c);\nendmodule")
        assert [p.direction for p in modules[0].ports] == [
            PortDirection.INPUT, PortDirection.INOUT, PortDirection.REF,
        ]

    def test_module_without_port_list(self):
        """Test a header with no port list."""
        modules = extract("module tb;\n  dut u_dut (.clk(clk));\nendmodule")
        assert modules[0].ports == []
        assert [i.instance_name for i in modules[0].instances] == ["u_dut"]

    def test_unbalanced_port_list_yields_no_ports(self):
        """Test a port list that never closes."""
        modules = extract("module bad(input a;\nendmodule\nmodule good(input b);\nendmodule")
        assert [m.name for m in modules] == ["bad", "good"]
        assert modules[0].ports == []
        assert [p.name for p in modules[1].ports] == ["b"]

    def test_macromodule_and_lifetime(self):
        """Test macromodule and lifetime qualifiers."""
        modules = extract("macromodule mm;\nendmodule\nmodule automatic am;\nendmodule")
        assert [m.name for m in modules] == ["mm", "am"]

    def test_header_only_at_line_start(self):
        """Test that headers must start a line."""
        modules = extract("wire module_x;\n  module inner;\nendmodule")
        assert [m.name for m in modules] == ["inner"]

    def test_missing_endmodule_ends_at_next_header(self):
        """Test a module without endmodule."""
        modules = extract("module a;\n  b u_b ();\nmodule c;\n  d u_d ();\nendmodule")
        assert [m.name for m in modules] == ["a", "c"]
        assert [i.instance_name for i in modules[0].instances] == ["u_b"]
        assert [i.instance_name for i in modules[1].instances] == ["u_d"]

    def test_comments_and_strings_hide_modules(self):
        """Test that commented modules are ignored."""
        text = (
            "// module commented;\n"
            "/* module blocked; */\n"
            'initial $display("module quoted;");\n'
            "module real_one;\nendmodule\n"
        )
        assert [m.name for m in extract(text)] == ["real_one"]


class TestInstances:
    """Instance detection and named bindings."""

    def test_keywords_are_not_instances(self):
        """Test the keyword denylist."""
        text = (
            "module m(input clk);\n"
            "  wire w;\n"
            "  reg [3:0] r;\n"
            "  assign w = r[0];\n"
            "  always @(posedge clk) begin\n"
            "    if (w) r <= 0;\n"
            "  end\n"
            "  generate\n"
            "    for (genvar i = 0; i < 4; i++) begin : g\n"
            "      leaf u_leaf (.d(r[i]));\n"
            "    end\n"
            "  endgenerate\n"
            "endmodule\n"
        )
        modules = extract(text)
        assert [(i.module_name, i.instance_name) for i in modules[0].instances] == [("leaf", "u_leaf")]

    def test_extra_keywords_extend_denylist(self):
        """Test configured extra keywords."""
        text = sanitize("module m;\n  my_macro u_x (a);\n  sub u_s (b);\nendmodule")
        modules = VerilogExtractor(build_denylist(["MY_MACRO"])).extract(text, "m.v")
        assert [i.instance_name for i in modules[0].instances] == ["u_s"]

    def test_parameterized_instance(self):
        """Test an instance with a parameter block."""
        modules = extract("module m;\n  alu #(.WIDTH(8)) u_alu (.a(x), .y(z));\nendmodule")
        inst = modules[0].instances[0]
        assert (inst.module_name, inst.instance_name) == ("alu", "u_alu")
        assert [b.port_name for b in inst.bindings] == ["a", "y"]

    def test_parameter_block_after_instance_name(self):
        """Test parameters after the instance name."""
        modules = extract("module m;\n  sub u1 #(4) (.a(x));\nendmodule")
        assert [i.instance_name for i in modules[0].instances] == ["u1"]

    def test_labelled_instance(self):
        """Test an instance behind a block label."""
        modules = extract("module m;\n  blk: sub u2 (.a(b));\nendmodule")
        inst = modules[0].instances[0]
        assert (inst.module_name, inst.instance_name) == ("sub", "u2")

    def test_instance_array(self):
        """Test instance array ranges."""
        modules = extract("module m;\n  sub u_arr [3:0] (.a(bus));\nendmodule")
        inst = modules[0].instances[0]
        assert inst.instance_name == "u_arr"
        assert inst.bindings[0].expr == "bus"

    def test_nested_expressions(self):
        """Test bindings with nested parentheses."""
        modules = extract("module m;\n  sub u (.d({a, b[3:0]}), .e(f(g)), .q( x ), .nc());\nendmodule")
        bindings = modules[0].instances[0].bindings
        assert [(b.port_name, b.expr) for b in bindings] == [
            ("d", "{a, b[3:0]}"),
            ("e", "f(g)"),
            ("q", "x"),
            ("nc", ""),
        ]

    def test_positional_connections_have_no_bindings(self):
        """Test positional connections."""
        modules = extract("module m;\n  sub u (a, b);\nendmodule")
        inst = modules[0].instances[0]
        assert inst.instance_name == "u"
        assert inst.bindings == []

    def test_multiline_instance(self):
        """Test an instance spread over several lines."""
        text = "module m;\n  sub\n    u_multi\n    (\n      .a(x)\n    );\nendmodule"
        inst = extract(text)[0].instances[0]
        assert inst.instance_name == "u_multi"
        assert inst.bindings[0].port_name == "a"

    def test_unbalanced_argument_list_keeps_instance(self):
        """Test an argument list that never closes."""
        modules = extract("module m;\n  sub u_bad (.a(x);\nendmodule")
        inst = modules[0].instances[0]
        assert inst.instance_name == "u_bad"
        assert inst.bindings == []

    def test_instances_stay_inside_their_module(self):
        """Test that instances belong to the enclosing module."""
        modules = extract("module a;\n  x u_x ();\nendmodule\nmodule b;\n  y u_y ();\nendmodule")
        assert [i.instance_name for i in modules[0].instances] == ["u_x"]
        assert [i.instance_name for i in modules[1].instances] == ["u_y"]

    def test_commented_instance_is_ignored(self):
        """Test a commented-out instance."""
        modules = extract("module m;\n  // ghost u_ghost ();\n  real u_real ();\nendmodule")
        assert [i.instance_name for i in modules[0].instances] == ["u_real"]


class TestLocations:
    """Zero-based positions computed on the sanitized text."""

    def test_module_and_port_locations(self):
        """Test module and port source ranges."""
        text = "// header\nmodule top (\n    input clk\n);\nendmodule"
        module = extract(text, "rtl/top.v")[0]
        assert module.file_path == "rtl/top.v"
        assert (module.location.line, module.location.column) == (1, 0)
        port = module.ports[0]
        assert (port.location.line, port.location.column) == (2, 10)
        assert port.location.end.column == 13

    def test_instance_and_binding_locations(self):
        """Test instance and binding source ranges."""
        text = "module m;\n  sub u1 (\n    .a(x)\n  );\nendmodule"
        inst = extract(text)[0].instances[0]
        assert (inst.location.line, inst.location.column) == (1, 2)
        assert (inst.location.end.line, inst.location.end.column) == (1, 8)
        binding = inst.bindings[0]
        assert (binding.location.line, binding.location.column) == (2, 4)
        assert binding.location.end.column == 9

    def test_location_string_is_one_based(self):
        """Test the printable location format."""
        module = extract("\n  module m;\nendmodule", "a.v")[0]
        assert str(module.location) == "a.v:2:3"


class TestHelpers:
    """Low-level scanning helpers."""

    def test_find_matching_paren(self):
        """Test balanced parenthesis matching."""
        text = "(a(b)c)"
        assert find_matching_paren(text, 0, len(text) - 1) == 6
        assert find_matching_paren(text, 2, len(text) - 1) == 4
        assert find_matching_paren("(a(b", 0, 3) == -1

    def test_find_matching_paren_respects_limit(self):
        """Test the scan limit for parenthesis matching."""
        assert find_matching_paren("(abc)", 0, 3) == -1

    def test_split_top_level(self):
        """Test splitting on top-level commas."""
        text = "a, b[1,2], f(c, d), {e, f}"
        parts = [text[s:e].strip() for s, e in split_top_level(text, 0, len(text))]
        assert parts == ["a", "b[1,2]", "f(c, d)", "{e, f}"]

    def test_find_module_spans(self):
        """Test module span detection."""
        text = "module a;\nendmodule\nmodule b;\nendmodule"
        spans = find_module_spans(text)
        assert [s.name for s in spans] == ["a", "b"]
        assert text[spans[0].body_end:].startswith("endmodule")

    def test_line_index(self):
        """Test offset to line and column conversion."""
        lines = LineIndex("ab\ncd\n\nef")
        assert lines.line_count == 4
        assert (lines.position(0).line, lines.position(0).column) == (0, 0)
        assert (lines.position(4).line, lines.position(4).column) == (1, 1)
        assert (lines.position(6).line, lines.position(6).column) == (2, 0)
        assert lines.position(999).line == 3
        assert lines.position(-5).line == 0
