"""vetree: structural indexing for Verilog/SystemVerilog source trees."""

__version__ = "0.3.0"
