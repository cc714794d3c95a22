"""lspcheck - a conformance harness for LSP servers."""

__version__ = '0.1.0'
