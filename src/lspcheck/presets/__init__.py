"""Bundled presets: a server command plus the documents to check it with."""
