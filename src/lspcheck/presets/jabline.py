"""Jabline preset: ./jabline lsp."""

from lspcheck.scenario import Fixture


def get_server():
    """Return the jabline server command."""
    return ['./jabline', 'lsp']


def get_fixture():
    return Fixture(
        document_uri='file:///tmp/test/main.jb',
        language_id='jabline',
        invalid_text='let x = ;',
        valid_text='let myVar = 10;\n',
        completion_position=(1, 0),
        # Inside 'myVar'
        hover_position=(0, 5),
    )
