"""Python preset: basedpyright."""

from lspcheck.scenario import Fixture


def get_server():
    """Return the basedpyright server command."""
    return ['basedpyright-langserver', '--stdio']


def get_fixture():
    return Fixture(
        document_uri='file:///tmp/test/main.py',
        language_id='python',
        invalid_text='def f(:\n',
        valid_text='my_var = 10\nmy_\n',
        completion_position=(1, 3),
        hover_position=(0, 2),
    )
