import pytest

from tapegrad.graph import use_graph


@pytest.fixture(autouse=True)
def graph():
    # every test records on its own tape
    with use_graph() as g:
        yield g
