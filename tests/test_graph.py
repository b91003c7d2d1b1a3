import dataclasses
import threading

import numpy as np
import pytest

from tapegrad import ops
from tapegrad.backward import backward
from tapegrad.errors import GraphMismatchError, StaleNodeError
from tapegrad.graph import Graph, get_graph, reset_graph, use_graph
from tapegrad.variable import Variable


def test_ids_are_dense_and_shapes_captured():
    g = Graph()
    a = g.add_node(ops.Leaf(), np.ones((2, 3)), True)
    b = g.add_node(ops.Leaf(), 4.0, False)
    c = g.add_node(ops.Mul(a, b), np.full((2, 3), 4.0), True)
    assert (a, b, c) == (0, 1, 2)
    assert len(g) == 3
    assert g.get(a).shape == (2, 3)
    assert g.get(b).shape == ()
    assert g.get(c).op.operands() == (a, b)
    assert [n.id for n in g] == [0, 1, 2]


def test_nodes_are_immutable():
    g = Graph()
    n = g.get(g.add_node(ops.Leaf(), np.ones(2), True))
    with pytest.raises(dataclasses.FrozenInstanceError):
        n.requires_grad = False
    with pytest.raises(ValueError):
        n.value[0] = 3.0


def test_stale_ids_fail_loudly():
    g = Graph()
    g.add_node(ops.Leaf(), 1.0, True)
    for bad in (1, 99, -1, "0", None):
        with pytest.raises(StaleNodeError):
            g.get(bad)
    assert issubclass(StaleNodeError, LookupError)


def test_forward_references_are_rejected():
    g = Graph()
    a = g.add_node(ops.Leaf(), 1.0, True)
    with pytest.raises(StaleNodeError):
        g.add_node(ops.Add(a, 1), 2.0, True)   # 1 is the id it would get itself
    with pytest.raises(StaleNodeError):
        g.add_node(ops.Neg(7), 2.0, True)
    assert len(g) == 1


def test_reset_swaps_in_a_fresh_graph():
    x = Variable.param(2.0)
    old = x.graph
    new = reset_graph()
    assert new is not old
    assert get_graph() is new
    assert len(new) == 0

    # old handles still work against their own graph
    grads = backward(x * x)
    assert np.isclose(grads.of(x), 4.0)

    y = Variable.param(3.0)
    with pytest.raises(GraphMismatchError):
        x * y


def test_use_graph_restores_previous(graph):
    assert get_graph() is graph
    with pytest.raises(RuntimeError):
        with use_graph() as inner:
            assert get_graph() is inner
            raise RuntimeError("boom")
    assert get_graph() is graph

    explicit = Graph()
    with use_graph(explicit) as g:
        assert g is explicit
        Variable.input(1.0)
    assert len(explicit) == 1
    assert len(graph) == 0


def test_explicit_graph_handle(graph):
    g = Graph()
    x = Variable.param(np.array([1.0, 2.0]), graph=g)
    y = (x * x).sum()
    assert y.graph is g
    assert len(graph) == 0
    assert np.allclose(backward(y).of(x), [2.0, 4.0])


def test_current_graph_is_per_thread(graph):
    seen = {}

    def worker():
        seen["graph"] = get_graph()

    t = threading.Thread(target=worker)
    t.start()
    t.join()
    assert seen["graph"] is not graph


def test_workers_with_own_graphs_agree():
    W0 = np.array([[0.5, -0.25], [0.1, 0.2]])
    results = [None] * 4

    def worker(i):
        with use_graph():
            W = Variable.param(W0)
            x = Variable.input(np.array([[1.0, 2.0]]))
            results[i] = backward((x @ W).sigmoid().sum()).of(W)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    for r in results[1:]:
        assert np.array_equal(r, results[0])


def test_shared_graph_appends_are_serialized():
    g = Graph()

    def worker():
        for _ in range(250):
            g.add_node(ops.Leaf(), 0.0, False)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(g) == 1000
    assert [n.id for n in g] == list(range(1000))
