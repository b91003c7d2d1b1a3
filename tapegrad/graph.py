"""
The tape: an append-only arena of nodes for one forward pass.

Nodes reference their operands by id, and an operand id is always smaller than
the id of the node using it, so the tape is a DAG in creation order. Nothing is
ever removed; releasing memory between training steps means dropping the graph
and starting a fresh one (reset_graph / use_graph).
"""
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import numpy as np

from .errors import StaleNodeError
from .log import get_logger
from .ops import Op
from .tensor import freeze

logger = get_logger(__name__)


@dataclass(frozen=True)
class Node:
    id: int
    op: Op
    shape: Tuple[int, ...]
    value: np.ndarray
    requires_grad: bool


class Graph:
    def __init__(self):
        self._nodes: List[Node] = []
        # appends are serialized; appended nodes are immutable so reads need no lock
        self._lock = threading.Lock()

    def add_node(self, op: Op, value, requires_grad: bool) -> int:
        value = freeze(value)
        with self._lock:
            node_id = len(self._nodes)
            for operand in op.operands():
                if not 0 <= operand < node_id:
                    raise StaleNodeError(operand, node_id)
            self._nodes.append(Node(node_id, op, value.shape, value, bool(requires_grad)))
        return node_id

    def get(self, node_id: int) -> Node:
        n = len(self._nodes)
        if isinstance(node_id, bool) or not isinstance(node_id, (int, np.integer)) or not 0 <= node_id < n:
            raise StaleNodeError(node_id, n)
        return self._nodes[node_id]

    @property
    def nodes(self) -> Tuple[Node, ...]:
        return tuple(self._nodes)

    def __len__(self):
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes)

    def __repr__(self):
        return f"Graph(nodes={len(self._nodes)})"


# ---- thread-scoped current graph ----

_local = threading.local()


def get_graph() -> Graph:
    g = getattr(_local, "graph", None)
    if g is None:
        g = _local.graph = Graph()
    return g


def reset_graph() -> Graph:
    """Swap in a fresh, empty graph for this thread. Old Variables keep their old graph."""
    old = getattr(_local, "graph", None)
    if old is not None:
        logger.debug("reset_graph: dropping graph with %d nodes", len(old))
    _local.graph = Graph()
    return _local.graph


@contextmanager
def use_graph(graph: Optional[Graph] = None):
    """
    Temporarily make `graph` (or a fresh one) this thread's current graph:

        with use_graph() as g:
            ... build computation ...
            grads = backward(loss)
    """
    prev = getattr(_local, "graph", None)
    try:
        _local.graph = graph if graph is not None else Graph()
        yield _local.graph
    finally:
        _local.graph = prev
