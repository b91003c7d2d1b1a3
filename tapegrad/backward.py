"""
Reverse-mode differentiation over a recorded tape.

backward(loss) seeds d(loss)/d(loss) = 1, then visits node ids from the loss
down to 0. Ids are handed out in creation order and operands always have
smaller ids than their consumers, so by the time a node is visited every
contribution to its gradient has already been accumulated.
"""
from typing import Dict, Optional

import numpy as np

from . import ops
from . import tensor as tn
from .errors import DetachedVariableError, GraphMismatchError
from .graph import Graph, Node
from .log import get_logger
from .variable import Variable

logger = get_logger(__name__)


class Gradients(dict):
    """
    NodeId -> gradient array for one backward call, plus the graph the ids
    belong to. Nodes that were not on a path to the loss have no entry.
    """

    def __init__(self, graph: Graph):
        super().__init__()
        self.graph = graph

    def of(self, v: Variable) -> Optional[np.ndarray]:
        if v.graph is not self.graph:
            raise GraphMismatchError("variable was recorded on a different graph than these gradients")
        if v.node_id is None:
            return None
        return self.get(v.node_id)


def accumulate(table: Dict[int, np.ndarray], target_id: int, incoming, target_shape):
    # reduce to the operand's shape first, then sum with what is already there
    g = tn.unbroadcast(incoming, target_shape)
    if target_id in table:
        table[target_id] = np.asarray(table[target_id] + g)
    else:
        table[target_id] = g


# ---- per-tag rules ----
# rule(graph, node, g) -> iterable of (operand_id, gradient w.r.t. that operand)

def _leaf(graph, node, g):
    return ()

def _add(graph, node, g):
    return ((node.op.a, g), (node.op.b, g))

def _sub(graph, node, g):
    return ((node.op.a, g), (node.op.b, -g))

def _mul(graph, node, g):
    a, b = node.op.a, node.op.b
    return ((a, tn.mul(g, graph.get(b).value)),
            (b, tn.mul(g, graph.get(a).value)))

def _div(graph, node, g):
    a, b = node.op.a, node.op.b
    va, vb = graph.get(a).value, graph.get(b).value
    return ((a, tn.div(g, vb)),
            (b, tn.div(tn.mul(-va, g), tn.mul(vb, vb))))

def _matmul(graph, node, g):
    a, b = node.op.a, node.op.b
    va, vb = graph.get(a).value, graph.get(b).value
    return ((a, tn.matmul(g, tn.transpose(vb))),
            (b, tn.matmul(tn.transpose(va), g)))

def _neg(graph, node, g):
    return ((node.op.a, -g),)

def _exp(graph, node, g):
    # d/dx e^x = e^x, which is this node's own value
    return ((node.op.a, tn.mul(node.value, g)),)

def _ln(graph, node, g):
    return ((node.op.a, tn.div(g, graph.get(node.op.a).value)),)

def _pow(graph, node, g):
    a, n = node.op.a, node.op.exponent
    if n == 0.0:
        # x**0 is constant; n * x**-1 would be 0 * inf at x = 0
        return ((a, tn.zeros(graph.get(a).shape)),)
    return ((a, tn.mul(n * tn.power(graph.get(a).value, n - 1.0), g)),)

def _relu(graph, node, g):
    mask = (graph.get(node.op.a).value > 0).astype(tn.DTYPE)
    return ((node.op.a, tn.mul(mask, g)),)

def _sigmoid(graph, node, g):
    s = node.value
    return ((node.op.a, tn.mul(s * (1.0 - s), g)),)

def _tanh(graph, node, g):
    t = node.value
    return ((node.op.a, tn.mul(1.0 - t * t, g)),)

def _softmax(graph, node, g):
    # s * (g - sum_last(g * s)), the full Jacobian-vector product
    s = node.value
    dot = tn.sum_axis(tn.mul(g, s), -1, keepdims=True)
    return ((node.op.a, tn.mul(s, tn.sub(g, dot))),)

def _transpose(graph, node, g):
    return ((node.op.a, tn.transpose(g)),)

def _reshape(graph, node, g):
    return ((node.op.a, tn.reshape(g, graph.get(node.op.a).shape)),)

def _mul_scalar(graph, node, g):
    return ((node.op.a, node.op.scalar * g),)

def _add_scalar(graph, node, g):
    return ((node.op.a, g),)

def _sum_all(graph, node, g):
    shape = graph.get(node.op.a).shape
    return ((node.op.a, tn.ones(shape) * tn.item(g)),)

def _mean_all(graph, node, g):
    src = graph.get(node.op.a)
    return ((node.op.a, tn.full(src.shape, 1.0 / src.value.size) * tn.item(g)),)


_RULES = {
    ops.Leaf: _leaf,
    ops.Add: _add,
    ops.Sub: _sub,
    ops.Mul: _mul,
    ops.Div: _div,
    ops.MatMul: _matmul,
    ops.Neg: _neg,
    ops.Exp: _exp,
    ops.Ln: _ln,
    ops.Relu: _relu,
    ops.Sigmoid: _sigmoid,
    ops.Tanh: _tanh,
    ops.Softmax: _softmax,
    ops.Transpose: _transpose,
    ops.Reshape: _reshape,
    ops.Pow: _pow,
    ops.MulScalar: _mul_scalar,
    ops.AddScalar: _add_scalar,
    ops.SumAll: _sum_all,
    ops.MeanAll: _mean_all,
}


def rule_for(op: ops.Op):
    try:
        return _RULES[type(op)]
    except KeyError:
        raise NotImplementedError(f"no backward rule for operation {op.name}") from None


def backward(loss: Variable, graph: Optional[Graph] = None) -> Gradients:
    """
    Gradients of `loss` with respect to every node that leads to it.

    The seed is a tensor of ones shaped like the loss, so a non-scalar loss
    behaves like sum(loss). Only operands with requires_grad receive
    contributions. Any tensor error raised by a rule aborts the call; a
    partial table is never returned.
    """
    graph = graph if graph is not None else loss.graph
    if loss.graph is not graph:
        raise GraphMismatchError("loss was recorded on a different graph")
    if loss.node_id is None:
        raise DetachedVariableError("backward() on a value computed under no_grad(); nothing was recorded")

    root: Node = graph.get(loss.node_id)
    grads = Gradients(graph)
    grads[root.id] = tn.ones(root.shape)
    logger.debug("backward: seed node %d (%s) shape %s, tape has %d nodes",
                 root.id, root.op.name, root.shape, len(graph))

    visited = 0
    for node_id in range(root.id, -1, -1):
        g = grads.get(node_id)
        if g is None:
            continue
        node = graph.get(node_id)
        visited += 1
        for operand, contrib in rule_for(node.op)(graph, node, g):
            target = graph.get(operand)
            if not target.requires_grad:
                continue
            accumulate(grads, operand, contrib, target.shape)

    logger.debug("backward: propagated through %d nodes, %d gradients", visited, len(grads))
    return grads
