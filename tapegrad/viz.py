# tapegrad/viz.py
import numbers

import numpy as np

from .ops import Leaf


def trace(graph, root=None):
    """
    Node ids and (operand, consumer) edges to draw. With a root, only the nodes
    it depends on; without one, the whole tape.
    """
    if root is None:
        ids = set(range(len(graph)))
    else:
        ids = set()
        stack = [root]
        while stack:
            i = stack.pop()
            if i in ids:
                continue
            ids.add(i)
            stack.extend(graph.get(i).op.operands())

    edges = set()
    for i in ids:
        for operand in graph.get(i).op.operands():
            edges.add((operand, i))
    return ids, edges


def _fmt_data(x, max_chars=40):
    s = np.array2string(np.asarray(x), precision=4, threshold=8).replace("\n", " ")
    if len(s) > max_chars:
        s = s[:max_chars] + "..."
    return s


def _should_show(node, root, mode="full", hide_const=False):
    is_root = (node.id == root)
    is_leaf = isinstance(node.op, Leaf)

    # constant leaves (inputs/targets) are clutter in most pictures
    if hide_const and is_leaf and not node.requires_grad and not is_root:
        return False

    if mode == "full":
        return True

    if mode == "ops_only":
        # ops, trainable leaves and the root
        return is_root or not is_leaf or node.requires_grad

    raise ValueError(f"Unknown mode: {mode}")


def to_dot(graph, root=None, grads=None, max_data_chars=40, mode="full", hide_const=False):
    if root is not None and not isinstance(root, numbers.Integral):
        root = root.node_id
    ids, edges = trace(graph, root)

    visible = {i for i in ids if _should_show(graph.get(i), root, mode=mode, hide_const=hide_const)}

    lines = []
    lines.append("digraph G {")
    lines.append("rankdir=LR;")
    lines.append('node [fontsize=10];')

    for i in sorted(visible):
        n = graph.get(i)
        parts = [f"#{n.id} {n.op.name}"]
        for field in ("exponent", "scalar"):
            if hasattr(n.op, field):
                parts.append(f"{field}={getattr(n.op, field):g}")
        parts.append(f"shape={n.shape}")
        parts.append(f"req_grad={n.requires_grad}")
        parts.append(f"data={_fmt_data(n.value, max_data_chars)}")

        g = None if grads is None else grads.get(i)
        if g is not None:
            parts.append(f"grad_mean={np.mean(g):.3g}")
            parts.append(f"grad_std={np.std(g):.3g}")

        label = "\\n".join(parts)
        if i == root:
            lines.append(f'node{i} [label="{label}", shape=box, style="filled", fillcolor="lightgray"];')
        else:
            lines.append(f'node{i} [label="{label}", shape=box];')

    # edges touching a hidden node are dropped; hidden nodes are leaves only
    for a, b in sorted(edges):
        if a in visible and b in visible:
            lines.append(f"node{a} -> node{b};")

    lines.append("}")
    return "\n".join(lines)


def save_dot(graph, path="graph.dot", **kwargs):
    dot = to_dot(graph, **kwargs)
    with open(path, "w") as f:
        f.write(dot)
    return path
