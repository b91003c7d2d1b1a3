import numbers
from typing import Optional

from . import ops
from . import tensor as tn
from .errors import GraphMismatchError
from .grad_mode import is_grad_enabled
from .graph import Graph, get_graph


def _is_scalar(x):
    return isinstance(x, numbers.Real)


# a Variable is a handle: its value plus where that value sits on a graph
class Variable:
    # let numpy hand `ndarray <op> Variable` over to our reflected operators
    __array_ufunc__ = None

    def __init__(self, graph: Graph, node_id: Optional[int], data, requires_grad: bool):
        self.graph = graph
        self.node_id = node_id      # None while detached (made under no_grad)
        self.data = data            # the same read-only array the node holds
        self._requires_grad = bool(requires_grad)

    # ---- leaves ----

    @classmethod
    def leaf(cls, data, requires_grad: bool, graph: Optional[Graph] = None) -> "Variable":
        graph = graph if graph is not None else get_graph()
        value = tn.freeze(tn.as_tensor(data))
        if not is_grad_enabled():
            return cls(graph, None, value, requires_grad)
        node_id = graph.add_node(ops.Leaf(), value, requires_grad)
        return cls(graph, node_id, graph.get(node_id).value, requires_grad)

    @classmethod
    def param(cls, data, graph: Optional[Graph] = None) -> "Variable":
        return cls.leaf(data, True, graph)

    @classmethod
    def input(cls, data, graph: Optional[Graph] = None) -> "Variable":
        return cls.leaf(data, False, graph)

    # ---- introspection ----

    @property
    def requires_grad(self) -> bool:
        return self._requires_grad

    @property
    def is_detached(self) -> bool:
        return self.node_id is None

    @property
    def shape(self):
        return self.data.shape

    @property
    def ndim(self):
        return self.data.ndim

    def numel(self) -> int:
        return int(self.data.size)

    def item(self) -> float:
        return tn.item(self.data)

    def numpy(self):
        return self.data.copy()

    def detach(self) -> "Variable":
        return Variable.input(self.data, graph=self.graph)

    def __repr__(self):
        rg = "req" if self._requires_grad else "const"
        nid = "detached" if self.node_id is None else self.node_id
        return f"Variable(id={nid}, shape={self.shape}, {rg}, data={self.data!r})"

    # ---- recording ----

    def _lift(self, other) -> "Variable":
        if isinstance(other, Variable):
            if other.graph is not self.graph:
                raise GraphMismatchError(
                    f"operands belong to different graphs ({self.graph!r} vs {other.graph!r})")
            return other
        # recorded only once the op using it has succeeded
        return Variable(self.graph, None, tn.freeze(tn.as_tensor(other)), False)

    def _ensure_recorded(self) -> int:
        # a detached value becomes a leaf the first time recording needs it
        if self.node_id is None:
            self.node_id = self.graph.add_node(ops.Leaf(), self.data, self._requires_grad)
        return self.node_id

    def _record(self, result, make_op, *operands: "Variable") -> "Variable":
        # the forward value is already computed, so a failing op never reaches here
        if not is_grad_enabled():
            return Variable(self.graph, None, tn.freeze(result), False)
        ids = [v._ensure_recorded() for v in operands]
        requires_grad = any(v.requires_grad for v in operands)
        node_id = self.graph.add_node(make_op(*ids), result, requires_grad)
        return Variable(self.graph, node_id, self.graph.get(node_id).value, requires_grad)

    def _binary(self, other, fn, tag):
        other = self._lift(other)
        result = fn(self.data, other.data)
        return self._record(result, tag, self, other)

    def _unary(self, fn, tag):
        return self._record(fn(self.data), tag, self)

    # ---- binary ----

    def add(self, other):
        if _is_scalar(other):
            return self.add_scalar(other)
        return self._binary(other, tn.add, ops.Add)

    def sub(self, other):
        if _is_scalar(other):
            return self.add_scalar(-float(other))
        return self._binary(other, tn.sub, ops.Sub)

    def mul(self, other):
        if _is_scalar(other):
            return self.mul_scalar(other)
        return self._binary(other, tn.mul, ops.Mul)

    def div(self, other):
        if _is_scalar(other):
            return self.mul_scalar(1.0 / float(other))
        return self._binary(other, tn.div, ops.Div)

    def matmul(self, other):
        return self._binary(other, tn.matmul, ops.MatMul)

    # ---- unary ----

    def neg(self):
        return self._unary(lambda x: -x, ops.Neg)

    def exp(self):
        return self._unary(tn.exp, ops.Exp)

    def ln(self):
        return self._unary(tn.ln, ops.Ln)

    log = ln

    def relu(self):
        return self._unary(tn.relu, ops.Relu)

    def sigmoid(self):
        return self._unary(tn.sigmoid, ops.Sigmoid)

    def tanh(self):
        return self._unary(tn.tanh, ops.Tanh)

    def softmax(self):
        return self._unary(tn.softmax, ops.Softmax)

    def transpose(self):
        return self._unary(tn.transpose, ops.Transpose)

    @property
    def T(self):
        return self.transpose()

    def reshape(self, *shape):
        if len(shape) == 1 and isinstance(shape[0], (tuple, list)):
            shape = tuple(shape[0])
        return self._unary(lambda x: tn.reshape(x, shape), ops.Reshape)

    # ---- scalar parameter ----

    def pow(self, n):
        if not _is_scalar(n):
            raise TypeError(f"pow() takes a plain number as exponent, got {type(n).__name__}")
        n = float(n)
        return self._unary(lambda x: tn.power(x, n), lambda a: ops.Pow(a, n))

    def mul_scalar(self, s):
        s = float(s)
        return self._unary(lambda x: x * s, lambda a: ops.MulScalar(a, s))

    def add_scalar(self, s):
        s = float(s)
        return self._unary(lambda x: x + s, lambda a: ops.AddScalar(a, s))

    # ---- reductions ----

    def sum(self):
        return self._unary(tn.sum_all, ops.SumAll)

    def mean(self):
        return self._unary(tn.mean_all, ops.MeanAll)

    # ---- operators ----

    __add__ = add
    __sub__ = sub
    __mul__ = mul
    __truediv__ = div
    __matmul__ = matmul
    __neg__ = neg

    def __pow__(self, n):
        return self.pow(n)

    def __radd__(self, other):
        if _is_scalar(other):
            return self.add_scalar(other)
        return self._lift(other).add(self)

    def __rsub__(self, other):
        if _is_scalar(other):
            return self.neg().add_scalar(other)
        return self._lift(other).sub(self)

    def __rmul__(self, other):
        if _is_scalar(other):
            return self.mul_scalar(other)
        return self._lift(other).mul(self)

    def __rtruediv__(self, other):
        if _is_scalar(other):
            return self.pow(-1.0).mul_scalar(other)
        return self._lift(other).div(self)

    def __rmatmul__(self, other):
        return self._lift(other).matmul(self)
