import numpy as np

from .graph import Graph, get_graph
from .variable import Variable


class Parameter:
    """
    Trainable array that outlives any single tape.

    Each forward pass binds it to the current graph as a leaf Variable (once per
    graph); optimizers read the gradient for that leaf and update `data` in place.
    """

    def __init__(self, data, name=None):
        self.data = np.array(data, dtype=np.float64)
        self.name = name
        self._var = None

    def bind(self, graph: Graph = None) -> Variable:
        graph = graph if graph is not None else get_graph()
        if self._var is None or self._var.graph is not graph:
            self._var = Variable.param(self.data, graph=graph)
        return self._var

    def release(self):
        # next bind() records a fresh leaf with the current data
        self._var = None

    @property
    def variable(self):
        return self._var

    @property
    def node_id(self):
        return None if self._var is None else self._var.node_id

    @property
    def shape(self):
        return self.data.shape

    def __repr__(self):
        return f"Parameter(name={self.name!r}, shape={self.shape})"


class Module:
    def parameters(self):
        params = []

        def collect(obj):
            if isinstance(obj, Parameter):
                if not any(p is obj for p in params):
                    params.append(obj)
            elif isinstance(obj, Module):
                for v in obj.__dict__.values():
                    collect(v)
            elif isinstance(obj, (list, tuple)):
                for v in obj:
                    collect(v)
            elif isinstance(obj, dict):
                for v in obj.values():
                    collect(v)

        for v in self.__dict__.values():
            collect(v)

        return params

    def forward(self, x: Variable) -> Variable:
        raise NotImplementedError

    def __call__(self, x) -> Variable:
        if not isinstance(x, Variable):
            x = Variable.input(x)
        return self.forward(x)


class Linear(Module):
    # y = x @ W + b, with b shaped (1, out_dim) and broadcast over the batch
    def __init__(self, in_dim, out_dim, seed=None):
        rng = np.random.default_rng(seed)
        scale = np.sqrt(6.0 / (in_dim + out_dim))
        self.W = Parameter(rng.uniform(-scale, scale, size=(in_dim, out_dim)), name="W")
        self.b = Parameter(np.zeros((1, out_dim)), name="b")

    def forward(self, x: Variable) -> Variable:
        g = x.graph
        return (x @ self.W.bind(g)) + self.b.bind(g)


class MLP(Module):
    def __init__(self, in_dim, hidden_dim, out_dim, seed=None):
        self.l1 = Linear(in_dim, hidden_dim, seed=seed)
        self.l2 = Linear(hidden_dim, out_dim, seed=None if seed is None else seed + 1)

    def forward(self, x: Variable) -> Variable:
        h = self.l1(x).relu()
        return self.l2(h)
