"""
Operation tags recorded on the tape.

Each tag says how a node's value was produced and carries the operand node ids
(plus any scalar parameter) the backward rule needs. Operands are referenced by
id only; the graph owns the nodes.
"""
from dataclasses import dataclass, fields


@dataclass(frozen=True)
class Op:
    def operands(self):
        return tuple(getattr(self, f.name) for f in fields(self) if f.name in ("a", "b"))

    @property
    def name(self):
        return type(self).__name__


@dataclass(frozen=True)
class Leaf(Op):
    pass


# ---- binary ----

@dataclass(frozen=True)
class Add(Op):
    a: int
    b: int

@dataclass(frozen=True)
class Sub(Op):
    a: int
    b: int

@dataclass(frozen=True)
class Mul(Op):
    a: int
    b: int

@dataclass(frozen=True)
class Div(Op):
    a: int
    b: int

@dataclass(frozen=True)
class MatMul(Op):
    a: int
    b: int


# ---- unary ----

@dataclass(frozen=True)
class Neg(Op):
    a: int

@dataclass(frozen=True)
class Exp(Op):
    a: int

@dataclass(frozen=True)
class Ln(Op):
    a: int

@dataclass(frozen=True)
class Relu(Op):
    a: int

@dataclass(frozen=True)
class Sigmoid(Op):
    a: int

@dataclass(frozen=True)
class Tanh(Op):
    a: int

# over the last axis
@dataclass(frozen=True)
class Softmax(Op):
    a: int

@dataclass(frozen=True)
class Transpose(Op):
    a: int

@dataclass(frozen=True)
class Reshape(Op):
    a: int


# ---- unary with a scalar parameter ----

@dataclass(frozen=True)
class Pow(Op):
    a: int
    exponent: float

@dataclass(frozen=True)
class MulScalar(Op):
    a: int
    scalar: float

@dataclass(frozen=True)
class AddScalar(Op):
    a: int
    scalar: float


# ---- full reductions ----

@dataclass(frozen=True)
class SumAll(Op):
    a: int

@dataclass(frozen=True)
class MeanAll(Op):
    a: int


ALL_OPS = (
    Leaf,
    Add, Sub, Mul, Div, MatMul,
    Neg, Exp, Ln, Relu, Sigmoid, Tanh, Softmax, Transpose, Reshape,
    Pow, MulScalar, AddScalar,
    SumAll, MeanAll,
)
