"""
Tensor contract used by the tape: thin wrappers over numpy that fix the dtype to
float64 and turn numpy's shape complaints into ShapeError, plus the
broadcast-reduction used when gradients flow back into broadcast operands.
"""
import numpy as np

from .errors import BroadcastReductionError, DTypeError, ShapeError

DTYPE = np.float64


def as_tensor(data, copy=True):
    if isinstance(data, np.ndarray):
        arr = data
    else:
        try:
            arr = np.asarray(data)
        except (TypeError, ValueError) as e:
            raise DTypeError(f"cannot build a tensor from {type(data).__name__}: {e}") from e

    if arr.dtype.kind not in "biuf":
        raise DTypeError(f"expected numeric data, got dtype {arr.dtype}")

    return np.array(arr, dtype=DTYPE, copy=True) if copy else arr.astype(DTYPE, copy=False)


def freeze(x):
    # values on the tape are never written again
    arr = np.asarray(x, dtype=DTYPE)
    arr.setflags(write=False)
    return arr


def shape_of(x):
    return tuple(np.shape(x))


def broadcast_shape(a, b):
    try:
        return np.broadcast_shapes(shape_of(a), shape_of(b))
    except ValueError as e:
        raise ShapeError(f"cannot broadcast shapes {shape_of(a)} and {shape_of(b)}") from e


# ---- elementwise binary, numpy broadcasting ----

def add(a, b):
    broadcast_shape(a, b)
    return np.add(a, b)

def sub(a, b):
    broadcast_shape(a, b)
    return np.subtract(a, b)

def mul(a, b):
    broadcast_shape(a, b)
    return np.multiply(a, b)

def div(a, b):
    broadcast_shape(a, b)
    return np.divide(a, b)


def matmul(a, b):
    # last two dims contracted, leading (batch) dims broadcast
    if np.ndim(a) < 2 or np.ndim(b) < 2:
        raise ShapeError(f"matmul needs rank >= 2 operands, got {shape_of(a)} and {shape_of(b)}")
    if a.shape[-1] != b.shape[-2]:
        raise ShapeError(f"matmul inner dimensions differ: {shape_of(a)} @ {shape_of(b)}")
    try:
        return np.matmul(a, b)
    except ValueError as e:
        raise ShapeError(f"matmul batch dimensions do not broadcast: {shape_of(a)} @ {shape_of(b)}") from e


def transpose(a):
    if np.ndim(a) < 2:
        raise ShapeError(f"transpose needs rank >= 2, got shape {shape_of(a)}")
    return np.swapaxes(a, -1, -2)


def reshape(a, shape):
    shape = tuple(int(s) for s in shape)
    try:
        return np.reshape(a, shape)
    except ValueError as e:
        raise ShapeError(f"cannot reshape {shape_of(a)} into {shape}") from e


# ---- reductions ----

def sum_all(a):
    return np.array(np.sum(a), dtype=DTYPE)

def mean_all(a):
    if np.size(a) == 0:
        raise ShapeError("mean of an empty tensor")
    return np.array(np.mean(a), dtype=DTYPE)

def sum_axis(a, axis, keepdims=False):
    if not -np.ndim(a) <= axis < np.ndim(a):
        raise ShapeError(f"axis {axis} out of range for shape {shape_of(a)}")
    return np.sum(a, axis=axis, keepdims=keepdims)

def mean_axis(a, axis, keepdims=False):
    if not -np.ndim(a) <= axis < np.ndim(a):
        raise ShapeError(f"axis {axis} out of range for shape {shape_of(a)}")
    if np.shape(a)[axis] == 0:
        raise ShapeError(f"mean over empty axis {axis} of shape {shape_of(a)}")
    return np.mean(a, axis=axis, keepdims=keepdims)


# ---- elementwise unary ----

def exp(a):
    return np.exp(a)

def ln(a):
    return np.log(a)

def relu(a):
    return np.maximum(a, 0.0)

def sigmoid(a):
    # exp(-|a|) stays in (0, 1], so neither branch overflows
    e = np.exp(-np.abs(a))
    return np.where(np.asarray(a) >= 0, 1.0 / (1.0 + e), e / (1.0 + e))

def tanh(a):
    return np.tanh(a)

def softmax(a):
    # over the last axis; the row max is subtracted so exp never overflows
    if np.ndim(a) < 1 or np.shape(a)[-1] == 0:
        raise ShapeError(f"softmax needs a non-empty last axis, got shape {shape_of(a)}")
    e = np.exp(a - np.max(a, axis=-1, keepdims=True))
    return e / sum_axis(e, -1, keepdims=True)

def power(a, exponent):
    return np.power(a, exponent)


# ---- construction / extraction ----

def zeros(shape):
    return np.zeros(tuple(shape), dtype=DTYPE)

def ones(shape):
    return np.ones(tuple(shape), dtype=DTYPE)

def full(shape, value):
    return np.full(tuple(shape), value, dtype=DTYPE)

def item(a):
    if np.size(a) != 1:
        raise ShapeError(f"item() needs a 1-element tensor, got shape {shape_of(a)}")
    return float(np.reshape(a, ()))


def unbroadcast(grad, target_shape):
    """
    Sum `grad` down to `target_shape`, undoing numpy broadcasting of the operand.

    Extra leading axes are summed away, then every axis where the target has
    size 1 but the gradient does not is summed with keepdims. Anything that is
    still off after that is only accepted when a reshape fits exactly.
    """
    g = np.asarray(grad)
    target_shape = tuple(target_shape)

    if g.shape == target_shape:
        return g

    # scalar target: everything was broadcast from it
    if target_shape == () or target_shape == (1,):
        return np.asarray(np.sum(g)).reshape(target_shape)

    # extra leading dims
    while g.ndim > len(target_shape):
        g = sum_axis(g, 0)

    # same ndim now (unless grad had fewer dims, left to the reshape below)
    if g.ndim == len(target_shape):
        for axis in range(len(target_shape) - 1, -1, -1):
            if target_shape[axis] == 1 and g.shape[axis] != 1:
                g = sum_axis(g, axis, keepdims=True)

    if g.shape != target_shape:
        if g.size != int(np.prod(target_shape)):
            raise BroadcastReductionError(np.shape(grad), target_shape)
        g = g.reshape(target_shape)

    return g
