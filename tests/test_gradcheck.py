import numpy as np

from tapegrad.backward import backward
from tapegrad.graph import use_graph
from tapegrad.variable import Variable


def numeric_grad(f, arrays, which, eps=1e-6):
    """Central differences of f(*arrays) with respect to arrays[which]."""
    x = arrays[which]
    g = np.zeros_like(x, dtype=float)

    it = np.nditer(x, flags=['multi_index'])
    while not it.finished:
        idx = it.multi_index

        plus = [a.copy() for a in arrays]
        plus[which][idx] += eps
        minus = [a.copy() for a in arrays]
        minus[which][idx] -= eps

        g[idx] = (f(*plus)[0] - f(*minus)[0]) / (2 * eps)
        it.iternext()

    return g


def mlp_loss(W, b, X):
    # returns (loss value, dW, db) computed on a fresh tape
    with use_graph():
        Wv = Variable.param(W)
        bv = Variable.param(b)
        Xv = Variable.input(X)

        h = (Xv @ Wv + bv).tanh()
        out = (h.sigmoid() * h.exp()).mean() \
            + (h.pow(2) / (h.exp() + 1.0)).sum() \
            - h.sigmoid().ln().sum().mul_scalar(0.5)

        grads = backward(out)
        return out.item(), grads.of(Wv), grads.of(bv)


def test_composite_gradcheck():
    rng = np.random.default_rng(0)
    W = rng.standard_normal((3, 4))
    b = rng.standard_normal((1, 4))
    X = rng.standard_normal((5, 3))

    _, dW, db = mlp_loss(W, b, X)

    assert np.allclose(dW, numeric_grad(mlp_loss, [W, b, X], 0), rtol=1e-5, atol=1e-7)
    assert np.allclose(db, numeric_grad(mlp_loss, [W, b, X], 1), rtol=1e-5, atol=1e-7)


def batched_loss(A, B):
    with use_graph():
        Av = Variable.param(A)
        Bv = Variable.param(B)
        out = ((Av @ Bv).tanh() - Av.mean()).sum()
        grads = backward(out)
        return out.item(), grads.of(Av), grads.of(Bv)


def test_batched_matmul_gradcheck():
    rng = np.random.default_rng(1)
    A = rng.standard_normal((2, 3, 4))
    B = rng.standard_normal((4, 2))

    _, dA, dB = batched_loss(A, B)

    assert dA.shape == A.shape
    assert dB.shape == B.shape
    assert np.allclose(dA, numeric_grad(batched_loss, [A, B], 0), rtol=1e-5, atol=1e-7)
    assert np.allclose(dB, numeric_grad(batched_loss, [A, B], 1), rtol=1e-5, atol=1e-7)


def quotient_loss(a, b):
    with use_graph():
        av = Variable.param(a)
        bv = Variable.param(b)
        out = (av / (bv.relu() + 1.0) - av.T.reshape(6).mean()).sum()
        grads = backward(out)
        return out.item(), grads.of(av), grads.of(bv)


def test_division_with_broadcast_gradcheck():
    rng = np.random.default_rng(2)
    a = rng.standard_normal((3, 2))
    b = rng.uniform(0.5, 2.0, size=(1, 2))

    _, da, db = quotient_loss(a, b)

    assert db.shape == (1, 2)
    assert np.allclose(da, numeric_grad(quotient_loss, [a, b], 0), rtol=1e-5, atol=1e-7)
    assert np.allclose(db, numeric_grad(quotient_loss, [a, b], 1), rtol=1e-5, atol=1e-7)


def softmax_loss(x, w):
    with use_graph():
        xv = Variable.param(x)
        wv = Variable.param(w)
        out = (xv.softmax() * wv).sum() + xv.mul_scalar(3.0).softmax().pow(2).mean()
        grads = backward(out)
        return out.item(), grads.of(xv), grads.of(wv)


def test_softmax_gradcheck():
    rng = np.random.default_rng(3)
    x = rng.standard_normal((4, 5)) * 0.05
    w = rng.standard_normal((4, 5))

    _, dx, dw = softmax_loss(x, w)

    assert dx.shape == x.shape
    assert np.allclose(dx, numeric_grad(softmax_loss, [x, w], 0), rtol=1e-5, atol=1e-7)
    assert np.allclose(dw, numeric_grad(softmax_loss, [x, w], 1), rtol=1e-5, atol=1e-7)


if __name__ == "__main__":
    test_composite_gradcheck()
    test_batched_matmul_gradcheck()
    test_division_with_broadcast_gradcheck()
    test_softmax_gradcheck()
    print("[OK] gradcheck passed")
