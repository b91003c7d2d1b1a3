import numpy as np

from .log import get_logger

logger = get_logger(__name__)


class Optimizer:
    """
    Base optimizer over nn.Parameter objects.

    step(grads) reads each parameter's gradient from the table returned by
    backward() and writes the update into Parameter.data. Call it only after
    backward() has returned.
    """

    def __init__(self, params, lr):
        self.params = list(params)
        self.lr = lr

    def grad_of(self, p, grads):
        # a parameter has a gradient only if it was bound on the graph backward() ran over
        v = p.variable
        if v is None or v.node_id is None or v.graph is not grads.graph:
            return None
        return grads.get(v.node_id)

    def clip_grad_norm_(self, grads, max_norm):
        total_sq = 0.0
        for p in self.params:
            g = self.grad_of(p, grads)
            if g is None:
                continue
            total_sq += float(np.sum(g * g))
        total_norm = float(np.sqrt(total_sq))

        if total_norm > max_norm:
            scale = max_norm / total_norm
            logger.debug("clip_grad_norm_: norm %.4g > %.4g, scaling by %.4g", total_norm, max_norm, scale)
            for p in self.params:
                g = self.grad_of(p, grads)
                if g is None:
                    continue
                grads[p.node_id] = g * scale

        return total_norm

    def step(self, grads):
        for i, p in enumerate(self.params):
            g = self.grad_of(p, grads)
            if g is None:
                continue
            self._update(i, p, g)
            # the bound leaf holds the old value
            p.release()

    def _update(self, i, p, g):
        raise NotImplementedError


class SGD(Optimizer):
    def __init__(self, params, lr=1e-2, momentum=0.0):
        super().__init__(params, lr)
        self.momentum = momentum
        self.velocity = [np.zeros_like(p.data) for p in self.params]

    def _update(self, i, p, g):
        if self.momentum:
            self.velocity[i] = self.momentum * self.velocity[i] - self.lr * g
            p.data += self.velocity[i]
        else:
            p.data -= self.lr * g


class Adam(Optimizer):
    def __init__(self, params, lr=1e-3, betas=(0.9, 0.999), eps=1e-8, weight_decay=0.0):
        super().__init__(params, lr)
        self.beta1, self.beta2 = betas
        self.eps = eps
        self.weight_decay = weight_decay

        # state
        self.t = 0
        self.m = [np.zeros_like(p.data) for p in self.params]
        self.v = [np.zeros_like(p.data) for p in self.params]

    def state_dict(self):
        return {
            "t": self.t,
            "m": [mm.copy() for mm in self.m],
            "v": [vv.copy() for vv in self.v],
            "lr": self.lr,
            "betas": (self.beta1, self.beta2),
            "eps": self.eps,
            "weight_decay": self.weight_decay,
        }

    def load_state_dict(self, sd):
        m = sd["m"]
        v = sd["v"]
        if len(m) != len(self.params) or len(v) != len(self.params):
            raise ValueError(f"Adam state mismatch: got {len(m)} slots, expected {len(self.params)}")

        for i, p in enumerate(self.params):
            if m[i].shape != p.data.shape or v[i].shape != p.data.shape:
                raise ValueError(f"Adam slot shape mismatch at idx {i}: "
                                 f"m {m[i].shape} v {v[i].shape} vs param {p.data.shape}")

        self.t = int(sd["t"])
        self.lr = float(sd.get("lr", self.lr))
        b1, b2 = sd.get("betas", (self.beta1, self.beta2))
        self.beta1, self.beta2 = float(b1), float(b2)
        self.eps = float(sd.get("eps", self.eps))
        self.weight_decay = float(sd.get("weight_decay", self.weight_decay))
        self.m = [mm.copy() for mm in m]
        self.v = [vv.copy() for vv in v]

    def step(self, grads, clip_norm=None):
        self.t += 1
        if clip_norm is not None:
            self.clip_grad_norm_(grads, clip_norm)
        super().step(grads)

    def _update(self, i, p, g):
        b1, b2 = self.beta1, self.beta2

        # biased moments
        self.m[i] = b1 * self.m[i] + (1 - b1) * g
        self.v[i] = b2 * self.v[i] + (1 - b2) * (g * g)

        # bias correction
        m_hat = self.m[i] / (1 - (b1 ** self.t))
        v_hat = self.v[i] / (1 - (b2 ** self.t))

        p.data -= self.lr * m_hat / (np.sqrt(v_hat) + self.eps)

        # decoupled weight decay
        if self.weight_decay:
            p.data -= self.lr * self.weight_decay * p.data
