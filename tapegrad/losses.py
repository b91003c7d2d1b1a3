from .variable import Variable


def mse_loss(pred: Variable, target) -> Variable:
    """mean((pred - target)^2), as a shape () Variable."""
    err = pred - target
    return (err * err).mean()


def bce_loss(prob: Variable, target, eps=1e-7) -> Variable:
    """
    Binary cross-entropy on probabilities in (0, 1):
    -mean(t * ln(p + eps) + (1 - t) * ln(1 - p + eps))
    `target` may be a Variable or an array of 0/1 labels.
    """
    if not isinstance(target, Variable):
        target = Variable.input(target, graph=prob.graph)
    term1 = target * (prob + eps).ln()
    term2 = (1.0 - target) * (1.0 - prob + eps).ln()
    return (term1 + term2).mean().neg()
