class TensorError(Exception):
    """Base class for failures raised by the tensor layer."""


class ShapeError(TensorError, ValueError):
    # operands cannot be broadcast, matmul/transpose rank or inner dims are wrong,
    # or a reshape changes the element count
    pass


class DTypeError(TensorError, TypeError):
    pass


class GraphError(Exception):
    """Base class for misuse of a tape (stale ids, mixed graphs)."""


class StaleNodeError(GraphError, LookupError):
    def __init__(self, node_id, size):
        super().__init__(f"node id {node_id!r} is not valid for a graph of {size} nodes "
                         f"(id from another graph or from before a reset?)")
        self.node_id = node_id
        self.size = size


class GraphMismatchError(GraphError, ValueError):
    pass


class DetachedVariableError(GraphError, RuntimeError):
    pass


class BroadcastReductionError(RuntimeError):
    def __init__(self, grad_shape, target_shape):
        super().__init__(f"cannot reduce gradient of shape {tuple(grad_shape)} "
                         f"to operand shape {tuple(target_shape)}")
        self.grad_shape = tuple(grad_shape)
        self.target_shape = tuple(target_shape)
