import numpy as np
from tapegrad.backward import backward
from tapegrad.graph import reset_graph
from tapegrad.losses import mse_loss
from tapegrad.nn import Linear
from tapegrad.optim import SGD

xs = np.array([[1.], [2.], [3.], [4.]])
ys = np.array([[5.], [8.], [11.], [14.]])  # 3x + 2

model = Linear(1, 1, seed=0)
opt = SGD(model.parameters(), lr=0.05)

steps = 1000
for step in range(steps):
    reset_graph()

    pred = model(xs)             # (4, 1) @ (1, 1) + (1, 1) -> (4, 1)
    loss = mse_loss(pred, ys)    # shape ()

    grads = backward(loss)
    dW, db = grads.of(model.W.variable), grads.of(model.b.variable)
    opt.step(grads)

    if step % 100 == 0:
        print(step, loss.item(), "w", float(model.W.data[0, 0]), "b", float(model.b.data[0, 0]),
              "dw", float(dW[0, 0]), "db", float(db[0, 0]))
