import numpy as np
from tapegrad.backward import backward
from tapegrad.graph import use_graph
from tapegrad.losses import bce_loss
from tapegrad.nn import MLP
from tapegrad.optim import Adam

#XOR Dataset
X = np.array([
    [0., 0.],
    [0., 1.],
    [1., 0.],
    [1., 1.]
])
Y = np.array([
    [0.],
    [1.],
    [1.],
    [0.]
])

model = MLP(in_dim=2, hidden_dim=8, out_dim=1, seed=0)
opt = Adam(model.parameters(), lr=0.05)

steps = 2000
for step in range(steps):
    # one tape per step
    with use_graph():
        prob = model(X).sigmoid()
        loss = bce_loss(prob, Y)

        grads = backward(loss)
        opt.step(grads, clip_norm=5.0)

    if step % 200 == 0:
        print(step, loss.item())

with use_graph():
    pred = model(X).sigmoid()
print("pred:", pred.data.ravel())
print("W1", model.l1.W.data)
print("b1", model.l1.b.data)
print("W2", model.l2.W.data)
print("b2", model.l2.b.data)
