# examples/graph_viz.py
import numpy as np
from tapegrad.backward import backward
from tapegrad.losses import bce_loss
from tapegrad.nn import MLP
from tapegrad.viz import save_dot

def main():
    X = np.array([[0.,0.],[0.,1.],[1.,0.],[1.,1.]], dtype=float)
    y = np.array([[0.],[1.],[1.],[0.]], dtype=float)

    model = MLP(2, 4, 1, seed=0)
    loss = bce_loss(model(X).sigmoid(), y)
    grads = backward(loss)

    save_dot(loss.graph, "graph.dot", root=loss, grads=grads, mode="ops_only")
    print("Wrote graph.dot. Render with: dot -Tpng graph.dot -o graph.png")

if __name__ == "__main__":
    main()
