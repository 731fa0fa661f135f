from typing import Dict, Optional, Sequence

import numpy as np


# =====================================================
# Confusion matrix / macro-F1
# =====================================================
class ConfusionMatrix:
    """(K+1) x (K+1) counts, cell [true][pred]; row/column 0 unused."""

    def __init__(self, num_labels: int):
        self.K = int(num_labels)
        self.counts = np.zeros((self.K + 1, self.K + 1), dtype=np.int64)

    def reset(self):
        self.counts.fill(0)

    def add(self, true_label: int, pred_label: int):
        self.counts[int(true_label), int(pred_label)] += 1

    def true_counts(self) -> np.ndarray:
        return self.counts[1:, 1:].sum(axis=1)

    def pred_counts(self) -> np.ndarray:
        return self.counts[1:, 1:].sum(axis=0)

    def per_label_f1(self) -> Dict[int, float]:
        """F1 of every label with at least one true occurrence."""
        out = {}
        trueC = self.true_counts()
        predC = self.pred_counts()
        for k in range(1, self.K + 1):
            if trueC[k - 1] == 0:
                continue
            correct = float(self.counts[k, k])
            if correct > 0:
                pre = correct / float(predC[k - 1])
                rec = correct / float(trueC[k - 1])
                out[k] = 2.0 * pre * rec / (pre + rec)
            else:
                out[k] = 0.0
        return out

    def macro_f1(self) -> float:
        """
        Unweighted mean of per-label F1 over labels that occur.
        No occurring label means no contribution: 0.0.
        """
        f1 = self.per_label_f1()
        if not f1:
            return 0.0
        return float(sum(f1.values()) / len(f1))


def format_predictions(pred: Sequence[int]) -> str:
    return " ".join(str(int(p)) for p in pred)


def plot_confusion(confusion: ConfusionMatrix, path: str, title: Optional[str] = None):
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    mat = confusion.counts[1:, 1:]
    K = confusion.K
    fig, ax = plt.subplots(figsize=(max(4, K), max(4, K)))
    im = ax.imshow(mat, cmap="viridis")
    ax.set_xlabel("predicted")
    ax.set_ylabel("true")
    ax.set_xticks(range(K))
    ax.set_xticklabels([str(k) for k in range(1, K + 1)])
    ax.set_yticks(range(K))
    ax.set_yticklabels([str(k) for k in range(1, K + 1)])
    for i in range(K):
        for j in range(K):
            ax.text(j, i, int(mat[i, j]), ha="center", va="center", color="w")
    if title:
        ax.set_title(title)
    fig.colorbar(im, ax=ax)
    fig.tight_layout()
    fig.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
