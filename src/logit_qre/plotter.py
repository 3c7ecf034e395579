import numpy as np
import matplotlib.pyplot as plt
from typing import List, Optional, Sequence

from .continuation import QREPoint
from .oracle import BlockLayout


def plot_branch(points: List[QREPoint],
                layout: BlockLayout,
                block_labels: Optional[Sequence[str]] = None,
                title: Optional[str] = None) -> plt.Figure:
    """
    Plot a traced branch, one panel per block.

    The horizontal axis is λ/(1+λ), which maps the whole branch onto [0, 1).

    Args:
        points: Accepted points in emission order
        layout: Block structure of the profiles
        block_labels: Optional panel titles (players or information sets)
        title: Optional figure title

    Returns:
        matplotlib Figure object
    """
    if not points:
        raise ValueError("No points to plot")

    lambdas = np.array([p.lambda_val for p in points])
    profiles = np.array([p.profile for p in points])
    scaled = lambdas / (1.0 + lambdas)

    n_blocks = len(layout)
    fig, axes = plt.subplots(1, n_blocks, figsize=(5 * n_blocks, 4), squeeze=False)

    for b, (ax, block) in enumerate(zip(axes[0], layout.slices())):
        for j, column in enumerate(range(block.start, block.stop)):
            ax.plot(scaled, profiles[:, column], label=f'Action {j + 1}',
                    linewidth=2, alpha=0.8)

        # Mark start and end points
        ax.scatter(scaled[[0, -1]], profiles[[0, -1], block.start],
                   marker='o', s=40, color='k', zorder=3)

        ax.set_xlabel(r'$\lambda / (1 + \lambda)$', fontsize=12)
        ax.set_ylabel('Probability', fontsize=12)
        ax.set_title(block_labels[b] if block_labels else f'Block {b + 1}', fontsize=14)
        ax.grid(True, alpha=0.3)
        ax.set_xlim(0.0, 1.0)
        ax.set_ylim(-0.05, 1.05)

        # Add legend if not too many actions
        if layout.sizes[b] <= 5:
            ax.legend(loc='best', fontsize=10)

    if title:
        fig.suptitle(title, fontsize=16)

    plt.tight_layout()
    return fig
