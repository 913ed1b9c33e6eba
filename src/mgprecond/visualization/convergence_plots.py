"""Residual history plots for preconditioned iterations."""

import numpy as np
import matplotlib.pyplot as plt
from typing import Dict, Optional, Sequence, Union
from pathlib import Path
import logging

logger = logging.getLogger(__name__)

MARKERS = ['o', 's', '^', 'v', 'D', '<', '>', 'p']


def plot_residual_history(
    residual_histories: Dict[str, Sequence[float]],
    title: str = "Preconditioned CG Convergence",
    xlabel: str = "Iteration",
    ylabel: str = "Residual norm",
    save_path: Optional[Union[str, Path]] = None,
    semilogy: bool = True,
    relative: bool = False
) -> plt.Figure:
    """
    Plot residual histories of one or more solver runs.

    Args:
        residual_histories: Dict of {label: residual norms per iteration}
        title: Plot title
        xlabel: Label of the x axis
        ylabel: Label of the y axis
        save_path: Write the figure to this file if given
        semilogy: Use logarithmic y-axis
        relative: Divide each history by its initial residual

    Returns:
        Matplotlib figure object
    """
    fig, ax = plt.subplots(figsize=(10, 7))
    colors = plt.get_cmap("tab10")

    for i, (label, residuals) in enumerate(residual_histories.items()):
        residuals = np.asarray(residuals, dtype=np.float64)
        if relative and residuals.size and residuals[0] > 0:
            residuals = residuals / residuals[0]
        iterations = np.arange(len(residuals))

        plot = ax.semilogy if semilogy else ax.plot
        plot(iterations, residuals, color=colors(i % 10), marker=MARKERS[i % len(MARKERS)],
             linewidth=2, markersize=6, markevery=max(1, len(residuals) // 20),
             label=label, alpha=0.8)

        if len(residuals) > 1 and residuals[0] > 0 and residuals[-1] > 0:
            factor = (residuals[-1] / residuals[0]) ** (1.0 / (len(residuals) - 1))
            logger.debug(f"{label}: average reduction factor {factor:.3f}")

    ax.set_xlabel(xlabel, fontsize=14)
    ax.set_ylabel(ylabel, fontsize=14)
    ax.set_title(title, fontsize=16)
    ax.grid(True, alpha=0.3)
    if residual_histories:
        ax.legend(fontsize=12, loc='best')

    fig.tight_layout()

    if save_path is not None:
        save_path = Path(save_path)
        save_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Saved residual plot to {save_path}")

    return fig
