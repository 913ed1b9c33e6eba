"""Plotting helpers."""

from .convergence_plots import plot_residual_history

__all__ = ["plot_residual_history"]
