"""
Plotting functions for VARSV objects
"""

import numpy as np
import matplotlib.pyplot as plt
import matplotlib
from typing import List, Optional

# Set style
matplotlib.style.use('seaborn-v0_8-whitegrid')


def plot_volatility(x,
                    var_slct: Optional[List[str]] = None,
                    which: Optional[List[float]] = None,
                    **kwargs) -> plt.Figure:
    """
    Plot posterior stochastic volatilities exp(h_t / 2).

    Parameters
    ----------
    x : VARSV
        Fitted VARSV object.
    var_slct : list, optional
        Variables to plot.
    which : list, optional
        Lower, median and upper quantile. Defaults to a 68% band.
    **kwargs
        Additional plotting arguments.

    Returns
    -------
    Figure
        Matplotlib figure object.
    """
    if which is None:
        which = [0.16, 0.50, 0.84]
    if len(which) != 3:
        raise ValueError("'which' must hold a lower, median and upper quantile.")

    varNames = x.var_names
    if var_slct is None:
        var_slct = varNames

    vol = np.exp(x.volatility() / 2)
    vol_q = np.quantile(vol, which, axis=0)

    # Create subplots
    n_vars = len(var_slct)
    fig, axes = plt.subplots(n_vars, 1, figsize=(10, 3*n_vars), squeeze=False)

    for i, var in enumerate(var_slct):
        var_idx = varNames.index(var)
        ax = axes[i][0]

        ax.plot(vol_q[1, :, var_idx], color='blue', linewidth=2, label='Median')
        ax.fill_between(range(vol_q.shape[1]),
                        vol_q[0, :, var_idx],
                        vol_q[2, :, var_idx],
                        alpha=0.3, color='blue',
                        label=f'{which[0]*100:.0f}%-{which[2]*100:.0f}%')
        ax.set_xlabel('Time')
        ax.set_ylabel('Volatility')
        ax.set_title(f'Stochastic volatility: {var}')
        ax.legend()
        ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def plot_trace(x,
               record: str = 'alpha_record',
               index: Optional[List[int]] = None,
               **kwargs) -> plt.Figure:
    """
    Trace plots of MCMC draws.

    Parameters
    ----------
    x : VARSV
        Fitted VARSV object.
    record : str
        Name of the record, e.g. 'alpha_record', 'a_record', 'sigh_record'.
    index : list, optional
        Columns of the record to plot. Defaults to the first four.
    **kwargs
        Additional plotting arguments.

    Returns
    -------
    Figure
        Matplotlib figure object.
    """
    if record == 'h_record' or record not in x.records:
        available = [name for name in x.records if name != 'h_record']
        raise ValueError(f"Unknown record '{record}'. Use one of {available}.")

    draws = x.records[record]
    if draws.shape[1] == 0:
        raise ValueError(f"Record '{record}' is empty.")
    if index is None:
        index = list(range(min(4, draws.shape[1])))

    fig, axes = plt.subplots(len(index), 1, figsize=(10, 2.5*len(index)), squeeze=False)

    for i, col in enumerate(index):
        ax = axes[i][0]
        ax.plot(draws[:, col], color='black', linewidth=0.8)
        ax.axhline(np.mean(draws[:, col]), color='red', linestyle='--', linewidth=1)
        ax.set_xlabel('Iteration')
        ax.set_title(f'{record}[{col}]')
        ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def plot_shrinkage(x, **kwargs) -> plt.Figure:
    """
    Heatmap of posterior shrinkage.

    Shows SSVS inclusion probabilities or Horseshoe shrinkage factors.

    Parameters
    ----------
    x : VARSV
        Fitted VARSV object with prior 'SSVS' or 'HS'.
    **kwargs
        Additional plotting arguments.

    Returns
    -------
    Figure
        Matplotlib figure object.
    """
    shrink = x.shrinkage()
    label = 'Inclusion probability' if x.args['prior'] == 'SSVS' else 'Shrinkage factor'

    fig, ax = plt.subplots(figsize=(2 + shrink.shape[1], 1 + 0.4*shrink.shape[0]))
    im = ax.imshow(shrink.values, cmap='viridis', vmin=0, vmax=1, aspect='auto')
    ax.set_xticks(range(shrink.shape[1]))
    ax.set_xticklabels(shrink.columns)
    ax.set_yticks(range(shrink.shape[0]))
    ax.set_yticklabels(shrink.index)
    ax.set_xlabel('Equation')
    ax.set_title(label)
    fig.colorbar(im, ax=ax)

    plt.tight_layout()
    return fig
