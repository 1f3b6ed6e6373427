"""
Plotting Module

Load-history plots for a finished run.
"""

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt


def plot_load_history(history, filename, title="Cook's membrane: tip displacement"):
    """
    Plot the monitored tip displacement and Newton iterations against time.

    Args:
        history: SolutionHistory with at least one row
        filename: Output image path (format from the extension)
        title: Figure title
    """
    t = history.column("time")
    uy = history.column("tip_uy")
    its = history.column("newton_iterations")

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(6, 6), sharex=True)
    ax1.plot(t, uy, color="#1f77b4", marker="o", linestyle="-", label="tip $u_y$")
    ax1.set_ylabel("displacement [m]")
    ax1.set_title(title)
    ax1.grid(True, alpha=0.3)
    ax1.legend()

    ax2.bar(t[1:], its[1:], width=0.6 * (t[1] - t[0]) if t.size > 1 else 0.05, color="#ff7f0e")
    ax2.set_xlabel("pseudo time [-]")
    ax2.set_ylabel("Newton iterations")
    ax2.grid(True, alpha=0.3)

    fig.tight_layout()
    fig.savefig(filename, dpi=150)
    plt.close(fig)
    return filename
