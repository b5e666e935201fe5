"""Plotting helpers for final states and animations."""
from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional, Sequence

import matplotlib

matplotlib.use("Agg", force=True)
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.animation import FuncAnimation, PillowWriter

# pyplot keeps global state; sweeps may plot from several threads.
_PYPLOT_LOCK = threading.Lock()


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def plot_state(
    x: np.ndarray,
    values: np.ndarray,
    output_path: Path,
    *,
    initial: Optional[np.ndarray] = None,
    title: Optional[str] = None,
    y_range: Optional[Sequence[float]] = None,
) -> Path:
    """Render the final state (and optionally the initial one) to a PNG file."""

    output_path = Path(output_path)
    _ensure_parent(output_path)
    with _PYPLOT_LOCK:
        _draw_state(x, values, output_path, initial=initial, title=title, y_range=y_range)
    return output_path


def _draw_state(x, values, output_path, *, initial, title, y_range) -> None:
    fig, ax = plt.subplots(figsize=(8.0, 4.0))
    if initial is not None:
        ax.plot(x, initial, color="0.6", lw=1.0, ls="--", label="initial")
    ax.plot(x, values, color="tab:blue", lw=1.5, label="final")
    ax.set_xlabel("x")
    ax.set_ylabel("u")
    if y_range is not None:
        ax.set_ylim(float(y_range[0]), float(y_range[1]))
    if title:
        ax.set_title(title)
    ax.grid(True, alpha=0.3)
    ax.legend(loc="upper right")
    fig.tight_layout()
    fig.savefig(output_path, dpi=120)
    plt.close(fig)


def write_animation(
    x: np.ndarray,
    frames: Sequence[np.ndarray],
    output_path: Path,
    *,
    times: Optional[Sequence[float]] = None,
    fps: int = 25,
    y_range: Optional[Sequence[float]] = (-1.5, 1.5),
    title: Optional[str] = None,
) -> Path:
    """Write ``frames`` as a GIF animation through :class:`PillowWriter`."""

    if not frames:
        raise ValueError("write_animation needs at least one frame")
    output_path = Path(output_path)
    _ensure_parent(output_path)
    with _PYPLOT_LOCK:
        _draw_animation(x, frames, output_path, times=times, fps=fps, y_range=y_range, title=title)
    return output_path


def _draw_animation(x, frames, output_path, *, times, fps, y_range, title) -> None:
    fig, ax = plt.subplots(figsize=(8.0, 4.0))
    (line,) = ax.plot(x, frames[0], color="tab:blue", lw=1.5)
    ax.set_xlim(float(x[0]), float(x[-1]))
    if y_range is not None:
        ax.set_ylim(float(y_range[0]), float(y_range[1]))
    ax.set_xlabel("x")
    ax.set_ylabel("u")
    ax.grid(True, alpha=0.3)
    label = ax.text(0.02, 0.92, "", transform=ax.transAxes)
    prefix = f"{title}  " if title else ""

    def _draw(idx: int):
        line.set_ydata(frames[idx])
        if times is not None:
            label.set_text(f"{prefix}t = {times[idx]:.3f}")
        elif prefix:
            label.set_text(prefix)
        return line, label

    anim = FuncAnimation(fig, _draw, frames=len(frames), blit=False)
    anim.save(str(output_path), writer=PillowWriter(fps=int(fps)))
    plt.close(fig)


__all__ = ["plot_state", "write_animation"]
