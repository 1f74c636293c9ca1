"""Terminal progress bars and spinners with templated styles and ETA estimates."""

__version__ = "0.1.0"

__all__ = [
    "bar_state",
    "parallel",
    "progress_bar",
    "state",
    "style",
    "template",
    "terminal",
]