"""Camera post-processing stages, piecewise linear functions and network-output helpers."""

__version__ = "1.5.0"

__all__ = [
    "motion_detect",
    "negate",
    "object_detect",
    "pose",
    "pwl",
    "segmentation",
    "stage",
]