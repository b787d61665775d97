"""
Gaussian splat records and their construction from raw PLY attributes.
"""

from simple_splat_viewer.gaussians.base import Gaussian, GaussianSet
from simple_splat_viewer.gaussians.factory import SH_C0, splatify, splatify_columns

__all__ = ["Gaussian", "GaussianSet", "SH_C0", "splatify", "splatify_columns"]
