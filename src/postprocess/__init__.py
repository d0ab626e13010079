"""
Postprocessing Module
=====================

Plots of meshes, integration point fields and load curves.
"""

from .visualization import (
    plot_mesh,
    plot_integration_point_field,
    plot_load_displacement,
    plot_damage_profile,
)

__all__ = [
    "plot_mesh",
    "plot_integration_point_field",
    "plot_load_displacement",
    "plot_damage_profile",
]
