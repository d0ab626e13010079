"""
Nonlocal Damage FEM
===================

Small-deformation finite elements with integral-type nonlocal damage and
plasticity.

Modules:
    mesh: Mesh container, generators, I/O, integration point index, neighbor graph
    elements: Shape functions, integration point data, nonlocal element
    physics: Kelvin algebra, constitutive models, damage law, nonlocal averaging
    assembly: Two-phase process, global scatter and boundary conditions
    solvers: Local and global Newton-Raphson
    postprocess: Visualization
"""

from . import mesh
from . import elements
from . import physics
from . import assembly
from . import solvers
from . import postprocess

__version__ = "0.1.0"
__all__ = ["mesh", "elements", "physics", "assembly", "solvers", "postprocess"]
