"""
Material Properties
===================

Elastic property classes shared by the constitutive models.
"""

import numpy as np
from dataclasses import dataclass

from .kelvin import elasticity_matrix


@dataclass
class ElasticProperties:
    """
    Isotropic linear elastic properties.

    Attributes:
        E: Young's modulus [Pa]
        nu: Poisson's ratio [-]
    """
    E: float
    nu: float

    def __post_init__(self):
        """Validate material parameters."""
        if self.E <= 0:
            raise ValueError(f"Young's modulus must be positive, got {self.E}")
        if not -1 < self.nu < 0.5:
            raise ValueError(f"Poisson's ratio must be in (-1, 0.5), got {self.nu}")

    @property
    def lame_lambda(self) -> float:
        """
        First Lamé parameter λ.

        λ = E·ν / ((1+ν)(1-2ν))
        """
        return self.E * self.nu / ((1 + self.nu) * (1 - 2 * self.nu))

    @property
    def lame_mu(self) -> float:
        """
        Second Lamé parameter μ (shear modulus).

        μ = E / (2(1+ν))
        """
        return self.E / (2 * (1 + self.nu))

    @property
    def bulk_modulus(self) -> float:
        """
        Bulk modulus K.

        K = E / (3(1-2ν))
        """
        return self.E / (3 * (1 - 2 * self.nu))

    @property
    def shear_modulus(self) -> float:
        """Alias for lame_mu."""
        return self.lame_mu

    def elasticity_matrix(self, dim: int = 2) -> np.ndarray:
        """
        Return the elasticity tensor in Kelvin form.

        For dim=2 the 4×4 plane strain matrix acting on [xx, yy, zz, √2 xy].

        Args:
            dim: 2 or 3

        Returns:
            C: shape (4, 4) or (6, 6)
        """
        return elasticity_matrix(self.lame_lambda, self.lame_mu, dim)

    def compliance_matrix(self, dim: int = 2) -> np.ndarray:
        """Return S = C^{-1} in Kelvin form."""
        return np.linalg.inv(self.elasticity_matrix(dim))


def create_concrete_properties() -> ElasticProperties:
    """Typical normal-strength concrete (E = 30 GPa, ν = 0.2)."""
    return ElasticProperties(E=30e9, nu=0.2)


def create_rock_salt_properties() -> ElasticProperties:
    """Typical rock salt (E = 25 GPa, ν = 0.25)."""
    return ElasticProperties(E=25e9, nu=0.25)
