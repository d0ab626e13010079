"""
Physics Module
==============

Kelvin tensor algebra, elastic properties, constitutive models, damage law
and nonlocal averaging.
"""

from .kelvin import (
    kelvin_size,
    identity2,
    deviatoric_projection,
    spherical_projection,
    kelvin_to_components,
    components_to_kelvin,
    kelvin_to_tensor,
    tensor_to_kelvin,
)
from .errors import (
    NonlocalDamageError,
    ConstitutiveIntegrationFailure,
    DegenerateNeighborhood,
    PartitionOfUnityViolation,
    DamageOutOfRange,
)
from .material import ElasticProperties
from .damage import (
    DamageProperties,
    damage_from_kappa,
    confinement_factor,
    update_kappa_d,
    enforce_damage_bounds,
)
from .nonlocal_averaging import (
    alpha_0,
    normalized_weights,
    nonlocal_average,
    overnonlocal_blend,
    check_partition_of_unity,
)
from .constitutive import (
    StressIntegrationResult,
    ConstitutiveModel,
    NonlocalDamageCapability,
    require_nonlocal_damage,
    LinearElasticIsotropic,
    DruckerPragerParameters,
    PlasticDamageState,
    DruckerPragerDamage,
)

__all__ = [
    "kelvin_size",
    "identity2",
    "deviatoric_projection",
    "spherical_projection",
    "kelvin_to_components",
    "components_to_kelvin",
    "kelvin_to_tensor",
    "tensor_to_kelvin",
    "NonlocalDamageError",
    "ConstitutiveIntegrationFailure",
    "DegenerateNeighborhood",
    "PartitionOfUnityViolation",
    "DamageOutOfRange",
    "ElasticProperties",
    "DamageProperties",
    "damage_from_kappa",
    "confinement_factor",
    "update_kappa_d",
    "enforce_damage_bounds",
    "alpha_0",
    "normalized_weights",
    "nonlocal_average",
    "overnonlocal_blend",
    "check_partition_of_unity",
    "StressIntegrationResult",
    "ConstitutiveModel",
    "NonlocalDamageCapability",
    "require_nonlocal_damage",
    "LinearElasticIsotropic",
    "DruckerPragerParameters",
    "PlasticDamageState",
    "DruckerPragerDamage",
]
