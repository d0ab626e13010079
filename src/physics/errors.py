"""
Error Types
===========

Failures raised by the nonlocal damage assembly. All of them are fatal for
the current global iterate and propagate to the driver.
"""


class NonlocalDamageError(RuntimeError):
    """Base class for assembly failures."""


class ConstitutiveIntegrationFailure(NonlocalDamageError):
    """Local stress integration did not converge."""

    def __init__(self, message: str = "Computation of local constitutive relation failed.",
                 element_id=None, ip=None):
        if element_id is not None:
            message = f"{message} (element {element_id}, integration point {ip})"
        super().__init__(message)
        self.element_id = element_id
        self.ip = ip


class DegenerateNeighborhood(NonlocalDamageError):
    """An integration point has no neighbours inside the internal length."""

    def __init__(self, element_id, ip, internal_length: float):
        super().__init__(
            f"No neighbours found for integration point {ip} of element "
            f"{element_id} with internal length {internal_length:g}"
        )
        self.element_id = element_id
        self.ip = ip
        self.internal_length = internal_length


class PartitionOfUnityViolation(NonlocalDamageError):
    """Normalized averaging weights do not sum to one."""

    def __init__(self, value: float, context: str = ""):
        msg = f"One-function integration failed. v: {value:.17g}, diff: {value - 1:.3e}"
        if context:
            msg = f"{msg} ({context})"
        super().__init__(msg)
        self.value = value


class DamageOutOfRange(NonlocalDamageError):
    """Damage value outside [0, 1]."""

    def __init__(self, damage: float, context: str = ""):
        msg = f"Damage {damage:g} outside [0, 1]"
        if context:
            msg = f"{msg} ({context})"
        super().__init__(msg)
        self.damage = damage
