"""Registry error taxonomy.

Provisioning never lets these escape: ``ProvisioningService`` turns them into
entries of ``ProvisioningResult.errors``. The service layer outside of
provisioning raises them and the routers map them to HTTP responses.
"""


class RegistryError(Exception):
    """Base class for registry failures."""


class SpecValidationError(RegistryError):
    """The specification is incomplete; nothing may be written."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"ASR incomplete. Missing: {', '.join(missing)}")


class DependencyMissingError(RegistryError):
    """An upstream artifact needed by a step does not exist."""


class MalformedSectionError(RegistryError):
    """A section cannot be read in the shape a provisioning step needs."""


class PersistenceError(RegistryError):
    """A storage call failed while creating or updating an artifact."""


class GateError(RegistryError):
    """A status transition was refused by an activation gate."""

    def __init__(self, reasons: list[str]) -> None:
        self.reasons = reasons
        super().__init__("Cannot activate:\n• " + "\n• ".join(reasons))
