"""Domain exceptions raised by the administrative and sync layers.

The eligibility engine never raises these to its caller; it folds failures
into an ERROR decision instead.
"""


class BajasError(Exception):
    """Base class for all bajas domain errors."""


class DuplicateReasonError(BajasError):
    """A reason with the same name already exists."""

    def __init__(self, name: str):
        super().__init__(f"El motivo ya existe: {name}")
        self.name = name


class ReasonNotFoundError(BajasError):
    def __init__(self, reason_id: int):
        super().__init__(f"Motivo {reason_id} no encontrado")
        self.reason_id = reason_id


class FeedUnavailableError(BajasError):
    """Neither the remote planning sheet nor the local fallback could be read."""


class WorkbookFormatError(BajasError):
    """A bulk import file lacks the expected sheet or columns."""
