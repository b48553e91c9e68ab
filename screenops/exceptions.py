"""Service-layer exceptions, mapped to HTTP responses in main.py."""


class ScreenOpsError(Exception):
    """Base exception for service-layer failures."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ScreenOpsError):
    """Input failed a presence or enum check."""

    status_code = 400


class EntityNotFoundError(ScreenOpsError):
    """Requested entity does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class DuplicateEntityError(ScreenOpsError):
    """Entity with the same unique key already exists."""

    status_code = 409

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} already exists: {key}")


class ProcessingError(ScreenOpsError):
    """Submission processing failed after its retry."""

    status_code = 500
