class MessageStoreError(Exception):
    """Base class for failures surfaced by the message store."""


class ConstraintViolation(MessageStoreError):
    """A write breached a uniqueness, non-null, length or type constraint."""


class NotFound(MessageStoreError):
    """No message has the requested uuid."""

    def __init__(self, uuid: str):
        super().__init__(f"message {uuid} not found")
        self.uuid = uuid


class ConnectionFailure(MessageStoreError):
    """The storage backend could not be reached."""
