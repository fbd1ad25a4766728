"""Message handling errors.

Permanent errors are rejected without requeue (dead-lettered when the
queue has a dead-letter exchange); everything else is requeued.
"""


class MessageError(Exception):
    """Base exception for message handling failures."""


class RetryableMessageError(MessageError):
    """Raised when a message may succeed on redelivery."""


class PermanentMessageError(MessageError):
    """Raised when redelivering the message cannot succeed."""


class InvalidMessageError(PermanentMessageError):
    """Raised for an unparseable envelope or an invalid payload."""


class UnknownMessageTypeError(PermanentMessageError):
    """Raised for a message type this consumer does not handle."""


class OwnershipError(PermanentMessageError):
    """Raised when a team acts on a deployment owned by another team."""


class ConsumerConnectionLost(Exception):
    """Raised when an established broker connection closes under the consumer."""
