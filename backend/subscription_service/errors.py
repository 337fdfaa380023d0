"""Error taxonomy shared by the service layer and the HTTP router."""


class SubscriptionError(Exception):
    """Base class for every error raised by the subscription core."""


class InvalidFormat(SubscriptionError, ValueError):
    """A period string is not a valid YYYY-MM year-month."""


class InvalidRange(SubscriptionError, ValueError):
    """A period range ends before it starts."""


class InvalidIdentifier(SubscriptionError, ValueError):
    """An identifier is not a valid UUID."""


class NotFound(SubscriptionError, LookupError):
    """The requested subscription does not exist."""


class StorageFailure(SubscriptionError, RuntimeError):
    """The relational store failed; details are logged, never exposed."""
