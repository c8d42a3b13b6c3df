"""Exception classes for the newsletter core."""


class NewsletterError(Exception):
    """Base exception for all newsletter errors."""


class ConfigurationError(NewsletterError):
    """Raised when required settings are missing before a dispatch starts."""


class DeliveryError(NewsletterError):
    """Raised by a mail transport when a single message cannot be delivered."""


class NewsletterNotFoundError(NewsletterError):
    """Raised when a newsletter record does not exist in the store."""


class NewsletterAlreadySentError(NewsletterError):
    """Raised when sending a newsletter whose status is already ``sent``."""
