"""Exception types raised inside the message pipeline."""


class ShowroomBotError(Exception):
    """Base class for all bot errors."""


class ReplyGenerationError(ShowroomBotError):
    """The generative backend could not produce a reply (retries exhausted or fatal)."""


class InventoryFetchError(ShowroomBotError):
    """The inventory page could not be fetched or parsed."""


class LeadStoreError(ShowroomBotError):
    """A lead store read or write failed."""


class TransportError(ShowroomBotError):
    """The messaging transport failed to deliver or look something up."""


class BackendBusyError(ShowroomBotError):
    """The generative backend reported rate limiting or overload; safe to retry."""
