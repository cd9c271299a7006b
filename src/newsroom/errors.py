"""Summary: Error taxonomy shared by services, storage, and the API layer.

Importance: Lets callers decide between surfacing, degrading, and propagating failures.
Alternatives: Raise bare ValueError and RuntimeError everywhere.
"""

from __future__ import annotations


class ValidationError(ValueError):
    """Summary: Raised when required input is missing or malformed.

    Importance: Signals caller mistakes that must never be retried.
    Alternatives: Return error dictionaries from service methods.
    """


class MessageNotFoundError(ValidationError):
    """Summary: Raised when a referenced message does not exist in storage.

    Importance: Allows the API to answer with 404 instead of 400.
    Alternatives: Return None and let each caller check.
    """


class UpstreamError(RuntimeError):
    """Summary: Raised when the message source or language model fails.

    Importance: Marks failures that services degrade to fallbacks where possible.
    Alternatives: Let provider-specific exceptions escape to callers.
    """


class StorageError(RuntimeError):
    """Summary: Raised when a document write cannot be committed.

    Importance: Ensures dropped writes are never silent.
    Alternatives: Log write failures and continue.
    """
