from __future__ import annotations


class InvalidInputError(ValueError):
    """
    Raised when the caller hands the allocation engine data that breaks its contract:
    negative amounts, duplicate ids, or selected ids that are not in the supplied lists.

    This signals a bug in the calling layer, not a user-facing condition.
    """
