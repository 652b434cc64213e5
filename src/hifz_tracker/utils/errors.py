"""
Domain exceptions.

Lookups of missing plans, ranges or activities are not errors: the
services return None / empty results for those so a vanished plan never
crashes a caller.
"""


class HifzError(Exception):
    """Base class for tracker errors."""


class ValidationError(HifzError):
    """Input rejected before any state was touched (bad pace, unknown session type, ...)."""


class ContentFetchError(HifzError):
    """The verse text / chapter metadata provider failed or returned a malformed payload."""
