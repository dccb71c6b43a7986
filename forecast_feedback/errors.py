"""
Domain errors raised before any storage mutation happens.
"""


class FeedbackError(Exception):
    """Base class for request validation errors (surfaced as HTTP 400)."""


class InvalidRequest(FeedbackError):
    pass


class InvalidRating(FeedbackError):
    pass


class InvalidTimestamp(FeedbackError):
    pass
