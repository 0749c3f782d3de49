from __future__ import annotations


class ComprehensionError(Exception):
    """Base class for errors raised by the comprehension package."""

    retryable: bool = False


class GenerationError(ComprehensionError):
    """The question generator did not produce a usable question set.

    Starting a session depends on it, so callers surface it with a retry action.
    """

    retryable = True


class GraderError(ComprehensionError):
    """The semantic grader returned nothing usable."""
