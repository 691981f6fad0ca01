# scoring/errors.py


class ScoringError(Exception):
    """Base class for errors raised by the CKD scoring functions"""


class InvalidMeasurement(ScoringError, ValueError):
    """A numeric input is negative, non-finite or otherwise impossible"""


class InsufficientData(ScoringError):
    """A required input is missing, so no classification can be given"""
