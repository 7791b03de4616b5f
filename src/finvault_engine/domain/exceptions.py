"""Engine exceptions."""


class EngineError(Exception):
    """Base exception for the scoring engines"""

    pass


class ValidationError(EngineError):
    """Submitted event is malformed (non-positive or non-finite amount, missing timestamp)"""

    pass


class PersistenceError(EngineError):
    """Local storage is unavailable, full, or holds an unreadable payload"""

    pass
