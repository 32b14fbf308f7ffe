from .options import ConfigurationError, filter_options, validate_options
from .polling import StopPolling, poll, wait_until, wait_while
from .value_set import ValueSet

__all__ = [
    "ConfigurationError",
    "StopPolling",
    "ValueSet",
    "filter_options",
    "poll",
    "validate_options",
    "wait_until",
    "wait_while",
]
