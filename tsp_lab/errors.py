class InvalidArgumentError(ValueError):
    """Bad input: empty city list, out-of-range config, mismatched parents."""


class InvalidStateError(RuntimeError):
    """An internal invariant was violated (not a user error)."""
