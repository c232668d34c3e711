"""
Custom exception classes.
"""


class AutoCloseError(Exception):
    """Base exception for auto-close operations."""
    pass


class StoreError(AutoCloseError):
    """Raised when a ticket or rule store operation fails."""
    pass


class InvalidRuleError(AutoCloseError):
    """Raised when a rule's condition cannot be interpreted."""
    pass


class RuleNotFoundError(AutoCloseError):
    """Raised when a rule id does not exist in the rule store."""
    pass
