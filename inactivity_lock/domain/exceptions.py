class InactivityLockException(Exception):
    """Base exception for all inactivity-lock errors."""
    pass

class GitHubAPIException(InactivityLockException):
    """Raised when GitHub answers with an error payload or an unexpected shape."""
    pass

class ConfigurationException(InactivityLockException):
    """Raised when the action inputs or environment cannot be turned into Settings."""
    pass
