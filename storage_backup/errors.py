"""Exception types raised by the backup engine."""


class StorageBackupError(Exception):
    """Base class for backup errors."""


class TransferTimeoutError(StorageBackupError):
    """A storage call did not finish within its hard timeout."""


class NotificationError(StorageBackupError):
    """The notification endpoint rejected or failed to receive a message."""
