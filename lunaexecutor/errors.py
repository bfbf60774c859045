# lunaexecutor/errors.py

class LunaExecutorError(Exception):
    """Base class for application errors."""


class StorageError(LunaExecutorError):
    """A read or write against the datastore failed."""


class NotFoundError(StorageError):
    """The requested row does not exist."""
