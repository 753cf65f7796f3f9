"""Defines all exceptions in the package."""


class ISBaseException(Exception):
    """Base class for all exceptions in the package"""


class ISAlreadyAttached(ISBaseException):
    """Raised if the component is already attached to a system."""


class ISConflictingArguments(ISBaseException):
    """Raised if the arguments are conflict."""


class ISDataFormatError(ISBaseException):
    """Raised if time series data has an inconsistent shape or a non-uniform resolution."""


class ISDuplicateKey(ISBaseException):
    """Raised if a time series with the same type and label is already stored."""


class ISFileExists(ISBaseException):
    """Raised if the file already exists."""


class ISNotStored(ISBaseException):
    """Raised if the requested object is not stored."""


class ISOperationNotAllowed(ISBaseException):
    """Raised if the requested operation is not allowed."""


class ISOwnershipConflict(ISBaseException):
    """Raised if a container is already bound to a different time series storage."""


class ISReadOnly(ISBaseException):
    """Raised if a mutating operation is attempted on read-only time series storage."""


class ISUnsupportedBackend(ISBaseException):
    """Raised if a storage value is not one of the known backends."""
