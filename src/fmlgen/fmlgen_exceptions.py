"""
This module contains the exceptions raised by the fmlgen framework.
"""


class FmlException(Exception):
    """
    Exceptions raised by the fmlgen framework.
    """

    def __init__(self, message: str):
        """
        Initializes the exception with the given message.
        """
        super().__init__(message)


class ConfigurationError(FmlException):
    """Raised when the build configuration is incomplete or invalid."""


class VersionNotFound(FmlException):
    """Raised when no application-services version could be derived from the project."""


class DownloadFailure(FmlException):
    """Raised on network errors or unexpected HTTP responses while fetching an artifact."""


class ChecksumMismatch(FmlException):
    """Raised when a downloaded archive does not match its checksum file."""


class UnsupportedArchitecture(FmlException):
    """Raised when the host CPU has no matching binary in the artifact."""


class ArtifactError(FmlException):
    """Raised when a verified archive does not contain the expected executable."""


class SubprocessFailure(FmlException):
    """
    Raised when the code generator exits with a non-zero status.

    The exit code is kept verbatim in `returncode` so callers can propagate it.
    """

    def __init__(self, message: str, returncode: int):
        super().__init__(message)
        self.returncode = returncode
