"""Errors raised while acquiring, installing or removing extensions."""


class ExtensionError(Exception):
    """Base error for a failed operation on a single extension."""

    def __init__(self, message: str, extension_id: str | None = None):
        self.extension_id = extension_id
        super().__init__(message)


class DownloadError(ExtensionError):
    """The archive could not be downloaded or its temp file created."""

    def __init__(self, message: str, extension_id: str | None = None, url: str | None = None):
        self.url = url
        super().__init__(message, extension_id)


class ExtractError(ExtensionError):
    """The archive is corrupt or could not be extracted into place."""


class StateError(ExtensionError):
    """An operation was attempted without its precondition being met."""


class UninstallError(ExtensionError):
    """The extension directory could not be removed."""

    def __init__(self, message: str, extension_id: str | None = None, path: str | None = None):
        self.path = path
        super().__init__(message, extension_id)
