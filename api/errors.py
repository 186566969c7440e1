class DirectoryError(Exception):
    """Base class for errors surfaced to directory users."""


class InvalidSheetUrl(DirectoryError, ValueError):
    def __init__(self, url: str = ''):
        self.url = url
        super().__init__('Invalid URL')


class IngestError(DirectoryError):
    def __init__(self, message: str = 'Failed to parse file. Please ensure it is a valid Excel or CSV file.'):
        super().__init__(message)


class SheetFetchError(DirectoryError):
    pass


class PointerStoreError(DirectoryError):
    pass


class SyncError(DirectoryError):
    pass
