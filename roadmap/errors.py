"""Error taxonomy for the segmentation pipeline."""


class SegmentationError(Exception):
    """Base class for all pipeline errors."""

    pass


class InvalidRequest(SegmentationError):
    """Required identifiers are missing. Never retried."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing required fields: {', '.join(missing)}")


class FetchFailed(SegmentationError):
    """Document bytes could not be fetched from storage."""

    pass


class DocumentNotFound(FetchFailed):
    """No stored document with the requested identifier."""

    pass


class StorageUnavailable(FetchFailed):
    """The document store could not be reached or read."""

    pass


class ExtractionFailed(SegmentationError):
    """Document bytes could not be turned into text."""

    pass


class GenerationUnavailable(SegmentationError):
    """The generation service failed or returned nothing."""

    pass


class MalformedResponse(SegmentationError):
    """Generation output does not match the segmentation schema."""

    pass


class PersistenceError(SegmentationError):
    """The segmentation cache could not be read or written."""

    pass
