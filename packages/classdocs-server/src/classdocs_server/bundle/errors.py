"""Custom exceptions for bundle acquisition, index loading and queries."""


class ClassDocsError(Exception):
    """Base class for all classdocs errors."""

    pass


# Acquisition


class AcquisitionError(ClassDocsError):
    """Error while bringing the bundle store up to date."""

    pass


class FetchError(AcquisitionError):
    """Error while retrieving the bundle archive."""

    pass


class SourceUnreachable(FetchError):
    """Network, DNS or locator failure."""

    pass


class SourceRejected(FetchError):
    """Remote answered with a non-success status."""

    def __init__(self, status_code: int, reason: str = ""):
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"HTTP {status_code}: {reason}".rstrip(": "))


class FetchTimeout(FetchError):
    """Transfer did not complete within the deadline."""

    pass


class ExtractionFailed(AcquisitionError):
    """Archive could not be materialized into the store."""

    pass


class InvalidBundle(AcquisitionError):
    """Extracted bundle failed validation."""

    pass


class NoDocumentationAvailable(AcquisitionError):
    """No remote source configured and no bundle on disk."""

    pass


class ProvisionInProgress(AcquisitionError):
    """Provisioning was invoked while another run was active."""

    pass


# Index


class LookupIndexError(ClassDocsError):
    """Lookup index could not be loaded."""

    pass


class IndexMissing(LookupIndexError):
    """Index file is absent."""

    pass


class IndexCorrupt(LookupIndexError):
    """Index file is unparseable or has invalid entries."""

    pass


# Queries


class QueryError(ClassDocsError):
    """Per-call error, reported back to the caller."""

    pass


class EmptyQuery(QueryError):
    """Search query is empty after trimming."""

    pass


class EmptyName(QueryError):
    """Class name is empty after trimming."""

    pass


class NameNotFound(QueryError):
    """Name is not in the index."""

    pass


class DocumentBodyMissing(QueryError):
    """Name is indexed but its documentation file is gone or unreadable."""

    pass
