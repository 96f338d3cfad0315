from enum import Enum


class ErrorKind(Enum):
    ALL_PROVIDERS_FAILED = "all_providers_failed"
    METADATA_POINTER_UNRESOLVABLE = "metadata_pointer_unresolvable"
    ALL_GATEWAYS_FAILED = "all_gateways_failed"
    HTTP_FETCH_FAILED = "http_fetch_failed"
    METADATA_SHAPE_INVALID = "metadata_shape_invalid"


class ScraperError(Exception):
    """Base for every failure the retrieval pipeline reports about a token"""

    error_kind: ErrorKind
