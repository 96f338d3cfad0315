import logging
from typing import Any, Optional

from nftscraper import LOGGER_NAME
from nftscraper.core.errors import ErrorKind
from nftscraper.core.stats import StatsService
from nftscraper.evm.providers import DEFAULT_PROVIDER_ID
from nftscraper.nft.entities import TokenResult, TokenFailure, TokenSuccess
from nftscraper.nft.fetcher import ResourceFetcher, MetadataShapeInvalid
from nftscraper.nft.token_uri import TokenUriResolver, TokenId, normalize_token_id

IMAGE_FIELDS = ("image", "image_url")


def get_image_uri(metadata: Any) -> str:
    """
    Get the image reference from a metadata document

    :raises: MetadataShapeInvalid
    """
    if not isinstance(metadata, dict):
        raise MetadataShapeInvalid("Metadata is not a JSON object")
    for image_field in IMAGE_FIELDS:
        image = metadata.get(image_field)
        if isinstance(image, str) and image.strip():
            return image.strip()
    raise MetadataShapeInvalid("Metadata has no image")


class TokenProcessor:
    """
    Runs the retrieval pipeline for a single token. Every failure becomes a
    `TokenFailure` so that one token never interrupts the processing of another.
    """

    STAT_TOKEN_SUCCESS = "token.success"
    STAT_TOKEN_FAILURE = "token.failure"

    def __init__(
        self,
        token_uri_resolver: TokenUriResolver,
        resource_fetcher: ResourceFetcher,
        stats_service: StatsService,
    ) -> None:
        self.__token_uri_resolver = token_uri_resolver
        self.__resource_fetcher = resource_fetcher
        self.__stats_service = stats_service
        self.__logger = logging.getLogger(LOGGER_NAME)

    def __failure(
        self, token_id: TokenId, error: Exception, message: str, default_kind: ErrorKind
    ) -> TokenFailure:
        error_kind: Optional[ErrorKind] = getattr(error, "error_kind", None)
        if error_kind is None:
            self.__logger.exception(f"Unexpected error processing token ID {token_id}")
            error_kind = default_kind
        self.__stats_service.increment(self.STAT_TOKEN_FAILURE)
        self.__stats_service.increment(f"{self.STAT_TOKEN_FAILURE}.{error_kind.value}")
        self.__logger.warning(f"Token ID {token_id} failed -- {message}: {error}")
        return TokenFailure(token_id=token_id, error_kind=error_kind, message=f"{message}: {error}")

    async def process(
        self,
        contract_address: str,
        token_id: TokenId,
        api_key: Optional[str],
        primary_provider_id: str = DEFAULT_PROVIDER_ID,
    ) -> TokenResult:
        self.__logger.info(f"Processing token ID: {token_id}")

        try:
            token_id = normalize_token_id(token_id)
            token_uri = await self.__token_uri_resolver.resolve(
                contract_address, token_id, api_key, primary_provider_id
            )
        except Exception as e:
            return self.__failure(
                token_id,
                e,
                "Failed to get tokenURI",
                ErrorKind.METADATA_POINTER_UNRESOLVABLE,
            )

        try:
            metadata = await self.__resource_fetcher.fetch_json(token_uri)
            image_uri = get_image_uri(metadata)
        except Exception as e:
            return self.__failure(
                token_id,
                e,
                "Failed to fetch metadata or no image found",
                ErrorKind.HTTP_FETCH_FAILED,
            )

        try:
            image, content_type = await self.__resource_fetcher.fetch_binary(image_uri)
        except Exception as e:
            return self.__failure(
                token_id, e, "Failed to download image", ErrorKind.HTTP_FETCH_FAILED
            )

        self.__stats_service.increment(self.STAT_TOKEN_SUCCESS)
        self.__logger.info(f"Successfully downloaded image for token ID {token_id}")
        return TokenSuccess(
            token_id=token_id, metadata=metadata, image=image, content_type=content_type
        )
