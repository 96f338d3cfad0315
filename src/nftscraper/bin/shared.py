import dataclasses
import json
import logging
import mimetypes
from typing import Optional, Tuple

from nftscraper.core.data_clients import BytesDataReader
from nftscraper.core.rpc import RpcClient
from nftscraper.core.stats import StatsService, _safe_average
from nftscraper.core.storage_clients import StorageClientContext
from nftscraper.evm.providers import ChainClientResolver
from nftscraper.nft.collection import CollectionInfoReader
from nftscraper.nft.entities import ScrapeResult, TokenSuccess
from nftscraper.nft.fetcher import ResourceFetcher, DEFAULT_IMAGE_CONTENT_TYPE
from nftscraper.nft.processor import TokenProcessor
from nftscraper.nft.scraper import CollectionScraper
from nftscraper.nft.token_uri import TokenUriResolver

METADATA_FILENAME = "metadata.json"
IMAGES_DIRECTORY = "images"
DEFAULT_IMAGE_EXTENSION = ".jpg"


@dataclasses.dataclass
class Config:
    stats_service: StatsService
    logger: logging.Logger
    rpc_provider: str
    rpc_api_key: Optional[str]
    rpc_timeout: float
    ipfs_gateways: Tuple[str, ...]
    json_timeout: float
    binary_timeout: float
    max_concurrency: int


def build_token_processor(config: Config) -> Tuple[TokenProcessor, ChainClientResolver]:
    chain_client_resolver = ChainClientResolver(
        config.stats_service, request_timeout=config.rpc_timeout
    )
    token_uri_resolver = TokenUriResolver(chain_client_resolver, config.stats_service)
    resource_fetcher = ResourceFetcher(
        config.stats_service,
        gateways=config.ipfs_gateways,
        json_timeout=config.json_timeout,
        binary_timeout=config.binary_timeout,
    )
    token_processor = TokenProcessor(token_uri_resolver, resource_fetcher, config.stats_service)
    return token_processor, chain_client_resolver


def build_collection_scraper(config: Config) -> CollectionScraper:
    token_processor, chain_client_resolver = build_token_processor(config)
    return CollectionScraper(
        token_processor,
        CollectionInfoReader(chain_client_resolver),
        max_concurrency=config.max_concurrency,
    )


def image_filename(result: TokenSuccess) -> str:
    content_type = (result.content_type or DEFAULT_IMAGE_CONTENT_TYPE).split(";")[0].strip()
    extension = mimetypes.guess_extension(content_type) or DEFAULT_IMAGE_EXTENSION
    return f"{IMAGES_DIRECTORY}/{result.token_id}{extension}"


async def write_scrape_result(storage: StorageClientContext, scrape_result: ScrapeResult):
    """
    Store `metadata.json` with every result, images excluded, and one file per
    downloaded image
    """
    metadata = json.dumps(scrape_result.to_dict(include_images=False), indent=2)
    await storage.store(
        METADATA_FILENAME, BytesDataReader(metadata.encode("utf8")), "application/json"
    )
    for result in scrape_result.successes:
        await storage.store(
            image_filename(result), BytesDataReader(result.image), result.content_type
        )


def get_scrape_stat_line(stats_service: StatsService) -> str:
    rpc_sent = stats_service.get_count(RpcClient.STAT_REQUEST_SENT)
    rpc_received = stats_service.get_count(RpcClient.STAT_RESPONSE_RECEIVED)
    rpc_errors = stats_service.get_count(RpcClient.STAT_RESPONSE_ERROR)
    rpc_transport_errors = stats_service.get_count(RpcClient.STAT_TRANSPORT_ERROR)
    rpc_request_ms = stats_service.get_count(RpcClient.STAT_REQUEST_MS)
    rpc_request_ms_avg = _safe_average(rpc_sent, rpc_request_ms)
    provider_fallbacks = stats_service.get_count(ChainClientResolver.STAT_PROVIDER_FALLBACK)
    cache_hits = stats_service.get_count(TokenUriResolver.STAT_CACHE_HIT)
    cache_misses = stats_service.get_count(TokenUriResolver.STAT_CACHE_MISS)
    gateway_attempts = stats_service.get_count(ResourceFetcher.STAT_GATEWAY_ATTEMPT)
    gateway_failures = stats_service.get_count(ResourceFetcher.STAT_GATEWAY_FAILED)
    token_success = stats_service.get_count(TokenProcessor.STAT_TOKEN_SUCCESS)
    token_failure = stats_service.get_count(TokenProcessor.STAT_TOKEN_FAILURE)
    return (
        f"RPC ["
        f"S:{rpc_sent:,} "
        f"R:{rpc_received:,}/{rpc_request_ms_avg:,.0F} "
        f"E:{rpc_errors:,} "
        f"X:{rpc_transport_errors:,} "
        f"F:{provider_fallbacks:,}"
        f"]"
        f" Cache ["
        f"H:{cache_hits:,} "
        f"M:{cache_misses:,}"
        f"]"
        f" IPFS ["
        f"A:{gateway_attempts:,} "
        f"F:{gateway_failures:,}"
        f"]"
        f" -- "
        f"Tokens ["
        f"S:{token_success:,} "
        f"F:{token_failure:,}"
        f"]"
    )
