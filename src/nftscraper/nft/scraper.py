import asyncio
import logging
from typing import Optional

from nftscraper import LOGGER_NAME
from nftscraper.evm.providers import DEFAULT_PROVIDER_ID
from nftscraper.nft.collection import CollectionInfoReader, CollectionInfo
from nftscraper.nft.entities import ScrapeResult, TokenResult
from nftscraper.nft.processor import TokenProcessor
from nftscraper.nft.token_uri import TokenId, normalize_token_id

DEFAULT_MAX_CONCURRENCY = 5


class CollectionScraper:
    """
    Processes every token in an inclusive range of token IDs with at most
    `max_concurrency` tokens in flight. Results keep ascending token ID order no
    matter the order in which tokens complete.

    :param token_processor: Processor run for each token
    :param collection_info_reader: Optional reader for the collection name and symbol
    :param max_concurrency: Maximum number of tokens processed at the same time
    """

    def __init__(
        self,
        token_processor: TokenProcessor,
        collection_info_reader: Optional[CollectionInfoReader] = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.__token_processor = token_processor
        self.__collection_info_reader = collection_info_reader
        self.__max_concurrency = max_concurrency
        self.__logger = logging.getLogger(LOGGER_NAME)

    async def scrape(
        self,
        contract_address: str,
        start_token_id: TokenId,
        end_token_id: TokenId,
        api_key: Optional[str],
        primary_provider_id: str = DEFAULT_PROVIDER_ID,
    ) -> ScrapeResult:
        start_token_id = normalize_token_id(start_token_id)
        end_token_id = normalize_token_id(end_token_id)
        if start_token_id > end_token_id:
            raise ValueError(
                f"Start token ID {start_token_id} is greater than end token ID {end_token_id}"
            )

        self.__logger.info(f"Starting to scrape NFTs from contract: {contract_address}")
        if self.__collection_info_reader is None:
            collection_info = CollectionInfo()
        else:
            collection_info = await self.__collection_info_reader.read(
                contract_address, api_key, primary_provider_id
            )

        semaphore = asyncio.Semaphore(self.__max_concurrency)

        async def process(token_id: int) -> TokenResult:
            async with semaphore:
                return await self.__token_processor.process(
                    contract_address, token_id, api_key, primary_provider_id
                )

        results = await asyncio.gather(
            *(process(token_id) for token_id in range(start_token_id, end_token_id + 1))
        )

        scrape_result = ScrapeResult(
            contract_address=contract_address,
            start_token_id=start_token_id,
            end_token_id=end_token_id,
            results=tuple(results),
            name=collection_info.name,
            symbol=collection_info.symbol,
        )
        self.__logger.info(
            f"Finished scraping {contract_address}: "
            f"{len(scrape_result.successes):,} succeeded, "
            f"{len(scrape_result.failures):,} failed"
        )
        return scrape_result
