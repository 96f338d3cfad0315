import json
import pathlib
import tempfile
from unittest import IsolatedAsyncioTestCase, TestCase
from unittest.mock import MagicMock

import ddt

from nftscraper.bin.shared import (
    Config,
    build_collection_scraper,
    build_token_processor,
    get_scrape_stat_line,
    image_filename,
    write_scrape_result,
)
from nftscraper.core.errors import ErrorKind
from nftscraper.core.stats import StatsService
from nftscraper.core.storage_clients import DirectoryStorageClient
from nftscraper.evm.providers import ChainClientResolver
from nftscraper.nft.entities import ScrapeResult, TokenFailure, TokenSuccess
from nftscraper.nft.processor import TokenProcessor
from nftscraper.nft.scraper import CollectionScraper


def make_config(**kwargs) -> Config:
    values = dict(
        stats_service=StatsService(),
        logger=MagicMock(),
        rpc_provider="infura",
        rpc_api_key="key",
        rpc_timeout=10.0,
        ipfs_gateways=("https://ipfs.io/ipfs/",),
        json_timeout=10.0,
        binary_timeout=15.0,
        max_concurrency=5,
    )
    values.update(kwargs)
    return Config(**values)


class BuildTestCase(TestCase):
    def test_build_token_processor(self):
        token_processor, chain_client_resolver = build_token_processor(make_config())
        self.assertIsInstance(token_processor, TokenProcessor)
        self.assertIsInstance(chain_client_resolver, ChainClientResolver)

    def test_build_collection_scraper(self):
        self.assertIsInstance(build_collection_scraper(make_config()), CollectionScraper)


@ddt.ddt
class ImageFilenameTestCase(TestCase):
    @ddt.data(
        ("image/png", "images/1.png"),
        ("image/jpeg", "images/1.jpg"),
        ("image/gif", "images/1.gif"),
        ("image/png; charset=binary", "images/1.png"),
        ("application/x-unknown-type", "images/1.jpg"),
    )
    @ddt.unpack
    def test_extension_from_content_type(self, content_type, expected):
        result = TokenSuccess(1, {}, b"", content_type)
        self.assertEqual(expected, image_filename(result))


class WriteScrapeResultTestCase(IsolatedAsyncioTestCase):
    async def test_writes_metadata_and_images(self):
        temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(temp_dir.cleanup)
        root = pathlib.Path(temp_dir.name)
        scrape_result = ScrapeResult(
            contract_address="0xabc",
            start_token_id=1,
            end_token_id=2,
            results=(
                TokenSuccess(1, {"image": "ipfs://img"}, b"png", "image/png"),
                TokenFailure(2, ErrorKind.HTTP_FETCH_FAILED, "404"),
            ),
        )
        async with DirectoryStorageClient(root, StatsService()) as storage:
            await write_scrape_result(storage, scrape_result)

        metadata = json.loads((root / "metadata.json").read_text())
        self.assertEqual("0xabc", metadata["contractAddress"])
        self.assertEqual([True, False], [r["success"] for r in metadata["results"]])
        self.assertNotIn("image", metadata["results"][0])
        self.assertEqual(b"png", (root / "images" / "1.png").read_bytes())
        self.assertEqual(["1.png"], [p.name for p in (root / "images").iterdir()])


class GetScrapeStatLineTestCase(TestCase):
    def test_includes_token_counts(self):
        stats_service = StatsService()
        stats_service.increment(TokenProcessor.STAT_TOKEN_SUCCESS, 3)
        stats_service.increment(TokenProcessor.STAT_TOKEN_FAILURE, 1)
        self.assertIn("Tokens [S:3 F:1]", get_scrape_stat_line(stats_service))
