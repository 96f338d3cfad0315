from typing import Dict
from unittest import IsolatedAsyncioTestCase, TestCase
from unittest.mock import AsyncMock, MagicMock, patch

import ddt

from nftscraper.core.errors import ErrorKind
from nftscraper.core.rpc import RpcTransportError, RpcServerError
from nftscraper.core.stats import StatsService
from nftscraper.core.types import HexInt
from nftscraper.evm.providers import (
    AllProvidersFailed,
    ChainClientResolver,
    DEFAULT_PROVIDER_ID,
    PROVIDER_IDS,
    PROVIDERS,
    ProviderConfig,
)
from nftscraper.evm.rpc import EvmRpcClient


@ddt.ddt
class ProviderTableTestCase(TestCase):
    def test_providers_are_in_fallback_order(self):
        self.assertEqual(("infura", "alchemy", "ankr", "cloudflare", "public"), PROVIDER_IDS)

    def test_default_provider_is_infura(self):
        self.assertEqual("infura", DEFAULT_PROVIDER_ID)

    @ddt.data(
        ("infura", "https://mainnet.infura.io/v3/key"),
        ("alchemy", "https://eth-mainnet.g.alchemy.com/v2/key"),
        ("ankr", "https://rpc.ankr.com/eth"),
        ("cloudflare", "https://cloudflare-eth.com"),
        ("public", "https://ethereum-rpc.publicnode.com"),
    )
    @ddt.unpack
    def test_provider_urls(self, provider_id, expected):
        provider = {p.provider_id: p for p in PROVIDERS}[provider_id]
        self.assertEqual(expected, provider.url("key"))

    def test_keyed_provider_url_without_key_has_empty_key(self):
        provider = {p.provider_id: p for p in PROVIDERS}["infura"]
        self.assertEqual("https://mainnet.infura.io/v3/", provider.url(None))

    @ddt.data(("infura", True), ("alchemy", True), ("ankr", False), ("public", False))
    @ddt.unpack
    def test_requires_api_key(self, provider_id, expected):
        provider = {p.provider_id: p for p in PROVIDERS}[provider_id]
        self.assertEqual(expected, provider.requires_api_key)


class ChainClientResolverTestCase(IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._providers = (
            ProviderConfig("a", lambda key: f"https://a/{key}", True),
            ProviderConfig("b", lambda _: "https://b", False),
            ProviderConfig("c", lambda _: "https://c", False),
        )
        self._clients: Dict[str, MagicMock] = {}
        patcher = patch("nftscraper.evm.providers.EvmRpcClient", side_effect=self._create_client)
        self._evm_rpc_client = patcher.start()
        self.addCleanup(patcher.stop)
        self._stats_service = StatsService()
        self._resolver = ChainClientResolver(self._stats_service, self._providers, "a")

    def _create_client(self, url, stats_service, request_timeout):
        client = self._clients.get(url)
        if client is None:
            client = MagicMock(EvmRpcClient)
            client.get_block_number = AsyncMock(return_value=HexInt(1))
            self._clients[url] = client
        return client

    def _failing(self, url: str, error=None):
        client = self._create_client(url, None, None)
        client.get_block_number.side_effect = error or RpcTransportError("down")
        return client

    def _probed_urls(self):
        return [c.args[0] for c in self._evm_rpc_client.call_args_list]

    async def test_returns_primary_client_when_it_answers(self):
        actual = await self._resolver.resolve("b", "key")
        self.assertIs(self._clients["https://b"], actual)
        self.assertEqual(["https://b"], self._probed_urls())

    async def test_builds_primary_url_with_api_key(self):
        await self._resolver.resolve("a", "key")
        self.assertEqual(["https://a/key"], self._probed_urls())

    async def test_passes_stats_service_and_timeout_to_clients(self):
        resolver = ChainClientResolver(
            self._stats_service, self._providers, "a", request_timeout=3.0
        )
        await resolver.resolve("b", None)
        self._evm_rpc_client.assert_called_once_with("https://b", self._stats_service, 3.0)

    async def test_falls_back_in_table_order_skipping_primary(self):
        self._failing("https://b")
        self._failing("https://a/key")
        actual = await self._resolver.resolve("b", "key")
        self.assertIs(self._clients["https://c"], actual)
        self.assertEqual(["https://b", "https://a/key", "https://c"], self._probed_urls())

    async def test_probes_each_candidate_once(self):
        for url in ("https://a/key", "https://b", "https://c"):
            self._failing(url)
        with self.assertRaises(AllProvidersFailed):
            await self._resolver.resolve("a", "key")
        self.assertEqual(["https://a/key", "https://b", "https://c"], self._probed_urls())
        for client in self._clients.values():
            client.get_block_number.assert_awaited_once()

    async def test_server_errors_also_fall_back(self):
        self._failing("https://a/key", RpcServerError("2.0", "1", -32000, "unauthorized"))
        actual = await self._resolver.resolve("a", "key")
        self.assertIs(self._clients["https://b"], actual)

    async def test_raises_all_providers_failed_with_last_error(self):
        self._failing("https://a/key")
        self._failing("https://b")
        last = RpcTransportError("last")
        self._failing("https://c", last)
        with self.assertRaises(AllProvidersFailed) as context:
            await self._resolver.resolve("a", "key")
        self.assertIs(last, context.exception.last_error)
        self.assertEqual(ErrorKind.ALL_PROVIDERS_FAILED, context.exception.error_kind)

    async def test_unknown_primary_uses_default(self):
        with self.assertLogs("nftscraper", "WARNING") as logs:
            actual = await self._resolver.resolve("unknown", "key")
        self.assertIs(self._clients["https://a/key"], actual)
        self.assertTrue(any("Unknown RPC provider unknown" in line for line in logs.output))

    async def test_warns_when_keyed_provider_has_no_api_key(self):
        with self.assertLogs("nftscraper", "WARNING") as logs:
            await self._resolver.resolve("a", None)
        self.assertTrue(any("No API key provided" in line for line in logs.output))

    async def test_logs_fallback_attempts(self):
        self._failing("https://a/key")
        with self.assertLogs("nftscraper", "INFO") as logs:
            await self._resolver.resolve("a", "key")
        self.assertTrue(any("Error connecting to a" in line for line in logs.output))
        self.assertTrue(any("Trying fallback provider: b" in line for line in logs.output))

    async def test_counts_attempts_failures_and_fallbacks(self):
        self._failing("https://a/key")
        await self._resolver.resolve("a", "key")
        self.assertEqual(
            2, self._stats_service.get_count(ChainClientResolver.STAT_PROVIDER_ATTEMPT)
        )
        self.assertEqual(
            1, self._stats_service.get_count(ChainClientResolver.STAT_PROVIDER_FAILED)
        )
        self.assertEqual(
            1, self._stats_service.get_count(ChainClientResolver.STAT_PROVIDER_FALLBACK)
        )


class ChainClientResolverCandidatesTestCase(TestCase):
    def test_candidates_put_primary_first_then_table_order(self):
        resolver = ChainClientResolver(StatsService())
        actual = [p.provider_id for p in resolver.candidates("ankr")]
        self.assertEqual(["ankr", "infura", "alchemy", "cloudflare", "public"], actual)

    def test_candidates_contain_every_provider_exactly_once(self):
        resolver = ChainClientResolver(StatsService())
        for provider_id in PROVIDER_IDS:
            actual = [p.provider_id for p in resolver.candidates(provider_id)]
            self.assertEqual(sorted(PROVIDER_IDS), sorted(actual))

    def test_raises_value_error_for_unknown_default(self):
        with self.assertRaises(ValueError):
            ChainClientResolver(StatsService(), PROVIDERS, "unknown")
