import logging
import pathlib
from logging import StreamHandler
from logging.handlers import TimedRotatingFileHandler
from typing import List, Optional, Tuple

import click
from click import Context

from nftscraper import LOGGER_NAME
from nftscraper.bin.scrape import scrape
from nftscraper.bin.shared import Config
from nftscraper.bin.token import token
from nftscraper.core.click import IpfsGatewayParamType, ProviderParamType
from nftscraper.core.stats import StatsService
from nftscraper.evm.providers import DEFAULT_PROVIDER_ID
from nftscraper.nft.fetcher import DEFAULT_GATEWAYS, JSON_TIMEOUT, BINARY_TIMEOUT
from nftscraper.nft.scraper import DEFAULT_MAX_CONCURRENCY


@click.group
@click.option(
    "--rpc-provider",
    envvar="RPC_PROVIDER",
    help="RPC provider tried first. The others are used as fallbacks.",
    default=DEFAULT_PROVIDER_ID,
    show_default=True,
    type=ProviderParamType(),
)
@click.option(
    "--rpc-api-key",
    envvar="RPC_API_KEY",
    help="API key for RPC providers requiring one",
    default=None,
)
@click.option(
    "--rpc-timeout",
    envvar="RPC_TIMEOUT",
    default=10.0,
    show_default=True,
    type=float,
    help="Maximum time in seconds to wait for an RPC response",
)
@click.option(
    "--ipfs-gateway",
    "ipfs_gateways",
    envvar="IPFS_GATEWAYS",
    multiple=True,
    type=IpfsGatewayParamType(),
    default=DEFAULT_GATEWAYS,
    show_default=True,
    help="IPFS gateway base URL, in fallback order. May be repeated.",
)
@click.option(
    "--json-timeout",
    envvar="JSON_TIMEOUT",
    default=JSON_TIMEOUT,
    show_default=True,
    type=float,
    help="Maximum time in seconds to wait for a metadata document",
)
@click.option(
    "--binary-timeout",
    envvar="BINARY_TIMEOUT",
    default=BINARY_TIMEOUT,
    show_default=True,
    type=float,
    help="Maximum time in seconds to wait for an image",
)
@click.option(
    "--max-concurrency",
    envvar="MAX_CONCURRENCY",
    default=DEFAULT_MAX_CONCURRENCY,
    show_default=True,
    type=click.IntRange(min=1),
    help="Maximum number of tokens processed at the same time",
)
@click.option(
    "--log-file",
    envvar="LOG_FILE",
    type=click.Path(file_okay=True, dir_okay=False, allow_dash=False, path_type=pathlib.Path),
    multiple=True,
    help="Location and filename for a log.",
)
@click.option(
    "--debug/--no-debug",
    envvar="DEBUG",
    default=False,
    show_default=True,
    help="Show debug messages in the console.",
)
@click.pass_context
def main(
    ctx: Context,
    rpc_provider: str,
    rpc_api_key: Optional[str],
    rpc_timeout: float,
    ipfs_gateways: Tuple[str, ...],
    json_timeout: float,
    binary_timeout: float,
    max_concurrency: int,
    log_file: List[pathlib.Path],
    debug: bool,
):
    """
    Scrape NFT metadata and images from ERC-721 and ERC-1155 contracts
    """
    logger = logging.getLogger(LOGGER_NAME)
    handlers: List[logging.Handler] = [StreamHandler()]
    for filename in log_file:
        handlers.append(TimedRotatingFileHandler(filename, when="D"))
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logging.basicConfig(format="%(asctime)s %(message)s", handlers=handlers)

    if not rpc_api_key:
        logger.warning("No RPC API key provided. Only public RPC providers will be usable.")

    ctx.obj = Config(
        stats_service=StatsService(),
        logger=logger,
        rpc_provider=rpc_provider,
        rpc_api_key=rpc_api_key,
        rpc_timeout=rpc_timeout,
        ipfs_gateways=tuple(ipfs_gateways),
        json_timeout=json_timeout,
        binary_timeout=binary_timeout,
        max_concurrency=max_concurrency,
    )


main.add_command(scrape)
main.add_command(token)
