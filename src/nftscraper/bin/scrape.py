import asyncio
import pathlib
from contextlib import suppress
from typing import Optional

import click

from nftscraper.bin.shared import (
    Config,
    build_collection_scraper,
    get_scrape_stat_line,
    write_scrape_result,
)
from nftscraper.core.click import AddressParamType, TokenIdParamType
from nftscraper.core.stats import StatsWriter
from nftscraper.core.storage_clients import DirectoryStorageClient
from nftscraper.core.types import Address
from nftscraper.nft.entities import ScrapeResult


async def run_scrape(
    config: Config,
    contract_address: Address,
    start_token_id: int,
    end_token_id: int,
    output_dir: pathlib.Path,
    stats_interval: float,
) -> ScrapeResult:
    scraper = build_collection_scraper(config)
    stats_writer = StatsWriter(config.stats_service, get_scrape_stat_line)
    stats_task = asyncio.create_task(stats_writer.write_at_interval(stats_interval))
    try:
        scrape_result = await scraper.scrape(
            contract_address,
            start_token_id,
            end_token_id,
            config.rpc_api_key,
            config.rpc_provider,
        )
    finally:
        stats_task.cancel()
        with suppress(asyncio.CancelledError):
            await stats_task
    stats_writer.write_line()

    async with DirectoryStorageClient(output_dir, config.stats_service) as storage:
        await write_scrape_result(storage, scrape_result)
    config.logger.info(f"Wrote results to {output_dir}")
    return scrape_result


@click.command()
@click.argument("CONTRACT_ADDRESS", type=AddressParamType())
@click.argument("START_TOKEN_ID", type=TokenIdParamType())
@click.argument("END_TOKEN_ID", type=TokenIdParamType())
@click.option(
    "--output-dir",
    envvar="OUTPUT_DIR",
    type=click.Path(file_okay=False, dir_okay=True, path_type=pathlib.Path),
    help="Directory receiving metadata.json and the images. "
    "Defaults to nft-collection-<CONTRACT_ADDRESS>.",
)
@click.option(
    "--max-tokens",
    envvar="MAX_TOKENS",
    default=100,
    show_default=True,
    type=click.IntRange(min=1),
    help="Maximum number of tokens to scrape. Larger ranges are truncated.",
)
@click.option(
    "--stats-interval",
    envvar="STATS_INTERVAL",
    default=10.0,
    show_default=True,
    type=click.FloatRange(min=0.1),
    help="Seconds between progress stat lines in the log",
)
@click.pass_obj
def scrape(
    config: Config,
    contract_address: Address,
    start_token_id: int,
    end_token_id: int,
    output_dir: Optional[pathlib.Path],
    max_tokens: int,
    stats_interval: float,
):
    """
    Scrape metadata and images for a range of token IDs, inclusive
    """
    if end_token_id < start_token_id:
        raise click.BadParameter(
            "END_TOKEN_ID must not be less than START_TOKEN_ID", param_hint="END_TOKEN_ID"
        )

    actual_end_token_id = min(start_token_id + max_tokens - 1, end_token_id)
    if actual_end_token_id < end_token_id:
        config.logger.warning(
            f"Limiting scrape to {max_tokens:,} tokens, ending at token ID {actual_end_token_id}"
        )

    if output_dir is None:
        output_dir = pathlib.Path(f"nft-collection-{contract_address}")

    scrape_result = asyncio.run(
        run_scrape(
            config,
            contract_address,
            start_token_id,
            actual_end_token_id,
            output_dir,
            stats_interval,
        )
    )
    click.echo(
        f"Scraped {len(scrape_result.results):,} tokens: "
        f"{len(scrape_result.successes):,} succeeded, "
        f"{len(scrape_result.failures):,} failed. Results written to {output_dir}"
    )
