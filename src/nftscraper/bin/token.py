import asyncio
import json

import click

from nftscraper.bin.shared import Config, build_token_processor
from nftscraper.core.click import AddressParamType, TokenIdParamType
from nftscraper.core.types import Address
from nftscraper.nft.entities import TokenResult


async def run_token(config: Config, contract_address: Address, token_id: int) -> TokenResult:
    token_processor, _ = build_token_processor(config)
    return await token_processor.process(
        contract_address, token_id, config.rpc_api_key, config.rpc_provider
    )


@click.command()
@click.argument("CONTRACT_ADDRESS", type=AddressParamType())
@click.argument("TOKEN_ID", type=TokenIdParamType())
@click.option(
    "--include-image/--no-include-image",
    default=True,
    show_default=True,
    help="Include the base64 encoded image in the output",
)
@click.pass_obj
def token(config: Config, contract_address: Address, token_id: int, include_image: bool):
    """
    Retrieve a single token and print the result as JSON
    """
    result = asyncio.run(run_token(config, contract_address, token_id))
    click.echo(json.dumps(result.to_dict(include_image=include_image), indent=2))
