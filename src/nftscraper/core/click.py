"""Classes to integrate with the click library"""

import typing as t

from click import ParamType, Parameter, Context
from eth_utils import is_address

from nftscraper.core.types import Address
from nftscraper.evm.providers import PROVIDER_IDS
from nftscraper.nft.fetcher import normalize_gateway


class TokenIdParamType(ParamType):
    """Click param type to parse a decimal or hexadecimal token ID into an int"""

    name = "TokenId"

    def convert(
        self, value: t.Any, param: t.Optional["Parameter"], ctx: t.Optional["Context"]
    ) -> t.Any:
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            return value
        try:
            if isinstance(value, str) and value.lower().startswith("0x"):
                converted = int(value, 16)
            else:
                converted = int(str(value), 10)
            if converted >= 0:
                return converted
        except ValueError:
            pass

        self.fail(f'Invalid token ID "{value}"! Must be a non-negative integer or hexadecimal')


class AddressParamType(ParamType):
    """Click param type to parse input data and produce lower case Address instances"""

    name = "Address"

    def convert(
        self, value: t.Any, param: t.Optional["Parameter"], ctx: t.Optional["Context"]
    ) -> t.Any:
        if isinstance(value, str) and value.startswith("0x") and is_address(value):
            return Address(value.lower())

        self.fail(f'Invalid value "{value}"! Must be a hexadecimal string of 20 bytes')


class ProviderParamType(ParamType):
    """Click param type accepting the identifier of a known RPC provider"""

    name = "Provider"

    def convert(
        self, value: t.Any, param: t.Optional["Parameter"], ctx: t.Optional["Context"]
    ) -> t.Any:
        if value in PROVIDER_IDS:
            return value

        self.fail(f"Invalid RPC provider \"{value}\"! Must be one of: {', '.join(PROVIDER_IDS)}")


class IpfsGatewayParamType(ParamType):
    """Click param type for an HTTP(S) IPFS gateway base, normalized to end with a slash"""

    name = "IpfsGateway"

    def convert(
        self, value: t.Any, param: t.Optional["Parameter"], ctx: t.Optional["Context"]
    ) -> t.Any:
        if isinstance(value, str) and value.startswith(("http://", "https://")):
            return normalize_gateway(value)

        self.fail(f'Invalid IPFS gateway "{value}"! Must be an http:// or https:// URL')
