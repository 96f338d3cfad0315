import base64
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from ..core.errors import ErrorKind


@dataclass(frozen=True)
class TokenSuccess:
    token_id: int
    metadata: Any
    image: bytes = field(repr=False)
    content_type: str
    success: ClassVar[bool] = True

    def to_dict(self, include_image: bool = True) -> Dict[str, Any]:
        """
        Serializable form of the result. The image is base64 encoded.
        """
        data: Dict[str, Any] = {
            "tokenId": self.token_id,
            "success": True,
            "metadata": self.metadata,
            "contentType": self.content_type,
        }
        if include_image:
            data["image"] = base64.b64encode(self.image).decode("ascii")
        return data


@dataclass(frozen=True)
class TokenFailure:
    token_id: Union[int, str]
    error_kind: ErrorKind
    message: str
    success: ClassVar[bool] = False

    def to_dict(self, include_image: bool = True) -> Dict[str, Any]:
        return {
            "tokenId": self.token_id,
            "success": False,
            "errorKind": self.error_kind.value,
            "message": self.message,
        }


TokenResult = Union[TokenSuccess, TokenFailure]


def token_result_from_dict(data: Dict[str, Any]) -> TokenResult:
    """Rebuild a result from the output of `to_dict` with its image included"""
    if data["success"]:
        return TokenSuccess(
            token_id=data["tokenId"],
            metadata=data["metadata"],
            image=base64.b64decode(data["image"]),
            content_type=data["contentType"],
        )
    return TokenFailure(
        token_id=data["tokenId"],
        error_kind=ErrorKind(data["errorKind"]),
        message=data["message"],
    )


@dataclass(frozen=True)
class ScrapeResult:
    contract_address: str
    start_token_id: int
    end_token_id: int
    results: Tuple[TokenResult, ...]
    name: Optional[str] = None
    symbol: Optional[str] = None

    @property
    def successes(self) -> Tuple[TokenSuccess, ...]:
        return tuple(result for result in self.results if isinstance(result, TokenSuccess))

    @property
    def failures(self) -> Tuple[TokenFailure, ...]:
        return tuple(result for result in self.results if isinstance(result, TokenFailure))

    def to_dict(self, include_images: bool = False) -> Dict[str, Any]:
        return {
            "contractAddress": self.contract_address,
            "name": self.name,
            "symbol": self.symbol,
            "startTokenId": self.start_token_id,
            "endTokenId": self.end_token_id,
            "results": [result.to_dict(include_image=include_images) for result in self.results],
        }
