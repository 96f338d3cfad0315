import base64
import json
from unittest import TestCase

from nftscraper.core.errors import ErrorKind
from nftscraper.nft.entities import (
    ScrapeResult,
    TokenFailure,
    TokenSuccess,
    token_result_from_dict,
)


class TokenSuccessTestCase(TestCase):
    def setUp(self) -> None:
        self.success = TokenSuccess(
            token_id=1, metadata={"name": "One"}, image=b"\x89PNG", content_type="image/png"
        )

    def test_to_dict_encodes_image_as_base64(self):
        actual = self.success.to_dict()
        self.assertEqual(
            {
                "tokenId": 1,
                "success": True,
                "metadata": {"name": "One"},
                "contentType": "image/png",
                "image": base64.b64encode(b"\x89PNG").decode("ascii"),
            },
            actual,
        )

    def test_to_dict_without_image(self):
        self.assertNotIn("image", self.success.to_dict(include_image=False))

    def test_to_dict_is_json_serializable(self):
        json.dumps(self.success.to_dict())

    def test_from_dict_restores_image_bytes(self):
        self.assertEqual(self.success, token_result_from_dict(self.success.to_dict()))

    def test_repr_omits_image(self):
        self.assertNotIn("PNG", repr(self.success))


class TokenFailureTestCase(TestCase):
    def setUp(self) -> None:
        self.failure = TokenFailure(
            token_id=2, error_kind=ErrorKind.ALL_GATEWAYS_FAILED, message="gone"
        )

    def test_to_dict(self):
        self.assertEqual(
            {
                "tokenId": 2,
                "success": False,
                "errorKind": "all_gateways_failed",
                "message": "gone",
            },
            self.failure.to_dict(),
        )

    def test_from_dict(self):
        self.assertEqual(self.failure, token_result_from_dict(self.failure.to_dict()))


class ScrapeResultTestCase(TestCase):
    def setUp(self) -> None:
        self.success = TokenSuccess(1, {"image": "x"}, b"img", "image/jpeg")
        self.failure = TokenFailure(2, ErrorKind.HTTP_FETCH_FAILED, "404")
        self.result = ScrapeResult(
            contract_address="0xabc",
            start_token_id=1,
            end_token_id=2,
            results=(self.success, self.failure),
            name="Collection",
            symbol="COL",
        )

    def test_successes_and_failures(self):
        self.assertEqual((self.success,), self.result.successes)
        self.assertEqual((self.failure,), self.result.failures)

    def test_to_dict_omits_images_by_default(self):
        actual = self.result.to_dict()
        self.assertEqual("0xabc", actual["contractAddress"])
        self.assertEqual("Collection", actual["name"])
        self.assertEqual("COL", actual["symbol"])
        self.assertEqual(1, actual["startTokenId"])
        self.assertEqual(2, actual["endTokenId"])
        self.assertEqual([1, 2], [r["tokenId"] for r in actual["results"]])
        self.assertNotIn("image", actual["results"][0])

    def test_to_dict_with_images(self):
        actual = self.result.to_dict(include_images=True)
        self.assertEqual(base64.b64encode(b"img").decode(), actual["results"][0]["image"])
