"""Shared fixtures for unit tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from urllib.parse import parse_qsl

import httpx
import pytest

from shipsync.couriers.flash_express import FlashExpressClient
from shipsync.settings import Settings

# Sample key published in the courier's signing documentation
DOC_API_KEY = "96fe12c2e61a85d59de7cc8c279b00b9ce310e2bf55ffacd70665a17b10eb8f6"


@pytest.fixture()
def api_key() -> str:
    return DOC_API_KEY


@pytest.fixture()
def test_settings(api_key: str) -> Settings:
    return Settings(
        flash_express_merchant_id="AAXXXX",
        flash_express_api_key=api_key,
        flash_express_base_url="https://flash.test",
        environment="dev",
    )


@pytest.fixture()
def sample_order_fields() -> dict[str, Any]:
    """Order-creation parameters from the courier's documentation sample."""
    return {
        "mchId": "AAXXXX",
        "nonceStr": "1536749552628",
        "outTradeNo": "123456789XXXX",
        "warehouseNo": "AAXXXX_001",
        "srcName": "หอมรวม  create order test name",
        "srcPhone": "0123456789",
        "srcProvinceName": "อุบลราชธานี",
        "srcCityName": "เมืองอุบลราชธานี",
        "srcDistrictName": "ในเมือง",
        "srcPostalCode": "34000",
        "srcDetailAddress": "example detail address",
        "dstName": "น้ำพริกแม่อำพร",
        "dstPhone": "0123456789",
        "dstHomePhone": "0123456789",
        "dstProvinceName": "เชียงใหม่",
        "dstCityName": "สันทราย",
        "dstDistrictName": "สันพระเนตร",
        "dstPostalCode": "50210",
        "dstDetailAddress": "example detail address",
        "returnName": "น้ำพริกแม่อำพร",
        "returnPhone": "0123456789",
        "returnProvinceName": "อุบลราชธานี",
        "returnCityName": "เมืองอุบลราชธานี",
        "returnPostalCode": "34000",
        "returnDetailAddress": "example detail address",
        "articleCategory": 1,
        "expressCategory": 1,
        "weight": 1000,
        "insured": 1,
        "insureDeclareValue": 10000,
        "opdInsureEnabled": 1,
        "codEnabled": 1,
        "codAmount": 10000,
        "subParcelQuantity": 2,
        "subParcel": [
            {"outTradeNo": "123456789XXXX1", "weight": 21, "width": 21, "length": 21, "height": 12},
            {"outTradeNo": "123456789XXXX2", "weight": 21, "width": 21, "length": 21, "height": 21},
        ],
        "subItemTypes": [
            {"itemName": "item name description", "itemWeightSize": "1*1*1 1Kg", "itemColor": "red", "itemQuantity": "1"},
        ],
        "remark": "ขึ้นบันได",
    }


class RecordingHandler:
    """httpx.MockTransport handler replaying canned replies and recording requests."""

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self._responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def form(self, index: int = -1) -> dict[str, str]:
        return dict(parse_qsl(self.requests[index].content.decode(), keep_blank_values=True))


def _flash_reply(data: Any = None, code: int = 1, message: str = "success") -> httpx.Response:
    return httpx.Response(200, json={"code": code, "message": message, "data": data})


@pytest.fixture()
def flash_reply() -> Callable[..., httpx.Response]:
    """Build a Flash Express JSON envelope; code 1 is success."""
    return _flash_reply


@pytest.fixture()
def make_flash_client(test_settings: Settings) -> Callable[..., tuple[FlashExpressClient, RecordingHandler]]:
    def _make(*responses: httpx.Response | Exception, **kwargs: Any) -> tuple[FlashExpressClient, RecordingHandler]:
        handler = RecordingHandler(*responses)
        client = FlashExpressClient(
            merchant_id=test_settings.flash_express_merchant_id,
            api_key=test_settings.flash_express_api_key,
            base_url=test_settings.flash_express_base_url,
            transport=httpx.MockTransport(handler),
            retry_backoff=[0.0],
            **kwargs,
        )
        return client, handler

    return _make
