"""Flash Express Open API client: signed form requests over httpx."""

from __future__ import annotations

import asyncio
import json
import logging
import re
import secrets
import string
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from shipsync.errors import ConfigurationError, CourierAPIError, CourierTransportError
from shipsync.signing.canonical import FLASH_EXPRESS_PROFILE, normalise_value
from shipsync.signing.signature import SIGN_FIELD, SignedRequestBuilder

if TYPE_CHECKING:
    from shipsync.settings import Settings

__all__ = [
    "FlashExpressClient",
    "FlashOrder",
    "OrderItem",
    "PickupRequest",
    "ShipmentResult",
    "generate_nonce",
]

logger = logging.getLogger(__name__)

SUCCESS_CODE = 1
_NONCE_ALPHABET = string.ascii_lowercase + string.digits
_PHONE_NOISE = re.compile(r"[\s-]")
_DEFAULT_COD_ITEM: dict[str, Any] = {
    "itemName": "สินค้า",
    "itemWeightSize": "1Kg",
    "itemColor": "-",
    "itemQuantity": 1,
}


def generate_nonce(length: int = 16) -> str:
    """Random ``[a-z0-9]`` token for ``nonceStr``."""
    return "".join(secrets.choice(_NONCE_ALPHABET) for _ in range(length))


def _clean_phone(phone: str) -> str:
    return _PHONE_NOISE.sub("", phone)


@dataclass(frozen=True)
class OrderItem:
    """One line of ``subItemTypes``."""

    name: str
    quantity: int = 1
    weight_size: str = ""
    color: str = ""

    def to_wire(self) -> dict[str, Any]:
        d: dict[str, Any] = {"itemName": self.name, "itemQuantity": self.quantity}
        if self.weight_size:
            d["itemWeightSize"] = self.weight_size
        if self.color:
            d["itemColor"] = self.color
        return d


@dataclass(frozen=True)
class FlashOrder:
    """Business data for one parcel. Weight in grams, sizes in cm, money in satang."""

    out_trade_no: str
    src_name: str
    src_phone: str
    src_province_name: str
    src_city_name: str
    src_postal_code: str
    src_detail_address: str
    dst_name: str
    dst_phone: str
    dst_province_name: str
    dst_city_name: str
    dst_postal_code: str
    dst_detail_address: str
    weight: int
    article_category: int = 1
    express_category: int = 1
    src_district_name: str = ""
    dst_district_name: str = ""
    dst_home_phone: str = ""
    width: int | None = None
    length: int | None = None
    height: int | None = None
    insured: bool = False
    insure_declare_value: int | None = None
    cod_enabled: bool = False
    cod_amount: int | None = None
    remark: str = ""
    warehouse_no: str = ""
    items: tuple[OrderItem, ...] = field(default_factory=tuple)

    def to_fields(self) -> dict[str, Any]:
        """Signed field map; optional fields only appear when set."""
        fields: dict[str, Any] = {
            "outTradeNo": self.out_trade_no,
            "srcName": self.src_name,
            "srcPhone": _clean_phone(self.src_phone),
            "srcProvinceName": self.src_province_name,
            "srcCityName": self.src_city_name,
            "srcPostalCode": self.src_postal_code,
            "srcDetailAddress": self.src_detail_address,
            "dstName": self.dst_name,
            "dstPhone": _clean_phone(self.dst_phone),
            "dstProvinceName": self.dst_province_name,
            "dstCityName": self.dst_city_name,
            "dstPostalCode": self.dst_postal_code,
            "dstDetailAddress": self.dst_detail_address,
            "articleCategory": self.article_category,
            "expressCategory": self.express_category,
            "weight": self.weight,
            "insured": self.insured,
            "codEnabled": self.cod_enabled,
        }
        if self.warehouse_no:
            fields["warehouseNo"] = self.warehouse_no
        if self.src_district_name:
            fields["srcDistrictName"] = self.src_district_name
        if self.dst_district_name:
            fields["dstDistrictName"] = self.dst_district_name
        if self.dst_home_phone:
            fields["dstHomePhone"] = _clean_phone(self.dst_home_phone)
        for name in ("width", "length", "height"):
            value = getattr(self, name)
            if value:
                fields[name] = value
        if self.insured and self.insure_declare_value:
            fields["insureDeclareValue"] = self.insure_declare_value
        if self.cod_enabled and self.cod_amount:
            fields["codAmount"] = self.cod_amount
        if self.remark:
            fields["remark"] = self.remark
        return fields

    def sub_item_types(self) -> list[dict[str, Any]] | None:
        if self.items:
            return [item.to_wire() for item in self.items]
        if self.cod_enabled:
            # COD parcels are rejected without an item list
            return [dict(_DEFAULT_COD_ITEM)]
        return None


@dataclass(frozen=True)
class PickupRequest:
    """Ask a courier to collect parcels from an address."""

    contact_name: str
    contact_phone: str
    province_name: str
    city_name: str
    postal_code: str
    detail_address: str
    district_name: str = ""
    estimate_parcel_number: int = 1
    remark: str = ""
    warehouse_no: str = ""

    def to_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "srcName": self.contact_name,
            "srcPhone": _clean_phone(self.contact_phone),
            "srcProvinceName": self.province_name,
            "srcCityName": self.city_name,
            "srcDistrictName": self.district_name,
            "srcPostalCode": self.postal_code,
            "srcDetailAddress": self.detail_address,
            "estimateParcelNumber": self.estimate_parcel_number,
            "remark": self.remark,
        }
        if self.warehouse_no:
            fields["warehouseNo"] = self.warehouse_no
        return fields


@dataclass(frozen=True)
class ShipmentResult:
    """Outcome of a successful order creation."""

    tracking_number: str
    sort_code: str = ""
    out_trade_no: str = ""
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "provider": "flash_express",
            "tracking_number": self.tracking_number,
        }
        if self.sort_code:
            d["sort_code"] = self.sort_code
        if self.out_trade_no:
            d["out_trade_no"] = self.out_trade_no
        return d


class FlashExpressClient:
    """HTTP client for the Flash Express Open API.

    Every call carries ``mchId``, ``nonceStr`` and ``timestamp``, is signed
    with :class:`SignedRequestBuilder` and sent as a URL-encoded form.
    """

    def __init__(
        self,
        merchant_id: str,
        api_key: str,
        base_url: str = "https://open-api-tra.flashexpress.com",
        *,
        timeout: float = 15.0,
        max_retries: int = 2,
        retry_backoff: list[float] | None = None,
        warehouse_no: str = "",
        exclude_keys: frozenset[str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not merchant_id or not merchant_id.strip():
            raise ConfigurationError("shipping provider credentials not configured")
        self._merchant_id = merchant_id
        self._signer = SignedRequestBuilder(api_key, FLASH_EXPRESS_PROFILE.with_exclusions(exclude_keys))
        self._warehouse_no = warehouse_no or f"{merchant_id}_001"
        self._max_retries = max(0, max_retries)
        self._backoff = retry_backoff or [0.5, 1.0, 2.0]
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> FlashExpressClient:
        if not settings.flash_express_configured:
            raise ConfigurationError("shipping provider credentials not configured")
        return cls(
            merchant_id=settings.flash_express_merchant_id,
            api_key=settings.flash_express_api_key,
            base_url=settings.flash_express_base_url,
            timeout=settings.flash_express_timeout,
            max_retries=settings.flash_express_max_retries,
            warehouse_no=settings.flash_express_warehouse_no,
            exclude_keys=settings.sign_exclude_keys(),
            transport=transport,
        )

    @property
    def merchant_id(self) -> str:
        return self._merchant_id

    @property
    def signer(self) -> SignedRequestBuilder:
        return self._signer

    # -- request plumbing ---------------------------------------------------

    def _base_fields(self) -> dict[str, Any]:
        return {
            "mchId": self._merchant_id,
            "nonceStr": generate_nonce(),
            "timestamp": str(int(time.time())),
        }

    def build_request(
        self,
        fields: dict[str, Any],
        unsigned: dict[str, str] | None = None,
    ) -> tuple[dict[str, str], dict[str, str]]:
        """Sign ``fields`` and return ``(form, headers)``.

        ``unsigned`` holds pre-serialised structured fields appended after
        signing.
        """
        params = {**self._base_fields(), **fields}
        signed = self._signer.sign(params)
        profile = self._signer.profile
        form = {
            key: normalise_value(key, value, profile)
            for key, value in signed.items()
            if value is not None
        }
        if unsigned:
            form.update(unsigned)
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "X-Flash-Signature": signed[SIGN_FIELD],
            "X-Flash-Timestamp": str(params["timestamp"]),
            "X-Flash-Nonce": str(params["nonceStr"]),
        }
        return form, headers

    async def _post(
        self,
        path: str,
        fields: dict[str, Any],
        *,
        unsigned: dict[str, str] | None = None,
        retry: bool = False,
    ) -> Any:
        """POST a signed form and return the ``data`` member of a code-1 reply.

        Raises:
            CourierTransportError: Unreachable, timed out or 5xx.
            CourierAPIError: Non-JSON reply or ``code`` other than 1.
        """
        attempts = self._max_retries + 1 if retry else 1
        for attempt in range(1, attempts + 1):
            # fresh nonce and timestamp per attempt
            form, headers = self.build_request(fields, unsigned)
            try:
                resp = await self._client.post(path, data=form, headers=headers)
            except httpx.HTTPError as exc:
                reason = f"unreachable: {exc}"
            else:
                if resp.status_code < 500:
                    return self._interpret(path, resp)
                reason = f"returned HTTP {resp.status_code}"

            if attempt == attempts:
                raise CourierTransportError(f"Flash Express {path} {reason}")
            delay = self._backoff[min(attempt - 1, len(self._backoff) - 1)]
            logger.warning(
                "Flash Express %s attempt %d/%d %s (retry in %.1fs)",
                path,
                attempt,
                attempts,
                reason,
                delay,
            )
            await asyncio.sleep(delay)
        raise AssertionError("unreachable")  # pragma: no cover

    def _interpret(self, path: str, resp: httpx.Response) -> Any:
        try:
            body = resp.json()
        except ValueError as exc:
            snippet = resp.text[:200]
            logger.error("Flash Express %s returned non-JSON (HTTP %s): %s", path, resp.status_code, snippet)
            raise CourierAPIError(None, f"non-JSON response (HTTP {resp.status_code})") from exc

        if not isinstance(body, dict):
            raise CourierAPIError(None, "unexpected response shape")

        code = body.get("code")
        if code != SUCCESS_CODE:
            message = body.get("message") or body.get("msg") or "Unknown error"
            logger.warning("Flash Express %s rejected: code=%s message=%s", path, code, message)
            raise CourierAPIError(code, str(message))
        return body.get("data")

    # -- operations ---------------------------------------------------------

    async def create_order(self, order: FlashOrder) -> ShipmentResult:
        """Create a parcel and obtain its tracking number (``pno``). Not retried."""
        fields = order.to_fields()
        fields.setdefault("warehouseNo", self._warehouse_no)
        unsigned: dict[str, str] = {}
        items = order.sub_item_types()
        if items is not None:
            unsigned["subItemTypes"] = json.dumps(items, ensure_ascii=False, separators=(",", ":"))

        data = await self._post("/open/v3/orders", fields, unsigned=unsigned)
        data = data or {}
        logger.info("Flash Express order %s created: pno=%s", order.out_trade_no, data.get("pno"))
        return ShipmentResult(
            tracking_number=str(data.get("pno", "")),
            sort_code=str(data.get("sortCode", "") or ""),
            out_trade_no=order.out_trade_no,
            raw=data,
        )

    async def estimate_rate(
        self,
        src_postal_code: str,
        dst_postal_code: str,
        weight: int,
        *,
        width: int | None = None,
        length: int | None = None,
        height: int | None = None,
        express_category: int = 1,
    ) -> dict[str, Any]:
        """Quote a parcel. Weight in grams."""
        fields: dict[str, Any] = {
            "srcPostalCode": src_postal_code,
            "dstPostalCode": dst_postal_code,
            "weight": weight,
            "expressCategory": express_category,
            "width": width,
            "length": length,
            "height": height,
        }
        data = await self._post("/open/v1/orders/estimate_rate", fields, retry=True)
        return data or {}

    async def track(self, pno: str) -> dict[str, Any]:
        """Route history of a parcel."""
        data = await self._post(f"/open/v1/orders/{pno}/routes", {}, retry=True)
        return data or {}

    async def warehouses(self) -> list[dict[str, Any]]:
        data = await self._post("/open/v1/warehouses", {}, retry=True)
        return list(data or [])

    async def notify_pickup(self, request: PickupRequest) -> dict[str, Any]:
        """Call a courier to collect parcels. Not retried."""
        fields = request.to_fields()
        fields.setdefault("warehouseNo", self._warehouse_no)
        data = await self._post("/open/v1/notify", fields)
        return data or {}

    async def cancel_order(self, pno: str) -> dict[str, Any]:
        data = await self._post(f"/open/v1/orders/{pno}/cancel", {})
        return data or {}

    async def close(self) -> None:
        await self._client.aclose()
