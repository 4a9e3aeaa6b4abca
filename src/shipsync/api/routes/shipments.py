"""Shipment endpoints: thin wrappers over the Flash Express client."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Path, Request, status
from pydantic import BaseModel, Field

from shipsync.api.routes import health
from shipsync.couriers.flash_express import (
    FlashExpressClient,
    FlashOrder,
    OrderItem,
    PickupRequest,
)
from shipsync.errors import ConfigurationError

router = APIRouter()

__all__ = ["router", "get_flash_client"]

logger = logging.getLogger(__name__)

ParcelNo = Annotated[str, Path(min_length=1, max_length=64, pattern=r"^[A-Za-z0-9]+$")]


def get_flash_client(request: Request) -> FlashExpressClient:
    """Client built at startup, or ConfigurationError when credentials are missing."""
    client = getattr(request.app.state, "flash_client", None)
    if client is None:
        raise ConfigurationError("shipping provider credentials not configured")
    return client  # type: ignore[no-any-return]


class ItemIn(BaseModel):
    name: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)
    weight_size: str = ""
    color: str = ""


class AddressIn(BaseModel):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    province: str = Field(min_length=1)
    district: str = Field(min_length=1)
    subdistrict: str = ""
    postal_code: str = Field(min_length=5, max_length=5)
    address: str = Field(min_length=1)


class ShipmentIn(BaseModel):
    """Order data sent by the back-office order workflow."""

    order_number: str = Field(min_length=1)
    sender: AddressIn
    recipient: AddressIn
    recipient_home_phone: str = ""
    weight_kg: float = Field(ge=0.001)  # at least 1 g once converted
    width_cm: int | None = Field(default=None, ge=0)
    length_cm: int | None = Field(default=None, ge=0)
    height_cm: int | None = Field(default=None, ge=0)
    article_category: int = 1
    express_category: int = 1
    insured: bool = False
    insure_declare_value: int | None = Field(default=None, ge=0)
    cod_enabled: bool = False
    cod_amount: int | None = Field(default=None, ge=0)
    remark: str = ""
    items: list[ItemIn] = []

    def to_order(self) -> FlashOrder:
        return FlashOrder(
            out_trade_no=self.order_number,
            src_name=self.sender.name,
            src_phone=self.sender.phone,
            src_province_name=self.sender.province,
            src_city_name=self.sender.district,
            src_district_name=self.sender.subdistrict,
            src_postal_code=self.sender.postal_code,
            src_detail_address=self.sender.address,
            dst_name=self.recipient.name,
            dst_phone=self.recipient.phone,
            dst_home_phone=self.recipient_home_phone,
            dst_province_name=self.recipient.province,
            dst_city_name=self.recipient.district,
            dst_district_name=self.recipient.subdistrict,
            dst_postal_code=self.recipient.postal_code,
            dst_detail_address=self.recipient.address,
            weight=round(self.weight_kg * 1000),
            width=self.width_cm,
            length=self.length_cm,
            height=self.height_cm,
            article_category=self.article_category,
            express_category=self.express_category,
            insured=self.insured,
            insure_declare_value=self.insure_declare_value,
            cod_enabled=self.cod_enabled,
            cod_amount=self.cod_amount,
            remark=self.remark,
            items=tuple(
                OrderItem(name=i.name, quantity=i.quantity, weight_size=i.weight_size, color=i.color)
                for i in self.items
            ),
        )


class ShipmentOut(BaseModel):
    provider: str
    tracking_number: str
    sort_code: str | None = None
    out_trade_no: str | None = None
    message: str


class EstimateIn(BaseModel):
    src_postal_code: str = Field(min_length=5, max_length=5)
    dst_postal_code: str = Field(min_length=5, max_length=5)
    weight_kg: float = Field(ge=0.001)  # at least 1 g once converted
    width_cm: int | None = None
    length_cm: int | None = None
    height_cm: int | None = None
    express_category: int = 1


class PickupIn(BaseModel):
    contact_name: str = Field(min_length=1)
    contact_phone: str = Field(min_length=1)
    province: str = Field(min_length=1)
    district: str = Field(min_length=1)
    subdistrict: str = ""
    postal_code: str = Field(min_length=5, max_length=5)
    address: str = Field(min_length=1)
    estimate_parcel_number: int = Field(default=1, ge=1)
    remark: str = ""


@router.post(
    "/shipments",
    response_model=ShipmentOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a courier order and obtain a tracking number",
    operation_id="create_shipment",
)
async def create_shipment(shipment: ShipmentIn, request: Request) -> ShipmentOut:
    client = get_flash_client(request)
    result = await client.create_order(shipment.to_order())
    health.record_courier_call()
    return ShipmentOut(
        **result.to_dict(),
        message=f"Tracking number {result.tracking_number} created for order {shipment.order_number}",
    )


@router.post(
    "/shipments/estimate",
    summary="Estimate shipping rate",
    operation_id="estimate_shipment",
)
async def estimate_shipment(estimate: EstimateIn, request: Request) -> dict[str, Any]:
    client = get_flash_client(request)
    data = await client.estimate_rate(
        estimate.src_postal_code,
        estimate.dst_postal_code,
        round(estimate.weight_kg * 1000),
        width=estimate.width_cm,
        length=estimate.length_cm,
        height=estimate.height_cm,
        express_category=estimate.express_category,
    )
    health.record_courier_call()
    return {"provider": "flash_express", "estimate": data}


@router.get(
    "/shipments/{pno}/routes",
    summary="Tracking history of a parcel",
    operation_id="track_shipment",
)
async def track_shipment(pno: ParcelNo, request: Request) -> dict[str, Any]:
    client = get_flash_client(request)
    data = await client.track(pno)
    health.record_courier_call()
    return {"provider": "flash_express", "tracking_number": pno, "tracking": data}


@router.post(
    "/shipments/{pno}/cancel",
    summary="Cancel a parcel before pickup",
    operation_id="cancel_shipment",
)
async def cancel_shipment(pno: ParcelNo, request: Request) -> dict[str, Any]:
    client = get_flash_client(request)
    data = await client.cancel_order(pno)
    health.record_courier_call()
    logger.info("Parcel %s cancelled", pno)
    return {"provider": "flash_express", "tracking_number": pno, "result": data}


@router.get(
    "/warehouses",
    summary="Pickup warehouses registered with the courier",
    operation_id="list_warehouses",
)
async def list_warehouses(request: Request) -> dict[str, Any]:
    client = get_flash_client(request)
    data = await client.warehouses()
    health.record_courier_call()
    return {"provider": "flash_express", "warehouses": data}


@router.post(
    "/pickups",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Call a courier to collect parcels",
    operation_id="request_pickup",
)
async def request_pickup(pickup: PickupIn, request: Request) -> dict[str, Any]:
    client = get_flash_client(request)
    data = await client.notify_pickup(
        PickupRequest(
            contact_name=pickup.contact_name,
            contact_phone=pickup.contact_phone,
            province_name=pickup.province,
            city_name=pickup.district,
            district_name=pickup.subdistrict,
            postal_code=pickup.postal_code,
            detail_address=pickup.address,
            estimate_parcel_number=pickup.estimate_parcel_number,
            remark=pickup.remark,
        )
    )
    health.record_courier_call()
    return {"provider": "flash_express", "pickup": data}
