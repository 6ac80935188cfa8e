#rfq_exchange/schemas/bids.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from rfq_exchange.schemas.primitives import AmountView, PageMeta, Price, Quantity


class BidSubmitRequest(BaseModel):
    """
    Positivity of price, quantity and timeline is enforced by the submission
    workflow after its state checks.
    """
    model_config = ConfigDict(extra="forbid")

    unit_price: Price
    quantity: Quantity
    delivery_timeline_days: int
    vat_registered: bool = False
    warranty_months: int = 0
    warranty_terms: Optional[str] = Field(default=None, max_length=2000)
    remarks: Optional[str] = Field(default=None, max_length=4000)
    technical_specifications: Optional[str] = Field(default=None, max_length=8000)
    delivery_date: Optional[datetime] = None


class BidAmendRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    unit_price: Optional[Price] = None
    quantity: Optional[Quantity] = None
    delivery_timeline_days: Optional[int] = None
    vat_registered: Optional[bool] = None
    warranty_months: Optional[int] = None
    warranty_terms: Optional[str] = Field(default=None, max_length=2000)
    remarks: Optional[str] = Field(default=None, max_length=4000)
    technical_specifications: Optional[str] = Field(default=None, max_length=8000)
    delivery_date: Optional[datetime] = None


class BidCancelRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reason: Optional[str] = Field(default=None, max_length=2000)


class BidResponse(BaseModel):
    bidId: str
    tenderId: str
    vendorId: str
    status: str

    # Sealed until the tender unseals, except for the bid's own vendor
    unitPrice: AmountView
    subtotal: AmountView
    vatAmount: AmountView
    totalPrice: AmountView

    quantity: Decimal
    vatRegistered: bool
    vatRate: Decimal

    deliveryTimelineDays: int
    deliveryDateIso: Optional[str] = None
    warrantyMonths: int
    warrantyTerms: Optional[str] = None
    remarks: Optional[str] = None
    technicalSpecifications: Optional[str] = None

    revealed: bool
    withdrawnAtIso: Optional[str] = None
    withdrawalReason: Optional[str] = None
    createdAtIso: str
    updatedAtIso: str


class TenderBidsResponse(BaseModel):
    tenderId: str
    sealed: bool
    bids: List[BidResponse]


class VendorBidStats(BaseModel):
    total: int
    pending: int
    won: int
    lost: int
    withdrawn: int


class VendorBidListResponse(BaseModel):
    bids: List[BidResponse]
    stats: VendorBidStats
    pagination: PageMeta


class CancelResponse(BaseModel):
    bidId: str
    tenderId: str
    mode: Literal["cancelled", "withdrawn"]
