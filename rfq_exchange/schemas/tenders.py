#rfq_exchange/schemas/tenders.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from rfq_exchange.schemas.primitives import PageMeta, Price, Quantity


class LineItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=256)
    quantity: Quantity
    unit: str = Field(default="units", max_length=32)
    specifications: Optional[str] = Field(default=None, max_length=4000)


class TenderCreateRequest(BaseModel):
    """
    Amounts and dates are checked by the tender repository, not here, so that
    every refusal carries the same error shape.
    """
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., max_length=256)
    description: str
    items: List[LineItem]
    category: str
    closing_date: datetime
    status: Literal["draft", "open"] = "open"

    budget_price: Optional[Price] = None
    show_budget: bool = False

    sealed: bool = True
    private: bool = False
    invited_vendor_ids: List[str] = Field(default_factory=list)

    delivery_location: Optional[str] = Field(default=None, max_length=256)
    delivery_deadline: Optional[datetime] = None
    terms: Optional[str] = None

    # saved as a draft blueprint instead of a live tender
    is_template: bool = False
    template_name: Optional[str] = Field(default=None, max_length=256)


class TenderPatchRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, max_length=256)
    description: Optional[str] = None
    items: Optional[List[LineItem]] = None
    category: Optional[str] = None
    closing_date: Optional[datetime] = None
    budget_price: Optional[Price] = None
    show_budget: Optional[bool] = None
    sealed: Optional[bool] = None
    private: Optional[bool] = None
    invited_vendor_ids: Optional[List[str]] = None
    delivery_location: Optional[str] = Field(default=None, max_length=256)
    delivery_deadline: Optional[datetime] = None
    terms: Optional[str] = None


class AwardRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    bid_id: uuid.UUID
    remarks: Optional[str] = Field(default=None, max_length=2000)


class LineItemOut(BaseModel):
    name: str
    quantity: str
    unit: str
    specifications: Optional[str] = None


class TenderResponse(BaseModel):
    tenderId: str
    referenceCode: str
    title: str
    description: str
    items: List[LineItemOut]
    category: str
    status: str

    # hidden unless show_budget or caller is owner/admin
    budgetPrice: Optional[Decimal] = None
    showBudget: bool

    sealed: bool
    private: bool
    invitedVendorIds: Optional[List[str]] = None

    closingDateIso: str
    isExpired: bool
    acceptingBids: bool
    bidCount: int

    createdBy: str
    organization: Optional[str] = None

    deliveryLocation: Optional[str] = None
    deliveryDeadlineIso: Optional[str] = None
    terms: Optional[str] = None

    isTemplate: bool = False
    templateName: Optional[str] = None

    awardedVendorId: Optional[str] = None
    awardedBidId: Optional[str] = None
    awardedAtIso: Optional[str] = None
    awardRemarks: Optional[str] = None

    bidsRevealedAtIso: Optional[str] = None
    cancelledAtIso: Optional[str] = None
    createdAtIso: str
    updatedAtIso: str


class TenderListResponse(BaseModel):
    tenders: List[TenderResponse]
    pagination: PageMeta


class TemplateListResponse(BaseModel):
    templates: List[TenderResponse]


class TenderRemoveResponse(BaseModel):
    tenderId: str
    outcome: Literal["cancelled", "deleted"]


class SweepResponse(BaseModel):
    closed: int
    tenderIds: List[str]
