#rfq_exchange/models/enums.py
from __future__ import annotations
from enum import Enum


class ParticipantRole(str, Enum):
    BUYER = "BUYER"
    VENDOR = "VENDOR"
    ADMIN = "ADMIN"


class TenderStatus(str, Enum):
    draft = "draft"
    open = "open"
    closed = "closed"
    awarded = "awarded"
    cancelled = "cancelled"


TERMINAL_TENDER_STATUSES = frozenset({TenderStatus.awarded.value, TenderStatus.cancelled.value})


class BidStatus(str, Enum):
    pending = "pending"
    under_review = "under_review"
    won = "won"
    lost = "lost"
    withdrawn = "withdrawn"


class TenderCategory(str, Enum):
    it_electronics = "IT & Electronics"
    construction = "Construction & Raw Materials"
    office_stationery = "Office Stationery"
    vehicles = "Vehicles & Spare Parts"
    furniture = "Furniture"
    medical_equipment = "Medical Equipment"
    catering = "Catering & Food"
    cleaning = "Cleaning & Maintenance"
    security_services = "Security Services"
    printing = "Printing & Publishing"
    consulting = "Consulting Services"
    other = "Other"


class NotificationKind(str, Enum):
    bid_received = "bid_received"
    bid_submitted = "bid_submitted"
    tender_awarded = "tender_awarded"
    tender_lost = "tender_lost"
    private_invite = "private_invite"
    tender_closed = "tender_closed"
