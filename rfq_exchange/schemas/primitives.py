from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


# --- Numeric primitives ---
Money = Annotated[Decimal, Field(max_digits=18, decimal_places=2)]
# request-side bounds match the bid and tender Numeric columns
Price = Annotated[Decimal, Field(max_digits=16, decimal_places=2)]
Quantity = Annotated[Decimal, Field(max_digits=16, decimal_places=4)]


# --- Sealed amounts ---
class SealedAmount(BaseModel):
    """
    The amount exists but is not readable by the caller yet.
    """
    state: Literal["sealed"] = "sealed"


class RevealedAmount(BaseModel):
    state: Literal["revealed"] = "revealed"
    amount: Money


AmountView = Annotated[Union[SealedAmount, RevealedAmount], Field(discriminator="state")]


class PageMeta(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, *, page: int, limit: int, total: int) -> "PageMeta":
        return cls(page=page, limit=limit, total=total, pages=(total + limit - 1) // limit if limit else 0)
