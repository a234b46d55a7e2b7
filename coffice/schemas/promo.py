"""Promo code validation schemas."""

from typing import Literal

from pydantic import Field

from ._strict_base import StrictModel, StrictRequestModel


class PromoValidateRequest(StrictRequestModel):
    code: str = Field(..., min_length=1, max_length=50)
    order_amount: int = Field(..., ge=0)
    applicable_to: Literal["reservation", "subscription", "domiciliation"] = "reservation"


class PromoValidateResponse(StrictModel):
    code: str
    discount_amount: int
    amount_before: int
    amount_after: int
