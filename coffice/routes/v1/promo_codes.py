# coffice/routes/v1/promo_codes.py
"""Promo code routes - API v1"""

from fastapi import APIRouter, Depends

from ...api.dependencies import get_current_user, get_promotion_ledger_service
from ...core.exceptions import DomainException
from ...models.user import User
from ...schemas.promo import PromoValidateRequest, PromoValidateResponse
from ...services.promotion_ledger_service import PromotionLedgerService
from .reservations import handle_domain_exception

router = APIRouter(tags=["promo-codes-v1"])


@router.post("/validate", response_model=PromoValidateResponse)
def validate_promo_code(
    payload: PromoValidateRequest,
    current_user: User = Depends(get_current_user),
    service: PromotionLedgerService = Depends(get_promotion_ledger_service),
) -> PromoValidateResponse:
    """Check a code against an order amount without consuming a use."""
    try:
        quote = service.validate_promo_code(
            payload.code,
            payload.order_amount,
            payload.applicable_to,
            user_id=current_user.id,
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return PromoValidateResponse(
        code=quote.code,
        discount_amount=quote.discount_amount,
        amount_before=quote.amount_before,
        amount_after=quote.amount_after,
    )
