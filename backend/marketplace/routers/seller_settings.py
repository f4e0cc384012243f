from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from marketplace.models_sqlalchemy import get_db
from marketplace.models_sqlalchemy.models import User
from marketplace.services.auth import seller_required
from marketplace.services.seller_settings_service import SellerSettingsService

router = APIRouter(prefix="/api", tags=["seller-settings"])


@router.get("/seller/mercadopago/oauth-url")
async def mercado_pago_oauth_url(current_user: User = Depends(seller_required), db: Session = Depends(get_db)):
    return SellerSettingsService(db).get_oauth_url(current_user.id)


@router.post("/seller/mercadopago/disconnect")
async def mercado_pago_disconnect(current_user: User = Depends(seller_required), db: Session = Depends(get_db)):
    return SellerSettingsService(db).disconnect(current_user.id)


@router.get("/mercadopago/callback")
async def mercado_pago_callback(
    code: str = Query(""),
    state: str = Query(""),
    db: Session = Depends(get_db),
):
    """OAuth redirect target; always sends the browser back to the seller profile."""
    url = await SellerSettingsService(db).handle_oauth_callback(code, state)
    return RedirectResponse(url)
