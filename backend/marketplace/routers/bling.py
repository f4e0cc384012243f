from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.errors import MarketplaceError
from marketplace.models.category import CategoryResponse
from marketplace.models_sqlalchemy import get_db
from marketplace.models_sqlalchemy.models import User
from marketplace.services.auth import seller_or_admin_required
from marketplace.services.bling_service import BlingService
from marketplace.utils.logger import logger

router = APIRouter(prefix="/api/bling", tags=["bling"])


class BlingConnectRequest(BaseModel):
    client_id: str
    client_secret: str


@router.post("/connect")
async def connect(
    data: BlingConnectRequest,
    current_user: User = Depends(seller_or_admin_required),
    db: Session = Depends(get_db),
):
    return BlingService(db).connect(current_user.id, data.client_id, data.client_secret)


@router.get("/callback")
async def callback(code: str = Query(""), state: str = Query(""), db: Session = Depends(get_db)):
    frontend_url = settings.FRONTEND_URL
    if not code:
        return RedirectResponse(f"{frontend_url}/admin?bling_error=no_code")
    if not state:
        return RedirectResponse(f"{frontend_url}/admin?bling_error=no_state")
    try:
        await BlingService(db).handle_oauth_callback(code, state)
    except MarketplaceError as exc:
        logger.error("Bling OAuth error: %s", exc.message)
        return RedirectResponse(f"{frontend_url}/admin?bling_error=token_exchange_failed")
    return RedirectResponse(f"{frontend_url}/admin?bling_success=true")


@router.get("/status")
async def status(current_user: User = Depends(seller_or_admin_required), db: Session = Depends(get_db)):
    service = BlingService(db)
    return {"configured": service.is_configured(current_user.id), **service.get_connection_status(current_user.id)}


@router.post("/sync/categories")
async def sync_categories(current_user: User = Depends(seller_or_admin_required), db: Session = Depends(get_db)):
    result = await BlingService(db).sync_categories(current_user.id)
    result["data"] = [CategoryResponse.model_validate(c) for c in result["data"]]
    return result
