from typing import List, Optional

from fastapi import APIRouter, Query

from marketplace.errors import ValidationFailed
from marketplace.services.shipping_service import DEFAULT_WEIGHT_KG, ShippingService, clean_cep

router = APIRouter(prefix="/api/shipping", tags=["shipping"])


@router.get("/calculate")
async def calculate_shipping(
    cep: Optional[str] = Query(None),
    weight: Optional[float] = Query(None, gt=0),
) -> List[dict]:
    if not cep:
        raise ValidationFailed("CEP is required", code="cep_required")
    cleaned = clean_cep(cep)
    if len(cleaned) != 8:
        raise ValidationFailed("Invalid CEP format", code="invalid_cep")

    options = await ShippingService().calculate_shipping(cleaned, weight or DEFAULT_WEIGHT_KG)
    return [option.to_dict() for option in options]
