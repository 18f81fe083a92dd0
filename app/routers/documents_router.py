# app/routers/documents_router.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from app.schemas.order_schemas import SavePdfResponse
from app.services.documents_service import get_paid_quotation_pdf, save_quotation_pdf
from app.services.odoo_client import OdooError
from app.utils.dependencies import get_odoo, get_order_repository, get_storage
from app.utils.http_errors import upstream_error

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Documents"])


# GET /api/confirm-payment?count=&email=
@router.get("/confirm-payment")
async def route_confirm_payment(
    count: int = Query(...),
    email: str = Query(...),
    repo=Depends(get_order_repository),
    odoo=Depends(get_odoo),
):
    """Quotation PDF, available once the order is paid."""
    try:
        content, filename = await get_paid_quotation_pdf(repo, odoo, count, email)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except OdooError as e:
        logger.error("confirm-payment failed for order %s: %s", count, e)
        raise upstream_error(e)

    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"inline; filename={filename}"},
    )


# GET /api/save-pdf?count=&email=
@router.get("/save-pdf", response_model=SavePdfResponse)
async def route_save_pdf(
    count: int = Query(...),
    email: str = Query(...),
    repo=Depends(get_order_repository),
    odoo=Depends(get_odoo),
    storage=Depends(get_storage),
):
    try:
        return await save_quotation_pdf(repo, odoo, storage, count, email)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except OdooError as e:
        logger.error("save-pdf failed for order %s: %s", count, e)
        raise upstream_error(e)
