# app/routers/stats_router.py
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from app.services.odoo_client import OdooError
from app.services.stats_service import upsert_session_stats
from app.utils.dependencies import get_odoo
from app.utils.http_errors import upstream_error

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Stats"])


# POST /api/update-stats
@router.post("/update-stats")
async def route_update_stats(payload: Dict[str, Any] = Body(...), odoo=Depends(get_odoo)):
    try:
        return await upsert_session_stats(odoo, payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OdooError as e:
        logger.error("update-stats failed: %s %s", e, e.payload)
        raise upstream_error(e)
