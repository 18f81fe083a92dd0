# app/routers/system_router.py
import logging

from fastapi import APIRouter, Depends

from app.services.odoo_client import OdooAuthError, OdooError
from app.utils.dependencies import get_odoo
from app.utils.http_errors import upstream_error

logger = logging.getLogger(__name__)

router = APIRouter(tags=["System"])


# GET /api/odoo-login-test
@router.get("/odoo-login-test")
async def route_odoo_login_test(odoo=Depends(get_odoo)):
    try:
        await odoo.authenticate()
    except OdooAuthError as e:
        logger.warning("Odoo login test refused: %s", e)
        raise upstream_error(e, status_code=401)
    except OdooError as e:
        logger.error("Odoo login test failed: %s", e)
        raise upstream_error(e)
    return {"ok": True, "db": odoo.db, "login": odoo.login}
