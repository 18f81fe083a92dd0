# app/routers/requests_router.py
import logging

from fastapi import APIRouter, Depends, HTTPException

from app.schemas.order_schemas import CreateLeadRequest, CreateLeadResponse, SimulatorRequest, SimulatorResponse
from app.services.intake_service import create_lead, create_simulator_request
from app.services.odoo_client import OdooError
from app.utils.dependencies import get_mailer, get_odoo, get_order_repository, get_storage
from app.utils.http_errors import upstream_error

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Requests"])


# POST /api/create-lead
@router.post("/create-lead", response_model=CreateLeadResponse)
async def route_create_lead(
    payload: CreateLeadRequest,
    repo=Depends(get_order_repository),
    odoo=Depends(get_odoo),
    storage=Depends(get_storage),
    mailer=Depends(get_mailer),
):
    """
    Create partner, opportunity and quotation in Odoo for a simulator lead,
    then store the order and send the unsigned quotation.
    """
    try:
        return await create_lead(payload, repo, odoo, storage, mailer)
    except OdooError as e:
        logger.error("create-lead failed in Odoo: %s %s", e, e.payload)
        raise upstream_error(e)


# POST /api/create-request-simulator
@router.post("/create-request-simulator", response_model=SimulatorResponse)
async def route_create_simulator_request(payload: SimulatorRequest, repo=Depends(get_order_repository)):
    try:
        return await create_simulator_request(payload, repo)
    except Exception as e:
        logger.exception("Simulator request not stored")
        raise HTTPException(status_code=500, detail=f"firestore_error: {e}")
