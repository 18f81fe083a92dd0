# app/utils/http_errors.py
from fastapi import HTTPException

from app.services.odoo_client import OdooError


def upstream_error(e: OdooError, status_code: int = 500) -> HTTPException:
    """Odoo failure surfaced to the caller with the upstream message and payload."""
    return HTTPException(status_code=status_code, detail={"message": e.message, "upstream": e.to_detail()})
