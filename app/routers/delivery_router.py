# app/routers/delivery_router.py
import html
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from app.services.delivery_service import ALREADY_PROCESSED, DeliveryNotReady, ScanResult, process_scan
from app.utils.dependencies import get_mailer, get_order_repository

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Delivery"])

SCAN_TITLES = {
    "shipped": "✅ Commande marquée comme expédiée",
    "received": "✅ Commande marquée comme livrée",
    ALREADY_PROCESSED: "ℹ️ Commande déjà traitée",
}


def _page(title: str, message: str = "", status_code: int = 200) -> HTMLResponse:
    body = (
        "<html><body style=\"font-family: Arial; text-align:center; margin-top:50px;\">"
        f"<h1>{html.escape(title)}</h1>"
        f"<p>{html.escape(message)}</p>"
        "</body></html>"
    )
    return HTMLResponse(content=body, status_code=status_code)


def _result_page(result: ScanResult) -> HTMLResponse:
    reference = result.order.request_number or str(result.order.platform_count)
    message = f"Référence : {reference}"
    if result.outcome == ALREADY_PROCESSED:
        message = f"{message} (statut : {result.status.value})"
    return _page(SCAN_TITLES[result.outcome], message)


# GET /api/scan?count=&token=
@router.get("/scan", response_class=HTMLResponse)
async def route_scan(
    count: Optional[str] = None,
    token: Optional[str] = None,
    repo=Depends(get_order_repository),
    mailer=Depends(get_mailer),
):
    """Delivery QR code target: one forward step per scan."""
    if not count:
        return _page("Paramètre manquant", "Missing count parameter", 400)
    try:
        platform_count = int(count)
    except ValueError:
        return _page("Paramètre invalide", "Invalid count parameter", 400)

    try:
        result = await process_scan(repo, mailer, platform_count, token)
    except LookupError:
        return _page("Commande introuvable", f"Référence : {platform_count}", 404)
    except PermissionError:
        return _page("Accès refusé", "Lien de suivi invalide", 403)
    except DeliveryNotReady:
        return _page("Commande non facturée", "La livraison n'est pas encore ouverte pour cette commande", 409)
    except Exception:
        logger.exception("Scan failed for order %s", platform_count)
        return _page("Erreur serveur", "", 500)

    return _result_page(result)
