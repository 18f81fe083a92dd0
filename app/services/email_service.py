# app/services/email_service.py
import base64
import html
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import httpx
import resend
from starlette.concurrency import run_in_threadpool

from app.core.config import DOWNLOAD_TIMEOUT, EMAIL_FROM, EMAIL_REPLY_TO, LEGAL_ATTACHMENTS, RESEND_API_KEY

logger = logging.getLogger(__name__)


@dataclass
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"

    def to_resend(self) -> dict:
        return {
            "filename": self.filename,
            "content": base64.b64encode(self.content).decode("ascii"),
            "content_type": self.content_type,
        }


class Mailer:
    """Transactional email through Resend."""

    def __init__(self, api_key: Optional[str] = None, sender: str = EMAIL_FROM, reply_to: str = EMAIL_REPLY_TO):
        self.api_key = api_key or RESEND_API_KEY
        self.sender = sender
        self.reply_to = reply_to

    def _send(self, params: dict):
        resend.api_key = self.api_key
        return resend.Emails.send(params)

    async def send(self, to: str, subject: str, body_html: str, attachments: Sequence[Attachment] = ()) -> None:
        if not self.api_key:
            raise RuntimeError("RESEND_API_KEY is not set")
        if not to:
            raise ValueError("Recipient is empty")

        params = {
            "from": self.sender,
            "to": [to],
            "reply_to": self.reply_to,
            "subject": subject,
            "html": body_html,
        }
        if attachments:
            params["attachments"] = [a.to_resend() for a in attachments]

        await run_in_threadpool(self._send, params)
        logger.info("Email '%s' sent to %s (%d attachments)", subject, to, len(attachments))


async def download_attachment(http: httpx.AsyncClient, filename: str, url: str) -> Optional[Attachment]:
    """Best-effort download; None when the document cannot be fetched."""
    try:
        resp = await http.get(url, timeout=DOWNLOAD_TIMEOUT, follow_redirects=True)
    except httpx.HTTPError as e:
        logger.warning("Attachment %s download failed: %s", filename, e)
        return None
    if resp.status_code >= 400:
        logger.warning("Attachment %s download failed: HTTP %s", filename, resp.status_code)
        return None
    content_type = resp.headers.get("content-type", "application/pdf").split(";")[0]
    return Attachment(filename=filename, content=resp.content, content_type=content_type)


async def fetch_legal_attachments(
    http: httpx.AsyncClient, documents: Sequence[Tuple[str, str]] = None
) -> List[Attachment]:
    # one at a time, missing documents are skipped
    attachments = []
    for filename, url in (LEGAL_ATTACHMENTS if documents is None else documents):
        attachment = await download_attachment(http, filename.strip(), url.strip())
        if attachment:
            attachments.append(attachment)
    return attachments


# --------------------------
# Templates
# --------------------------
def _wrap(*paragraphs: str) -> str:
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    return f"{body}<p>Bien cordialement,<br>L'équipe Wenergy</p>"


def quotation_email(firstname: str, reference: str, portal_url: Optional[str]) -> Tuple[str, str]:
    link = html.escape(portal_url or "")
    subject = f"Votre devis Wenergy – Référence {reference}"
    body = _wrap(
        f"Bonjour {html.escape(firstname)},",
        "Nous vous remercions pour votre demande auprès de Wenergy.",
        "Vous trouverez en pièce jointe votre devis détaillé (non signé) relatif à votre simulation.",
        f"Pour accepter votre devis et finaliser votre commande, signez-le en ligne via le lien sécurisé : "
        f'<a href="{link}">{link}</a>',
        "Après signature, vous pourrez procéder au paiement sécurisé.",
    )
    return subject, body


def confirmation_email(firstname: str, reference: str) -> Tuple[str, str]:
    subject = f"Confirmation de votre commande Wenergy – Référence {reference}"
    body = _wrap(
        f"Bonjour {html.escape(firstname)},",
        "Nous avons bien reçu votre paiement, merci pour votre confiance.",
        "Vous trouverez en pièces jointes votre devis signé, votre facture ainsi que les documents annexes "
        "(conditions générales de vente, fiche de rétractation et fiche technique).",
        "Nous vous informerons dès l'expédition de votre commande.",
    )
    return subject, body


def fulfillment_email(platform_count: int, reference: str, client_name: str, work_type: str) -> Tuple[str, str]:
    subject = f"Nouvelle commande payée #{platform_count} – {reference}"
    body = _wrap(
        f"Commande #{platform_count} ({html.escape(reference)}) payée par {html.escape(client_name)}.",
        f"Travaux : {html.escape(work_type)}.",
        "Le bon de livraison est joint ; scannez son lien à l'expédition puis à la réception.",
    )
    return subject, body


def shipped_email(firstname: str, reference: str) -> Tuple[str, str]:
    subject = f"Votre commande Wenergy a été expédiée – Référence {reference}"
    body = _wrap(
        f"Bonjour {html.escape(firstname)},",
        "Bonne nouvelle : votre commande vient d'être expédiée.",
    )
    return subject, body


def received_email(firstname: str, reference: str) -> Tuple[str, str]:
    subject = f"Votre commande Wenergy a été livrée – Référence {reference}"
    body = _wrap(
        f"Bonjour {html.escape(firstname)},",
        "Votre commande a bien été livrée. Notre équipe reste à votre disposition pour toute question.",
    )
    return subject, body
