# app/services/odoo_client.py
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import (
    ODOO_DB,
    ODOO_PASSWORD,
    ODOO_REPORT_TIMEOUT,
    ODOO_TIMEOUT,
    ODOO_URL,
    ODOO_USER,
)

logger = logging.getLogger(__name__)


class OdooError(Exception):
    """Odoo unreachable, refused the credentials, or answered with a JSON-RPC error."""

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.payload = payload

    def to_detail(self):
        return self.payload if self.payload is not None else self.message


class OdooAuthError(OdooError):
    pass


def _rpc_body(params: Dict) -> Dict:
    return {"jsonrpc": "2.0", "method": "call", "params": params, "id": int(time.time() * 1000)}


# --------------------------
# Authenticated session (one per lifecycle operation)
# --------------------------
class OdooSession:
    def __init__(self, http: httpx.AsyncClient, base_url: str, session_id: str):
        self._http = http
        self._base_url = base_url
        self.cookie_header = f"session_id={session_id}"

    async def call_kw(self, model: str, method: str, args: List, kwargs: Optional[Dict] = None) -> Any:
        try:
            resp = await self._http.post(
                f"{self._base_url}/web/dataset/call_kw",
                json=_rpc_body({"model": model, "method": method, "args": args, "kwargs": kwargs or {}}),
                headers={"Cookie": self.cookie_header},
                timeout=ODOO_TIMEOUT,
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise OdooError(f"Odoo {model}.{method} failed: {e}")
        except ValueError:
            raise OdooError(f"Odoo {model}.{method} returned a non-JSON response")

        if data.get("error"):
            raise OdooError(f"Odoo {model}.{method} returned an error", payload=data["error"])
        return data.get("result")

    async def create(self, model: str, values: Dict) -> int:
        record_id = await self.call_kw(model, "create", [values])
        if not record_id:
            raise OdooError(f"{model} not created")
        return record_id

    async def read(self, model: str, ids: List[int], fields: List[str]) -> List[Dict]:
        result = await self.call_kw(model, "read", [ids], {"fields": fields})
        return result if isinstance(result, list) else []

    async def read_one(self, model: str, record_id: int, fields: List[str]) -> Optional[Dict]:
        records = await self.read(model, [record_id], fields)
        return records[0] if records else None

    async def write(self, model: str, ids: List[int], values: Dict) -> bool:
        return bool(await self.call_kw(model, "write", [ids, values]))

    async def search_read(self, model: str, domain: List, fields: List[str], limit: Optional[int] = None) -> List[Dict]:
        kwargs = {"fields": fields}
        if limit:
            kwargs["limit"] = limit
        result = await self.call_kw(model, "search_read", [domain], kwargs)
        return result if isinstance(result, list) else []

    async def get_portal_url(self, order_id: int) -> Optional[str]:
        raw = await self.call_kw("sale.order", "get_portal_url", [order_id])
        return f"{self._base_url}{raw}" if raw else None

    async def render_report(self, report_name: str, record_id: int) -> bytes:
        url = f"{self._base_url}/report/pdf/{report_name}/{record_id}"
        try:
            resp = await self._http.get(
                url,
                headers={"Cookie": self.cookie_header},
                timeout=ODOO_REPORT_TIMEOUT,
                follow_redirects=False,
            )
        except httpx.HTTPError as e:
            raise OdooError(f"Odoo report {report_name}/{record_id} failed: {e}")

        content_type = resp.headers.get("content-type", "")
        if resp.status_code >= 400 or "application/pdf" not in content_type:
            # Odoo answers with the HTML login page when the session is not accepted
            raise OdooError(
                "Odoo did not return a PDF",
                payload={
                    "url": url,
                    "status": resp.status_code,
                    "content_type": content_type,
                    "preview": resp.content[:400].decode("utf-8", errors="replace"),
                },
            )
        return resp.content


# --------------------------
# Client: credentials + transport, no cached session
# --------------------------
class OdooClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        url: Optional[str] = None,
        db: Optional[str] = None,
        login: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self._http = http
        self.url = (url or ODOO_URL or "").rstrip("/")
        self.db = db or ODOO_DB
        self.login = login or ODOO_USER
        self.password = password or ODOO_PASSWORD

    async def authenticate(self) -> OdooSession:
        """Open a fresh Odoo session; callers keep it for one operation only."""
        if not self.url or not self.db or not self.login or not self.password:
            raise OdooError("Odoo env variables missing")

        try:
            resp = await self._http.post(
                f"{self.url}/web/session/authenticate",
                json=_rpc_body({"db": self.db, "login": self.login, "password": self.password}),
                headers={"Content-Type": "application/json"},
                timeout=ODOO_TIMEOUT,
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise OdooError(f"Odoo authentication request failed: {e}")
        except ValueError:
            raise OdooError("Odoo authentication returned a non-JSON response")

        if data.get("error"):
            raise OdooAuthError("Odoo authenticate JSON-RPC error", payload=data["error"])

        session_id = resp.cookies.get("session_id")
        if not session_id:
            raise OdooAuthError("Odoo session not returned")

        logger.debug("Odoo session opened for %s", self.login)
        return OdooSession(self._http, self.url, session_id)
