# app/services/stats_service.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from app.services.odoo_client import OdooClient

logger = logging.getLogger(__name__)

ANALYTICS_MODEL = "x_analytics"
SESSION_FIELD = "x_studio_session_id_1"

ALLOWED_STEPS = ("start", "battery", "pv", "results", "order")

# Enumerated fields: a value outside its list is dropped
ALLOWED_VALUES = {
    "x_studio_lang": ("fr", "nl", "en"),
    "x_studio_country": ("be", "fr"),
    "x_studio_device": ("desktop", "mobile", "tablet"),
    "x_studio_install_option": ("battery_only", "battery_pv", "none"),
    "x_studio_has_pv": ("yes", "no"),
    "x_studio_source": ("ads", "direct", "organic", "referral", "unknown"),
}

# Free fields, passed through as sent
PASSTHROUGH_FIELDS = (
    "x_studio_consumption_input",
    "x_studio_know_conso",
    "x_studio_battery_model",
    "x_studio_battery_count",
    "x_studio_pose_type",
    "x_studio_gain_eur",
    "x_studio_payback_year",
    "x_studio_invest_ttc",
    "x_studio_command_sent",
)


def _odoo_datetime(now: datetime) -> str:
    return now.strftime("%Y-%m-%d %H:%M:%S")


def _clicked(payload: Dict[str, Any]) -> bool:
    # JSON true is not a click
    value = payload.get("increment_clicked_order")
    return not isinstance(value, bool) and value == 1


def build_update_values(payload: Dict[str, Any], record: Dict[str, Any]) -> Dict[str, Any]:
    """Recognised field changes against `record` (event log excluded)."""
    values: Dict[str, Any] = {}

    step = payload.get("step")
    if step in ALLOWED_STEPS:
        values["x_studio_step_reached"] = step

    if payload.get("completed") is True:
        values["x_studio_order_sent"] = True

    if _clicked(payload):
        values["x_studio_clicked_order_count"] = int(record.get("x_studio_clicked_order_count") or 0) + 1

    for field, allowed in ALLOWED_VALUES.items():
        if field in payload and payload[field] in allowed:
            values[field] = payload[field]

    for field in PASSTHROUGH_FIELDS:
        if field in payload:
            values[field] = payload[field]

    if "x_studio_pv_panels" in payload:
        values["x_studio_pv_panels"] = str(payload["x_studio_pv_panels"])

    return values


def event_log_line(payload: Dict[str, Any], now: datetime) -> str:
    step = payload.get("step")
    return (
        f"[{now.isoformat()}] "
        f"step={'' if step is None else step} "
        f"completed={'1' if payload.get('completed') is True else '0'} "
        f"clicked={'1' if _clicked(payload) else '0'}"
    )


async def upsert_session_stats(odoo: OdooClient, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create or update the `x_analytics` record of a funnel session.

    Returns {"status": "created"|"success"|"noop", "record_id"}. Every call
    extends the event log, including calls that change nothing else.
    """
    session_id = payload.get(SESSION_FIELD)
    if not session_id:
        raise ValueError("Missing session_id")

    session = await odoo.authenticate()
    found = await session.search_read(
        ANALYTICS_MODEL,
        [[SESSION_FIELD, "=", session_id]],
        ["id", "x_studio_clicked_order_count", "x_studio_event_log"],
        limit=1,
    )
    record = found[0] if found else None
    now = datetime.now(timezone.utc)

    if record is None:
        values = {
            "x_name": f"Session {session_id}",
            SESSION_FIELD: session_id,
            "x_studio_step_reached": "start",
            "x_studio_order_sent": False,
            "x_studio_clicked_order_count": 0,
        }
        # the first call carries the same recognised fields as any later one
        values.update(build_update_values(payload, {}))
        values["x_studio_event_log"] = f"[init]\n{event_log_line(payload, now)}"
        values["x_studio_event_datetime"] = _odoo_datetime(now)

        record_id = await session.create(ANALYTICS_MODEL, values)
        logger.info("Analytics session %s created (record %s)", session_id, record_id)
        return {"status": "created", "record_id": record_id}

    record_id = record["id"]
    values = build_update_values(payload, record)
    status = "success" if values else "noop"

    previous_log = str(record.get("x_studio_event_log") or "")
    line = event_log_line(payload, now)
    values["x_studio_event_log"] = f"{previous_log}\n{line}" if previous_log else line
    values["x_studio_event_datetime"] = _odoo_datetime(now)

    await session.write(ANALYTICS_MODEL, [record_id], values)
    logger.debug("Analytics session %s updated: %s", session_id, status)
    return {"status": status, "record_id": record_id}
