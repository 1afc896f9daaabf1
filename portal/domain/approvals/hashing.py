"""Tamper-evidence hashes over the fields a signer agreed to"""

import hashlib
import json
from typing import Optional

from ...utils.timezone import to_org_date_string


def _money(value) -> Optional[str]:
    return None if value is None else f"{value:.2f}"


def work_order_fingerprint(work_order) -> dict:
    return {
        "eventName": work_order.event_name,
        "eventDate": to_org_date_string(work_order.event_date),
        "venue": work_order.venue,
        "eventType": work_order.event_type,
        "scopeServiceIds": sorted(work_order.scope_service_ids or []),
        "customScope": work_order.custom_scope,
        "estimateType": work_order.estimate_type,
        "estimatedHoursMin": _money(work_order.estimated_hours_min),
        "estimatedHoursMax": _money(work_order.estimated_hours_max),
        "estimatedHoursFixed": _money(work_order.estimated_hours_fixed),
        "estimatedHoursNte": _money(work_order.estimated_hours_nte),
        "hourlyRateSnapshot": _money(work_order.hourly_rate_snapshot),
    }


def compute_approval_hash(work_order, change_order=None) -> str:
    """SHA-256 hex over canonical JSON of the signed content"""
    content = work_order_fingerprint(work_order)
    if change_order is not None:
        content["changeOrder"] = {
            "id": change_order.id,
            "additionalHours": _money(change_order.additional_hours),
            "reason": change_order.reason,
            "reasonOther": change_order.reason_other,
        }
    canonical = json.dumps(content, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
