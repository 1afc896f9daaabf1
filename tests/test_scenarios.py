"""Whole-lifecycle flows: draft through paid, and the rules that hold at every stage"""

import pytest

from helpers import (
    SIGNATURE,
    approve_work_order,
    completed_work_order,
    create_work_order,
    log_hours,
    payment_event,
    signed_webhook,
    submit,
)
from portal.domain.approvals.repository import ApprovalRepository
from portal.domain.invoices.repository import InvoiceRepository
from portal.models import Approval, Organization
from portal.utils.timezone import utcnow


def work_order_in(client, org, status) -> dict:
    """A work order driven to the given status through the API"""
    if status in ("completed", "invoiced", "paid"):
        work_order = completed_work_order(client, hours=3.5)
    else:
        work_order = create_work_order(client)
        if status == "pending_approval":
            submit(client, work_order["id"])
        elif status in ("approved", "in_progress"):
            approve_work_order(client, work_order["id"])
            if status == "in_progress":
                assert client.post(f"/work-orders/{work_order['id']}/start").status_code == 200

    if status in ("invoiced", "paid"):
        invoice = client.post("/invoices", json={"workOrderIds": [work_order["id"]]}).json()
        if status == "paid":
            client.post(f"/invoices/{invoice['id']}/send")
            signed_webhook(client, payment_event(invoice["id"], org.id, 26250))

    current = client.get(f"/work-orders/{work_order['id']}").json()
    assert current["status"] == status
    return current


# =============================================================================
# END TO END
# =============================================================================


class TestDraftToPaid:
    def test_full_lifecycle(self, api, org):
        work_order = create_work_order(api, eventName="Spring Concert", eventDate="2026-04-18")
        assert work_order["status"] == "draft"

        submitted = api.post(f"/work-orders/{work_order['id']}/submit").json()
        assert submitted["workOrder"]["status"] == "pending_approval"
        assert submitted["approvalUrl"].endswith(f"/approve/{submitted['token']}")

        signed = api.post(
            f"/approve/{submitted['token']}",
            json={
                "workOrderId": work_order["id"],
                "signature": SIGNATURE,
                "approverName": "Sr. Anne Byrne",
                "approverTitle": "Music Director",
            },
        )
        assert signed.status_code == 200
        assert signed.json()["workOrderStatus"] == "approved"
        assert api.get(f"/approve/{submitted['token']}").status_code == 409

        assert api.post(f"/work-orders/{work_order['id']}/start").json()["status"] == "in_progress"
        log_hours(api, work_order["id"], 3.25, date="2026-04-18")
        detail = api.get(f"/work-orders/{work_order['id']}").json()
        assert detail["actualHours"] == 3.25
        assert len(detail["approvals"]) == 1

        completed = api.post(f"/work-orders/{work_order['id']}/complete").json()
        assert completed["status"] == "completed"

        invoice = api.post("/invoices", json={"workOrderIds": [work_order["id"]]}).json()
        assert invoice["status"] == "draft"
        assert [li["amount"] for li in invoice["lineItems"]] == [243.75]
        assert api.get(f"/work-orders/{work_order['id']}").json()["status"] == "invoiced"

        sent = api.post(f"/invoices/{invoice['id']}/send").json()
        assert sent["invoice"]["status"] == "sent"

        signed_webhook(api, payment_event(invoice["id"], org.id, 24375, payment_id="pay_e2e"))
        settled = api.get(f"/invoices/{invoice['id']}").json()
        assert settled["amountDue"] == 0.0
        assert settled["status"] == "paid"
        assert api.get(f"/work-orders/{work_order['id']}").json()["status"] == "paid"


# =============================================================================
# EDIT GUARD
# =============================================================================


class TestEditGuardAcrossStatuses:
    @pytest.mark.parametrize("status", ["draft", "pending_approval"])
    def test_open_statuses_accept_edits(self, api, org, status):
        work_order = work_order_in(api, org, status)
        response = api.put(f"/work-orders/{work_order['id']}", json={"notes": "Extra lectern mic"})
        assert response.status_code == 200
        assert response.json()["notes"] == "Extra lectern mic"

    @pytest.mark.parametrize("status", ["approved", "in_progress", "completed", "invoiced", "paid"])
    def test_signed_statuses_reject_edits(self, api, org, status):
        work_order = work_order_in(api, org, status)
        response = api.put(f"/work-orders/{work_order['id']}", json={"notes": "Extra lectern mic"})
        assert response.status_code == 409
        assert api.get(f"/work-orders/{work_order['id']}").json()["notes"] is None


# =============================================================================
# CHANGE ORDER ROLLUP
# =============================================================================


class TestChangeOrderRollup:
    def test_only_signed_change_orders_count(self, api):
        work_order = create_work_order(api)
        approve_work_order(api, work_order["id"])

        created = [
            api.post(
                f"/work-orders/{work_order['id']}/change-orders",
                json={"additionalHours": hours, "reason": "client_request"},
            ).json()
            for hours in (2, 3, 1.5)
        ]
        for index in (0, 2):
            response = api.post(
                f"/approve/{created[index]['token']}",
                json={
                    "workOrderId": work_order["id"],
                    "signature": SIGNATURE,
                    "approverName": "Fr. Michael Walsh",
                },
            )
            assert response.status_code == 200

        detail = api.get(f"/work-orders/{work_order['id']}").json()
        assert [co["isApproved"] for co in detail["changeOrders"]] == [True, False, True]
        assert detail["additionalApprovedHours"] == 3.5
        assert detail["additionalApprovedCost"] == 262.5


# =============================================================================
# ORGANIZATION TIME ZONE
# =============================================================================


class TestLocalTimesRoundTrip:
    def test_work_order_times_come_back_as_entered(self, api):
        created = create_work_order(api, eventDate="2026-02-06", startTime="15:45", endTime="17:30")
        reloaded = api.get(f"/work-orders/{created['id']}").json()
        assert (reloaded["eventDate"], reloaded["startTime"]) == ("2026-02-06", "15:45")

        edited = api.put(f"/work-orders/{created['id']}", json={"notes": "Side door"}).json()
        assert (edited["eventDate"], edited["startTime"], edited["endTime"]) == (
            "2026-02-06",
            "15:45",
            "17:30",
        )

    def test_time_log_times_come_back_as_entered(self, api):
        work_order = create_work_order(api)
        created = api.post(
            "/time-logs",
            json={
                "workOrderId": work_order["id"],
                "date": "2026-02-06",
                "startTime": "15:45",
                "endTime": "18:00",
                "category": "on_site",
            },
        ).json()

        reloaded = api.get(f"/time-logs/{created['id']}").json()
        assert (reloaded["date"], reloaded["startTime"], reloaded["endTime"]) == (
            "2026-02-06",
            "15:45",
            "18:00",
        )
        assert reloaded["hours"] == 2.25


# =============================================================================
# STORAGE-LEVEL GUARANTEES
# =============================================================================


class TestConditionalUpdates:
    def test_invoice_numbers_are_consecutive(self, db, org):
        numbers = [InvoiceRepository.allocate_invoice_number(db, org.id) for _ in range(5)]
        db.commit()

        assert numbers == [f"SBP-{n:05d}" for n in range(1, 6)]
        db.expire_all()
        assert db.get(Organization, org.id).next_invoice_number == 6

    def test_unknown_organization_has_no_counter(self, db):
        with pytest.raises(LookupError):
            InvoiceRepository.allocate_invoice_number(db, 9999)

    def test_token_is_consumed_once(self, api, db):
        work_order = create_work_order(api)
        token_value = submit(api, work_order["id"])
        token = ApprovalRepository.get_token(db, token_value)
        now = utcnow()

        assert ApprovalRepository.consume_token(db, token.id, now) is True
        assert ApprovalRepository.consume_token(db, token.id, now) is False
        db.commit()

        response = api.post(
            f"/approve/{token_value}",
            json={"workOrderId": work_order["id"], "signature": SIGNATURE, "approverName": "X"},
        )
        assert response.status_code == 409
        assert db.query(Approval).filter(Approval.work_order_id == work_order["id"]).count() == 0
