"""Signing links, change orders and bulk sign-off"""

from datetime import timedelta

from helpers import SIGNATURE, approve_work_order, create_work_order, submit
from portal.models import ApprovalToken


def redeem(client, token, work_order_id, **signer):
    body = {"workOrderId": work_order_id, "signature": SIGNATURE}
    body.update(signer or {"approverName": "Fr. Michael Walsh"})
    return client.post(f"/approve/{token}", json=body)


def approved_with_change_order(client, hours=2, reason="added_deliverables"):
    work_order = create_work_order(client)
    approve_work_order(client, work_order["id"])
    response = client.post(
        f"/work-orders/{work_order['id']}/change-orders",
        json={"additionalHours": hours, "reason": reason},
    )
    assert response.status_code == 201, response.text
    return work_order, response.json()


class TestApprovalPage:
    def test_page_shows_work_order_and_approvers(self, api, users):
        work_order = create_work_order(api, internalNotes="Vendor only")
        token = submit(api, work_order["id"])

        data = api.get(f"/approve/{token}").json()
        assert data["organizationName"] == "St. Brendan Parish"
        assert data["workOrder"]["id"] == work_order["id"]
        assert data["workOrder"]["internalNotes"] is None
        assert data["changeOrder"] is None
        assert data["approvers"] == [
            {"id": users["client_approver"].id, "name": "Michael Walsh", "title": "Pastor"}
        ]

    def test_unknown_token(self, api):
        assert api.get("/approve/not-a-token").status_code == 404

    def test_expired_token(self, api, db):
        work_order = create_work_order(api)
        token = submit(api, work_order["id"])
        stored = db.query(ApprovalToken).filter_by(token=token).one()
        stored.expires_at = stored.expires_at - timedelta(days=400)
        db.commit()

        assert api.get(f"/approve/{token}").status_code == 404
        assert redeem(api, token, work_order["id"]).status_code == 404


class TestRedeem:
    def test_typed_name_signature(self, api, fake_storage):
        work_order = create_work_order(api)
        token = submit(api, work_order["id"])

        response = redeem(
            api, token, work_order["id"], approverName=" Sr. Anne ", approverTitle="Sacristan"
        )
        assert response.status_code == 200
        body = response.json()
        assert body["workOrderStatus"] == "approved"
        assert body["approval"]["approverName"] == "Sr. Anne"
        assert body["approval"]["approverTitle"] == "Sacristan"
        assert body["approval"]["approverId"] is None
        assert len(body["approval"]["workOrderHash"]) == 64
        assert body["approval"]["signatureUrl"].startswith("https://files.example.com/signatures/")
        assert fake_storage == [body["approval"]["signatureUrl"].split("files.example.com/")[1]]

    def test_registered_approver(self, api, users):
        work_order = create_work_order(api)
        token = submit(api, work_order["id"])

        body = redeem(api, token, work_order["id"], approverId=users["client_approver"].id).json()
        assert body["approval"]["approverId"] == users["client_approver"].id
        assert body["approval"]["approverName"] == "Michael Walsh"
        assert body["approval"]["approverTitle"] == "Pastor"

    def test_non_approver_cannot_be_selected(self, api, users):
        work_order = create_work_order(api)
        token = submit(api, work_order["id"])

        response = redeem(api, token, work_order["id"], approverId=users["client_viewer"].id)
        assert response.status_code == 400
        assert api.get(f"/approve/{token}").status_code == 200

    def test_signer_required(self, api):
        work_order = create_work_order(api)
        token = submit(api, work_order["id"])
        response = api.post(
            f"/approve/{token}", json={"workOrderId": work_order["id"], "signature": SIGNATURE}
        )
        assert response.status_code == 400

    def test_token_is_single_use(self, api):
        work_order = create_work_order(api)
        token = submit(api, work_order["id"])

        assert redeem(api, token, work_order["id"]).status_code == 200
        second = redeem(api, token, work_order["id"])
        assert second.status_code == 409
        assert second.json()["detail"] == "This approval link has already been used"
        assert len(api.get(f"/work-orders/{work_order['id']}").json()["approvals"]) == 1

    def test_token_for_another_work_order(self, api):
        first = create_work_order(api)
        second = create_work_order(api, eventName="Baptism")
        token = submit(api, first["id"])
        submit(api, second["id"])

        response = redeem(api, token, second["id"])
        assert response.status_code == 400
        assert api.get(f"/work-orders/{second['id']}").json()["status"] == "pending_approval"

    def test_bad_signature_leaves_token_unspent(self, api):
        work_order = create_work_order(api)
        token = submit(api, work_order["id"])

        response = api.post(
            f"/approve/{token}",
            json={
                "workOrderId": work_order["id"],
                "approverName": "Fr. Michael Walsh",
                "signature": "data:image/png;base64,not base64!",
            },
        )
        assert response.status_code == 400
        assert redeem(api, token, work_order["id"]).status_code == 200

    def test_signing_records_request_context(self, api):
        work_order = create_work_order(api)
        token = submit(api, work_order["id"])
        response = api.post(
            f"/approve/{token}",
            json={
                "workOrderId": work_order["id"],
                "approverName": "Fr. Michael Walsh",
                "signature": SIGNATURE,
                "deviceInfo": {"platform": "iPad"},
            },
            headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1", "User-Agent": "Safari"},
        )
        approval = response.json()["approval"]
        assert approval["ipAddress"] == "203.0.113.9"
        assert approval["userAgent"] == "Safari"
        assert approval["deviceInfo"] == {"platform": "iPad"}


class TestChangeOrders:
    def test_create_issues_link_and_emails_approver(self, api, users, outbox):
        work_order = create_work_order(api, authorizedApproverId=users["client_approver"].id)
        approve_work_order(api, work_order["id"])

        response = api.post(
            f"/work-orders/{work_order['id']}/change-orders",
            json={"additionalHours": 1.5, "reason": "unexpected_technical_issue", "notes": "Mixer"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["changeOrder"]["additionalCost"] == 112.5
        assert body["changeOrder"]["isApproved"] is False
        assert body["approvalUrl"].endswith(f"/approve/{body['token']}")

        emails = [e for e in outbox if e["kind"] == "change_order"]
        assert len(emails) == 1
        assert emails[0]["to"] == "pastor@stbrendan.example.org"
        assert emails[0]["additional_cost"] == 112.5

    def test_draft_work_order_rejected(self, api):
        work_order = create_work_order(api)
        response = api.post(
            f"/work-orders/{work_order['id']}/change-orders",
            json={"additionalHours": 1, "reason": "added_deliverables"},
        )
        assert response.status_code == 409

    def test_hours_must_be_positive(self, api):
        work_order = create_work_order(api)
        approve_work_order(api, work_order["id"])
        response = api.post(
            f"/work-orders/{work_order['id']}/change-orders",
            json={"additionalHours": 0, "reason": "added_deliverables"},
        )
        assert response.status_code == 422

    def test_approval_rolls_up_into_work_order(self, api):
        work_order, created = approved_with_change_order(api, hours=2)
        unapproved = api.post(
            f"/work-orders/{work_order['id']}/change-orders",
            json={"additionalHours": 3, "reason": "added_deliverables"},
        ).json()

        page = api.get(f"/approve/{created['token']}").json()
        assert page["changeOrder"]["id"] == created["changeOrder"]["id"]

        response = redeem(api, created["token"], work_order["id"])
        assert response.status_code == 200
        assert response.json()["changeOrderId"] == created["changeOrder"]["id"]
        assert response.json()["workOrderStatus"] == "approved"

        detail = api.get(f"/work-orders/{work_order['id']}").json()
        assert detail["additionalApprovedHours"] == 2.0
        assert detail["additionalApprovedCost"] == 150.0
        assert [co["isApproved"] for co in detail["changeOrders"]] == [True, False]
        assert unapproved["changeOrder"]["isApproved"] is False

        approval = api.get(f"/approvals/change-orders/{created['changeOrder']['id']}").json()
        assert approval["isChangeOrder"] is True

    def test_approved_change_order_cannot_be_deleted(self, api):
        work_order, created = approved_with_change_order(api)
        redeem(api, created["token"], work_order["id"])
        response = api.delete(f"/change-orders/{created['changeOrder']['id']}")
        assert response.status_code == 409

    def test_deleting_pending_change_order_voids_link(self, api):
        work_order, created = approved_with_change_order(api)
        assert api.delete(f"/change-orders/{created['changeOrder']['id']}").status_code == 200
        assert api.get(f"/approve/{created['token']}").status_code == 404


class TestBulkSign:
    def test_signs_every_pending_work_order(self, api, users):
        first = create_work_order(api)
        second = create_work_order(api, eventName="Baptism")
        first_token = submit(api, first["id"])
        submit(api, second["id"])

        api.login(users["client_approver"])
        response = api.post(
            "/approvals/bulk",
            json={"workOrderIds": [second["id"], first["id"], first["id"]], "signature": SIGNATURE},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["workOrderIds"] == [first["id"], second["id"]]
        assert {a["approverName"] for a in body["approvals"]} == {"Michael Walsh"}

        api.login(users["vendor_admin"])
        for work_order in (first, second):
            assert api.get(f"/work-orders/{work_order['id']}").json()["status"] == "approved"
        assert redeem(api, first_token, first["id"]).status_code == 409

    def test_all_or_nothing(self, api):
        pending = create_work_order(api)
        draft = create_work_order(api, eventName="Still a draft")
        submit(api, pending["id"])

        response = api.post(
            "/approvals/bulk",
            json={
                "workOrderIds": [pending["id"], draft["id"]],
                "signature": SIGNATURE,
                "approverName": "Fr. Michael Walsh",
            },
        )
        assert response.status_code == 409
        assert api.get(f"/work-orders/{pending['id']}").json()["status"] == "pending_approval"
        assert api.get("/approvals").json() == []

    def test_expired_link_blocks_the_batch(self, api, db):
        live = create_work_order(api)
        stale = create_work_order(api, eventName="Link expired")
        submit(api, live["id"])
        token = submit(api, stale["id"])
        stored = db.query(ApprovalToken).filter_by(token=token).one()
        stored.expires_at = stored.expires_at - timedelta(days=400)
        db.commit()

        response = api.post(
            "/approvals/bulk",
            json={
                "workOrderIds": [live["id"], stale["id"]],
                "signature": SIGNATURE,
                "approverName": "Fr. Michael Walsh",
            },
        )
        assert response.status_code == 409
        assert str(stale["id"]) in response.json()["detail"]
        assert api.get(f"/work-orders/{live['id']}").json()["status"] == "pending_approval"
        assert api.get("/approvals").json() == []

    def test_missing_work_order(self, api):
        pending = create_work_order(api)
        submit(api, pending["id"])
        response = api.post(
            "/approvals/bulk",
            json={"workOrderIds": [pending["id"], 9999], "signature": SIGNATURE},
        )
        assert response.status_code == 404

    def test_viewer_without_approver_flag_forbidden(self, api, users):
        pending = create_work_order(api)
        submit(api, pending["id"])
        api.login(users["client_viewer"])
        response = api.post(
            "/approvals/bulk", json={"workOrderIds": [pending["id"]], "signature": SIGNATURE}
        )
        assert response.status_code == 403

    def test_empty_selection(self, api):
        response = api.post("/approvals/bulk", json={"workOrderIds": [], "signature": SIGNATURE})
        assert response.status_code == 422
