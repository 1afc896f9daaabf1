"""Invoice assembly, numbering, sending, period drafts and the public view"""

from datetime import timedelta

from helpers import completed_work_order, create_work_order
from portal.models_invoice import InvoiceReminder, InvoiceViewToken


def view_token(send_response: dict) -> str:
    return send_response["viewUrl"].rsplit("/", 1)[1]


class TestCreate:
    def test_sequential_numbers_per_organization(self, api):
        first = api.post("/invoices", json={}).json()
        second = api.post("/invoices", json={}).json()
        assert (first["invoiceNumber"], second["invoiceNumber"]) == ("SBP-00001", "SBP-00002")

        organization = api.get("/organization").json()
        assert organization["nextInvoiceNumber"] == 3

    def test_work_order_becomes_line_and_is_invoiced(self, api):
        work_order = completed_work_order(api, hours=3.5)

        invoice = api.post("/invoices", json={"workOrderIds": [work_order["id"]]}).json()
        assert invoice["status"] == "draft"
        assert invoice["workOrderIds"] == [work_order["id"]]
        line = invoice["lineItems"][0]
        assert line["description"] == "Funeral Mass - R. Keane - Feb 6"
        assert (line["quantity"], line["unitPrice"], line["amount"]) == (3.5, 75.0, 262.5)
        assert invoice["total"] == 262.5
        assert invoice["amountDue"] == 262.5

        detail = api.get(f"/work-orders/{work_order['id']}").json()
        assert detail["status"] == "invoiced"
        assert detail["invoiceId"] == invoice["id"]

    def test_custom_lines_and_percentage_discount(self, api):
        work_order = completed_work_order(api, hours=3.5)
        invoice = api.post(
            "/invoices",
            json={
                "workOrderIds": [work_order["id"]],
                "lineItems": [{"description": "Camera rental", "quantity": 1, "unitPrice": 500}],
                "discountType": "percentage",
                "discountValue": 10,
            },
        ).json()
        assert invoice["subtotal"] == 762.5
        assert invoice["discountAmount"] == 76.25
        assert invoice["total"] == 686.25
        custom = [li for li in invoice["lineItems"] if li["isCustom"]]
        assert [li["description"] for li in custom] == ["Camera rental"]

    def test_flat_discount_larger_than_subtotal(self, api):
        response = api.post(
            "/invoices",
            json={
                "lineItems": [{"description": "Setup", "quantity": 1, "unitPrice": 100}],
                "discountType": "flat",
                "discountValue": 150,
            },
        )
        assert response.status_code == 400
        assert api.get("/invoices").json() == []

    def test_only_completed_free_work_orders_attach(self, api):
        draft = create_work_order(api)
        assert api.post("/invoices", json={"workOrderIds": [draft["id"]]}).status_code == 409

        done = completed_work_order(api)
        assert api.post("/invoices", json={"workOrderIds": [done["id"]]}).status_code == 201
        assert api.post("/invoices", json={"workOrderIds": [done["id"]]}).status_code == 409
        assert api.post("/invoices", json={"workOrderIds": [4242]}).status_code == 404

    def test_vendor_staff_cannot_create(self, api, users):
        api.login(users["vendor_staff"])
        assert api.post("/invoices", json={}).status_code == 403


class TestEditAndDelete:
    def test_detaching_releases_work_order(self, api):
        first = completed_work_order(api, hours=2)
        second = completed_work_order(api, hours=1, eventName="Baptism - Nolan", eventDate="2026-02-08")
        invoice = api.post("/invoices", json={"workOrderIds": [first["id"], second["id"]]}).json()
        assert invoice["total"] == 225.0

        updated = api.put(f"/invoices/{invoice['id']}", json={"workOrderIds": [second["id"]]}).json()
        assert updated["workOrderIds"] == [second["id"]]
        assert updated["total"] == 75.0
        assert api.get(f"/work-orders/{first['id']}").json()["status"] == "completed"

    def test_line_edit_keeps_attached_work_order_lines(self, api):
        work_order = completed_work_order(api, hours=2)
        invoice = api.post("/invoices", json={"workOrderIds": [work_order["id"]]}).json()
        setup = {"description": "Setup", "quantity": 1, "unitPrice": 50}

        updated = api.put(f"/invoices/{invoice['id']}", json={"lineItems": [setup]}).json()
        assert updated["workOrderIds"] == [work_order["id"]]
        assert sorted(li["workOrderId"] or 0 for li in updated["lineItems"]) == [0, work_order["id"]]
        assert updated["total"] == 200.0

        detached = api.put(
            f"/invoices/{invoice['id']}", json={"lineItems": [setup], "workOrderIds": []}
        ).json()
        assert detached["workOrderIds"] == []
        assert [li["description"] for li in detached["lineItems"]] == ["Setup"]
        assert detached["total"] == 50.0
        assert api.get(f"/work-orders/{work_order['id']}").json()["status"] == "completed"

    def test_clear_discount(self, api):
        invoice = api.post(
            "/invoices",
            json={
                "lineItems": [{"description": "Setup", "quantity": 2, "unitPrice": 100}],
                "discountType": "flat",
                "discountValue": 50,
            },
        ).json()
        assert invoice["total"] == 150.0
        updated = api.put(f"/invoices/{invoice['id']}", json={"clearDiscount": True}).json()
        assert updated["discountType"] is None
        assert updated["total"] == 200.0

    def test_delete_draft_releases_work_orders(self, api):
        work_order = completed_work_order(api)
        invoice = api.post("/invoices", json={"workOrderIds": [work_order["id"]]}).json()

        assert api.delete(f"/invoices/{invoice['id']}").status_code == 200
        detail = api.get(f"/work-orders/{work_order['id']}").json()
        assert detail["status"] == "completed"
        assert detail["invoiceId"] is None
        assert api.post("/invoices", json={"workOrderIds": [work_order["id"]]}).status_code == 201

    def test_sent_invoice_is_frozen(self, api):
        invoice = api.post("/invoices", json={}).json()
        api.post(f"/invoices/{invoice['id']}/send")
        assert api.put(f"/invoices/{invoice['id']}", json={"notes": "x"}).status_code == 409
        assert api.delete(f"/invoices/{invoice['id']}").status_code == 409


class TestSend:
    def test_send_to_organization_email_with_reminders(self, api, db, outbox):
        work_order = completed_work_order(api)
        invoice = api.post(
            "/invoices", json={"workOrderIds": [work_order["id"]], "dueDate": "2026-03-01"}
        ).json()

        response = api.post(f"/invoices/{invoice['id']}/send", json={"reminderDays": [7, 3, 3]})
        assert response.status_code == 200
        body = response.json()
        assert body["invoice"]["status"] == "sent"
        assert body["invoice"]["sentAt"] is not None
        assert body["viewUrl"].startswith("https://portal.example.com/invoice/")
        assert body["remindersScheduled"] == 2
        assert body["emailSent"] is True

        emails = [e for e in outbox if e["kind"] == "invoice"]
        assert len(emails) == 1
        assert emails[0]["to"] == "office@stbrendan.example.org"
        assert emails[0]["invoice_number"] == "SBP-00001"
        assert emails[0]["due_date"] == "March 1, 2026"

        reminders = db.query(InvoiceReminder).order_by(InvoiceReminder.scheduled_date).all()
        assert [r.reminder_type for r in reminders] == ["3_day", "7_day"]

    def test_explicit_recipient_and_cc(self, api, outbox):
        invoice = api.post("/invoices", json={}).json()
        api.post(
            f"/invoices/{invoice['id']}/send",
            json={"recipientEmail": "Bursar@StBrendan.example.org", "cc": ["pastor@stbrendan.example.org"]},
        )
        email = [e for e in outbox if e["kind"] == "invoice"][0]
        assert email["to"] == "bursar@stbrendan.example.org"
        assert email["cc"] == ["pastor@stbrendan.example.org"]

    def test_unsupported_reminder_day(self, api):
        invoice = api.post("/invoices", json={}).json()
        response = api.post(f"/invoices/{invoice['id']}/send", json={"reminderDays": [5]})
        assert response.status_code == 422

    def test_send_once(self, api):
        invoice = api.post("/invoices", json={}).json()
        api.post(f"/invoices/{invoice['id']}/send")
        assert api.post(f"/invoices/{invoice['id']}/send").status_code == 409


class TestPublicView:
    def test_view_shows_work_behind_each_line(self, api, users, services):
        work_order = completed_work_order(
            api, hours=2, scopeServiceIds=[services[1].id], internalNotes="Vendor only"
        )
        invoice = api.post(
            "/invoices",
            json={"workOrderIds": [work_order["id"]], "internalNotes": "Margin is thin"},
        ).json()
        token = view_token(api.post(f"/invoices/{invoice['id']}/send").json())

        response = api.get(f"/invoice/{token}")
        assert response.status_code == 200
        body = response.json()
        assert body["invoice"]["invoiceNumber"] == "SBP-00001"
        assert body["invoice"]["internalNotes"] is None
        assert body["organization"]["paymentTerms"] == "Net 15"

        line = body["lineItems"][0]
        assert line["workOrder"]["id"] == work_order["id"]
        assert line["workOrder"]["scopeServiceNames"] == ["Audio Mixing"]
        assert line["workOrder"]["approvals"][0]["approverName"] == "Fr. Michael Walsh"
        assert [t["hours"] for t in line["workOrder"]["timeLogs"]] == [2.0]

    def test_unknown_link(self, api):
        assert api.get("/invoice/nope").status_code == 404

    def test_expired_link(self, api, db):
        invoice = api.post("/invoices", json={}).json()
        token = view_token(api.post(f"/invoices/{invoice['id']}/send").json())
        stored = db.query(InvoiceViewToken).filter_by(token=token).one()
        stored.expires_at = stored.expires_at - timedelta(days=365)
        db.commit()

        response = api.get(f"/invoice/{token}")
        assert response.status_code == 410
        assert api.get(f"/invoice/{token}/pdf").status_code == 410

    def test_pdf_downloads(self, api):
        work_order = completed_work_order(api)
        invoice = api.post("/invoices", json={"workOrderIds": [work_order["id"]]}).json()
        token = view_token(api.post(f"/invoices/{invoice['id']}/send").json())

        for path in (f"/invoices/{invoice['id']}/pdf", f"/invoice/{token}/pdf"):
            response = api.get(path)
            assert response.status_code == 200
            assert response.headers["content-type"] == "application/pdf"
            assert 'filename="SBP-00001.pdf"' in response.headers["content-disposition"]
            assert response.content.startswith(b"%PDF")


class TestBillingPeriods:
    def test_period_draft_with_retainer_and_completed_work(self, api):
        work_order = completed_work_order(api, hours=3.5)
        completed_work_order(api, hours=1, eventName="Outside period", eventDate="2026-02-20")

        response = api.post(
            "/invoices/period-draft", json={"periodStart": "2026-02-01", "periodEnd": "2026-02-15"}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["created"] is True
        invoice = body["invoice"]
        assert invoice["periodStart"] == "2026-02-01"
        assert invoice["periodEnd"] == "2026-02-15"
        retainer, work_line = invoice["lineItems"]
        assert retainer["description"] == "Monthly Retainer (Feb 1-15, 2026)"
        assert retainer["isRetainer"] is True
        assert retainer["amount"] == 500.0
        assert work_line["workOrderId"] == work_order["id"]
        assert invoice["total"] == 762.5

        again = api.post(
            "/invoices/period-draft", json={"periodStart": "2026-02-01", "periodEnd": "2026-02-15"}
        ).json()
        assert again["created"] is False
        assert again["invoice"]["id"] == invoice["id"]

    def test_add_completed_work_after_drafting(self, api):
        draft = api.post(
            "/invoices/period-draft", json={"periodStart": "2026-02-01", "periodEnd": "2026-02-15"}
        ).json()["invoice"]
        assert draft["total"] == 500.0

        late = completed_work_order(api, hours=2, eventName="Vigil", eventDate="2026-02-14")
        updated = api.post(f"/invoices/{draft['id']}/add-completed-work").json()
        assert updated["workOrderIds"] == [late["id"]]
        assert updated["total"] == 650.0

        unchanged = api.post(f"/invoices/{draft['id']}/add-completed-work").json()
        assert len(unchanged["lineItems"]) == 2

    def test_add_completed_work_needs_period(self, api):
        invoice = api.post("/invoices", json={}).json()
        assert api.post(f"/invoices/{invoice['id']}/add-completed-work").status_code == 400

    def test_summary_projects_retainer(self, api):
        summary = api.get("/invoices/billing-periods").json()
        for key in ("current", "next"):
            assert summary[key]["projected"] == 500.0
            assert summary[key]["workOrderCount"] == 0
            assert summary[key]["invoice"] is None
        assert summary["current"]["period"]["end"] < summary["next"]["period"]["start"]


class TestVisibility:
    def test_client_viewer_reads_without_internal_notes(self, api, users):
        invoice = api.post("/invoices", json={"internalNotes": "Margin is thin"}).json()
        api.login(users["client_viewer"])
        assert api.get(f"/invoices/{invoice['id']}").json()["internalNotes"] is None

    def test_approver_cannot_see_invoices(self, api, users):
        api.login(users["client_approver"])
        assert api.get("/invoices").status_code == 403
