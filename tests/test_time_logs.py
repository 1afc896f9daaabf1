"""Time entries and the actual-hours rollup"""

from helpers import completed_work_order, create_work_order, log_hours


class TestTimeLogs:
    def test_hours_derived_from_clock_times(self, api):
        work_order = create_work_order(api)
        response = api.post(
            "/time-logs",
            json={
                "workOrderId": work_order["id"],
                "date": "2026-02-06",
                "startTime": "09:15",
                "endTime": "12:45",
                "category": "on_site",
            },
        )
        assert response.status_code == 201
        body = response.json()
        assert body["hours"] == 3.5
        assert body["date"] == "2026-02-06"
        assert (body["startTime"], body["endTime"]) == ("09:15", "12:45")
        assert body["loggedByName"] == "Vendor Admin"

    def test_explicit_hours_win(self, api):
        work_order = create_work_order(api)
        response = api.post(
            "/time-logs",
            json={
                "workOrderId": work_order["id"],
                "date": "2026-02-06",
                "startTime": "09:00",
                "endTime": "10:00",
                "hours": 2.25,
                "category": "remote",
            },
        )
        assert response.json()["hours"] == 2.25

    def test_hours_or_times_required(self, api):
        work_order = create_work_order(api)
        response = api.post(
            "/time-logs",
            json={"workOrderId": work_order["id"], "date": "2026-02-06", "category": "admin"},
        )
        assert response.status_code == 400

    def test_end_before_start(self, api):
        work_order = create_work_order(api)
        response = api.post(
            "/time-logs",
            json={
                "workOrderId": work_order["id"],
                "date": "2026-02-06",
                "startTime": "14:00",
                "endTime": "13:00",
                "category": "on_site",
            },
        )
        assert response.status_code == 400

    def test_unknown_category(self, api):
        work_order = create_work_order(api)
        response = api.post(
            "/time-logs",
            json={"workOrderId": work_order["id"], "date": "2026-02-06", "hours": 1, "category": "travel"},
        )
        assert response.status_code == 422

    def test_post_production_types_only_kept_for_post_production(self, api):
        work_order = create_work_order(api)
        on_site = api.post(
            "/time-logs",
            json={
                "workOrderId": work_order["id"],
                "date": "2026-02-06",
                "hours": 1,
                "category": "on_site",
                "postProductionTypes": ["video_editing"],
            },
        ).json()
        editing = api.post(
            "/time-logs",
            json={
                "workOrderId": work_order["id"],
                "date": "2026-02-07",
                "hours": 2,
                "category": "post_production",
                "postProductionTypes": ["video_editing", "video_editing"],
            },
        ).json()
        assert on_site["postProductionTypes"] is None
        assert editing["postProductionTypes"] == ["video_editing"]

    def test_clients_cannot_log_time(self, api, users):
        work_order = create_work_order(api)
        api.login(users["client_admin"])
        response = api.post(
            "/time-logs",
            json={"workOrderId": work_order["id"], "date": "2026-02-06", "hours": 1, "category": "on_site"},
        )
        assert response.status_code == 403


class TestActualHours:
    def test_rollup_follows_every_write(self, api):
        work_order = create_work_order(api)
        first = log_hours(api, work_order["id"], 2)
        log_hours(api, work_order["id"], 1.25, category="remote")

        def actual():
            return api.get(f"/work-orders/{work_order['id']}").json()["actualHours"]

        assert actual() == 3.25

        api.put(f"/time-logs/{first['id']}", json={"hours": 3})
        assert actual() == 4.25

        api.delete(f"/time-logs/{first['id']}")
        assert actual() == 1.25

    def test_times_only_edit_keeps_date(self, api):
        work_order = create_work_order(api)
        entry = log_hours(api, work_order["id"], 1, date="2026-02-07")
        updated = api.put(
            f"/time-logs/{entry['id']}", json={"startTime": "18:00", "endTime": "21:30"}
        ).json()
        assert updated["date"] == "2026-02-07"
        assert updated["hours"] == 3.5

    def test_entered_hours_survive_clock_edits(self, api):
        work_order = create_work_order(api)
        entry = api.post(
            "/time-logs",
            json={
                "workOrderId": work_order["id"],
                "date": "2026-02-06",
                "startTime": "15:00",
                "endTime": "17:00",
                "hours": 3,
                "category": "on_site",
            },
        ).json()

        updated = api.put(f"/time-logs/{entry['id']}", json={"startTime": "15:30"}).json()
        assert (updated["startTime"], updated["hours"]) == ("15:30", 3.0)
        both = api.put(
            f"/time-logs/{entry['id']}", json={"startTime": "14:00", "endTime": "16:00"}
        ).json()
        assert both["hours"] == 3.0
        assert api.get(f"/work-orders/{work_order['id']}").json()["actualHours"] == 3.0

    def test_start_only_edit_without_end_time(self, api):
        work_order = create_work_order(api)
        entry = api.post(
            "/time-logs",
            json={
                "workOrderId": work_order["id"],
                "date": "2026-02-06",
                "startTime": "15:45",
                "hours": 2,
                "category": "remote",
            },
        ).json()

        response = api.put(f"/time-logs/{entry['id']}", json={"startTime": "16:00"})
        assert response.status_code == 200
        assert (response.json()["startTime"], response.json()["hours"]) == ("16:00", 2.0)

    def test_clock_derived_hours_follow_new_times(self, api):
        work_order = create_work_order(api)
        entry = api.post(
            "/time-logs",
            json={
                "workOrderId": work_order["id"],
                "date": "2026-02-06",
                "startTime": "09:00",
                "endTime": "11:00",
                "category": "on_site",
            },
        ).json()
        assert entry["hours"] == 2.0

        updated = api.put(
            f"/time-logs/{entry['id']}", json={"startTime": "09:00", "endTime": "12:30"}
        ).json()
        assert updated["hours"] == 3.5

    def test_list_by_work_order(self, api):
        first = create_work_order(api)
        second = create_work_order(api, eventName="Baptism")
        log_hours(api, first["id"], 1)
        log_hours(api, second["id"], 2)

        logs = api.get("/time-logs", params={"workOrderId": second["id"]}).json()
        assert [entry["hours"] for entry in logs] == [2.0]


class TestInvoicedLock:
    def test_no_time_changes_once_invoiced(self, api):
        work_order = completed_work_order(api, hours=2)
        entry = api.get("/time-logs", params={"workOrderId": work_order["id"]}).json()[0]
        response = api.post("/invoices", json={"workOrderIds": [work_order["id"]]})
        assert response.status_code == 201, response.text

        blocked = api.post(
            "/time-logs",
            json={"workOrderId": work_order["id"], "date": "2026-02-06", "hours": 1, "category": "admin"},
        )
        assert blocked.status_code == 409
        assert api.put(f"/time-logs/{entry['id']}", json={"hours": 5}).status_code == 409
        assert api.delete(f"/time-logs/{entry['id']}").status_code == 409
        assert api.get(f"/work-orders/{work_order['id']}").json()["actualHours"] == 2.0
