"""Recurring events: bulk creation, after-the-fact sign-off and shared time entries"""

import pytest

from helpers import SIGNATURE, approve_work_order, create_work_order


@pytest.fixture
def series(api):
    response = api.post(
        "/series",
        json={
            "name": "Lenten Stations",
            "eventName": "Stations of the Cross",
            "venue": "church",
            "eventType": "other",
            "eventTypeOther": "Devotion",
            "dates": [
                {"date": "2026-03-06", "startTime": "19:00", "endTime": "20:00"},
                {"date": "2026-02-27", "startTime": "19:00", "endTime": "20:00"},
                {"date": "2026-03-13"},
            ],
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestCreate:
    def test_members_start_in_progress(self, series):
        assert series["workOrderCount"] == 3
        assert series["statusCounts"] == {"in_progress": 3}
        members = series["workOrders"]
        assert [wo["eventDate"] for wo in members] == ["2026-02-27", "2026-03-06", "2026-03-13"]
        assert all(wo["seriesId"] == series["id"] for wo in members)
        assert all(wo["eventTypeOther"] == "Devotion" for wo in members)
        assert all(wo["hourlyRateSnapshot"] == 75.0 for wo in members)
        assert members[2]["startTime"] is None

    def test_estimate_dropped_without_pre_approval(self, api):
        response = api.post(
            "/series",
            json={
                "name": "Choir",
                "eventName": "Choir Practice",
                "venue": "church",
                "eventType": "concert",
                "estimateType": "fixed",
                "estimatedHoursFixed": 2,
                "dates": [{"date": "2026-04-01"}],
            },
        )
        assert response.json()["workOrders"][0]["estimateType"] is None

    def test_dates_required(self, api):
        response = api.post(
            "/series",
            json={"name": "Empty", "eventName": "X", "venue": "church", "eventType": "concert", "dates": []},
        )
        assert response.status_code == 422

    def test_clients_cannot_create(self, api, users):
        api.login(users["client_approver"])
        response = api.post(
            "/series",
            json={
                "name": "X",
                "eventName": "X",
                "venue": "church",
                "eventType": "concert",
                "dates": [{"date": "2026-04-01"}],
            },
        )
        assert response.status_code == 403


class TestSubmitAndSign:
    def test_submit_issues_one_link_per_member(self, api, series):
        response = api.post(f"/series/{series['id']}/submit")
        assert response.status_code == 200
        submitted = response.json()["submitted"]
        assert len(submitted) == 3
        assert len({entry["token"] for entry in submitted}) == 3

        detail = api.get(f"/series/{series['id']}").json()
        assert detail["statusCounts"] == {"pending_approval": 3}
        assert api.post(f"/series/{series['id']}/submit").status_code == 409

    def test_bulk_sign_whole_series(self, api, users, series):
        api.post(f"/series/{series['id']}/submit")
        ids = [wo["id"] for wo in series["workOrders"]]

        api.login(users["client_approver"])
        response = api.post("/approvals/bulk", json={"workOrderIds": ids, "signature": SIGNATURE})
        assert response.status_code == 200

        api.login(users["vendor_admin"])
        assert api.get(f"/series/{series['id']}").json()["statusCounts"] == {"approved": 3}


class TestSeriesTimeLogs:
    def test_entry_copied_to_each_member_on_its_date(self, api, series):
        response = api.post(
            f"/series/{series['id']}/time-logs",
            json={"startTime": "18:30", "endTime": "20:15", "category": "on_site"},
        )
        assert response.status_code == 201
        assert response.json()["created"] == 3

        for member in series["workOrders"]:
            logs = api.get("/time-logs", params={"workOrderId": member["id"]}).json()
            assert [(entry["date"], entry["hours"]) for entry in logs] == [(member["eventDate"], 1.75)]
            assert api.get(f"/work-orders/{member['id']}").json()["actualHours"] == 1.75

    def test_unknown_series(self, api):
        response = api.post("/series/999/time-logs", json={"hours": 1, "category": "on_site"})
        assert response.status_code == 404


class TestMembership:
    def test_assign_to_new_series_and_remove(self, api):
        work_order = create_work_order(api)

        assigned = api.post(
            f"/work-orders/{work_order['id']}/series", json={"newSeriesName": "Funerals 2026"}
        )
        assert assigned.status_code == 200
        series_id = assigned.json()["seriesId"]
        assert series_id is not None
        assert api.get(f"/series/{series_id}").json()["name"] == "Funerals 2026"

        removed = api.delete(f"/work-orders/{work_order['id']}/series")
        assert removed.json()["seriesId"] is None
        assert api.delete(f"/work-orders/{work_order['id']}/series").status_code == 409

    def test_assign_needs_target(self, api):
        work_order = create_work_order(api)
        response = api.post(f"/work-orders/{work_order['id']}/series", json={})
        assert response.status_code == 422


class TestDelete:
    def test_delete_removes_members(self, api, series):
        assert api.delete(f"/series/{series['id']}").status_code == 200
        assert api.get(f"/series/{series['id']}").status_code == 404
        assert api.get(f"/work-orders/{series['workOrders'][0]['id']}").status_code == 404

    def test_blocked_once_any_member_moved_on(self, api, series):
        member = series["workOrders"][0]
        api.post(f"/work-orders/{member['id']}/complete")
        response = api.delete(f"/series/{series['id']}")
        assert response.status_code == 409
        assert api.get(f"/series/{series['id']}").status_code == 200

    def test_blocked_when_a_member_carries_a_signed_change_order(self, api, series):
        member = series["workOrders"][0]
        created = api.post(
            f"/work-orders/{member['id']}/change-orders",
            json={"additionalHours": 1, "reason": "client_request"},
        ).json()
        signed = api.post(
            f"/approve/{created['token']}",
            json={"workOrderId": member["id"], "signature": SIGNATURE, "approverName": "Fr. Walsh"},
        )
        assert signed.status_code == 200

        response = api.delete(f"/series/{series['id']}")
        assert response.status_code == 409
        detail = api.get(f"/work-orders/{member['id']}").json()
        assert len(detail["approvals"]) == 1
        assert [co["isApproved"] for co in detail["changeOrders"]] == [True]

    def test_blocked_when_a_signed_work_order_was_assigned(self, api, series):
        work_order = create_work_order(api)
        approve_work_order(api, work_order["id"])
        assert api.post(f"/work-orders/{work_order['id']}/start").status_code == 200
        api.post(f"/work-orders/{work_order['id']}/series", json={"seriesId": series["id"]})

        assert api.delete(f"/series/{series['id']}").status_code == 409
        assert len(api.get(f"/work-orders/{work_order['id']}").json()["approvals"]) == 1
