class TestCompareEndpoint:
    """POST /api/compare"""

    async def test_equal_responses(self, client, vehicle_left):
        response = await client.post(
            "/api/compare", json={"left": vehicle_left, "right": vehicle_left, "key_paths": ["id"]}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["equal"] is True
        assert body["difference_count"] == 0
        assert body["request_id"] is None
        assert body["findings"][0]["status"] == "same"

    async def test_classified_findings(self, client, vehicle_left, vehicle_right):
        response = await client.post("/api/compare", json={
            "left": vehicle_left,
            "right": vehicle_right,
            "key_paths": ["vehicle.stops", "vehicle.position.bearing", "vehicle.label"],
        })
        body = response.json()
        by_path = {f["path"]: f for f in body["findings"]}

        assert body["equal"] is False
        assert body["difference_count"] == 3
        assert by_path["vehicle.stops"]["status"] == "same"
        assert by_path["vehicle.position.bearing"]["status"] == "different"
        assert by_path["vehicle.label"]["status"] == "added"
        assert by_path["vehicle.label"]["left_present"] is False
        assert body["summary"] == {"same": 1, "different": 1, "missing": 0, "added": 1}

    async def test_ignored_keys(self, client, vehicle_left, vehicle_right):
        response = await client.post("/api/compare", json={
            "left": vehicle_left,
            "right": vehicle_right,
            "ignored_keys": ["bearing", "timestamp", "label"],
        })
        assert response.json()["equal"] is True

    async def test_capped_count(self, client):
        left = {f"k{i}": i for i in range(20)}
        right = {f"k{i}": -1 for i in range(20)}

        response = await client.post(
            "/api/compare", json={"left": left, "right": right, "key_paths": [], "max_count": 5}
        )

        assert response.json()["difference_count"] == 5
        assert response.json()["capped"] is True

    async def test_logged_when_endpoint_given(self, client, vehicle_left, vehicle_right):
        response = await client.post("/api/compare", json={
            "left": vehicle_left,
            "right": vehicle_right,
            "key_paths": ["vehicle.label", "id"],
            "endpoint": "/vehicles",
            "timestamp": "2026-10-01T12:00:00Z",
        })
        request_id = response.json()["request_id"]
        assert request_id is not None

        logged = (await client.get("/api/keylog", params={"endpoint": "/vehicles"})).json()
        assert logged["count"] == 2
        assert all(item["request_id"] == request_id for item in logged["items"])

        request = (await client.get(f"/api/keylog/requests/{request_id}")).json()
        assert request["response_left"] == vehicle_left

    async def test_reordered_arrays_log_as_same(self, client):
        left = {"stops": [{"id": "A"}, {"id": "B"}]}
        right = {"stops": [{"id": "B"}, {"id": "A"}]}

        response = await client.post(
            "/api/compare", json={"left": left, "right": right, "endpoint": "/stops"}
        )
        body = response.json()

        assert body["equal"] is True
        assert [(f["path"], f["status"]) for f in body["findings"]] == [("stops", "same")]
        # both sides shown in the same canonical order
        assert body["findings"][0]["left_value"] == body["findings"][0]["right_value"]

        logged = (await client.get("/api/keylog", params={"endpoint": "/stops"})).json()
        assert [item["key_path"] for item in logged["items"]] == ["stops"]

    async def test_unicode_digit_key_path(self, client):
        response = await client.post("/api/compare", json={
            "left": {"stops": [1, 2, 3]},
            "right": {"stops": [1, 2, 3]},
            "key_paths": ["stops.\u00b2"],
        })

        assert response.status_code == 200
        assert response.json()["findings"][0]["status"] == "same"
        assert response.json()["findings"][0]["left_present"] is False

    async def test_missing_sides(self, client):
        response = await client.post("/api/compare", json={"left": {}})
        assert response.status_code == 422

    async def test_invalid_max_count(self, client):
        response = await client.post("/api/compare", json={"left": 1, "right": 1, "max_count": 0})
        assert response.status_code == 422


class TestPathLookup:
    """POST /api/compare/path"""

    async def test_present_value(self, client):
        tree = {"trip": {"stops": [{"id": "A"}, {"id": "B"}]}}

        response = await client.post("/api/compare/path", json={"tree": tree, "path": "trip.stops[1].id"})

        assert response.json() == {
            "path": "trip.stops[1].id",
            "tokens": ["trip", "stops", 1, "id"],
            "present": True,
            "value": "B",
        }

    async def test_absent_value(self, client):
        response = await client.post("/api/compare/path", json={"tree": {"a": 1}, "path": "a.b.c"})

        assert response.json()["present"] is False
        assert response.json()["value"] is None

    async def test_present_null(self, client):
        response = await client.post("/api/compare/path", json={"tree": {"a": None}, "path": "a"})
        assert response.json()["present"] is True

    async def test_strict_lookup_reports_failing_prefix(self, client):
        response = await client.post(
            "/api/compare/path", json={"tree": {"a": 1}, "path": "a.b.c", "strict": True}
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Path not found at 'a' (leaf node)"

    async def test_strict_lookup_of_present_value(self, client):
        response = await client.post(
            "/api/compare/path", json={"tree": {"a": [1, 2]}, "path": "a[1]", "strict": True}
        )
        assert response.json()["value"] == 2

    async def test_unicode_digit_index(self, client):
        response = await client.post("/api/compare/path", json={"tree": {"stops": [1, 2]}, "path": "stops.²"})

        assert response.status_code == 200
        assert response.json()["present"] is False
