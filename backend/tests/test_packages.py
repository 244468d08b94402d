"""
Tests for the package catalog: availability and seasonal pricing rules,
ownership, approval workflow and public listing filters.
"""

from datetime import datetime

from pleasure_holidays.services.packages import can_reserve, is_available, seasonal_price


def _package(is_approved=True, is_active=True, total=10, booked=0) -> dict:
    return {
        "is_approved": is_approved,
        "availability": {"is_active": is_active, "total_slots": total, "booked_slots": booked},
    }


def test_is_available():
    """A package is bookable only when approved, active and not full."""
    cases = [
        (_package(), True),
        (_package(booked=9), True),
        (_package(booked=10), False),
        (_package(is_approved=False), False),
        (_package(is_active=False), False),
        ({}, False),
    ]
    for package, expected in cases:
        assert is_available(package) is expected, package


def test_can_reserve_needs_room_for_whole_party():
    package = _package(total=10, booked=7)
    assert can_reserve(package, 3)
    assert not can_reserve(package, 4)
    assert not can_reserve(_package(is_approved=False), 1)


def test_seasonal_price_first_matching_window_wins():
    pricing = {
        "base_price": 1000,
        "seasonal_pricing": [
            {"season": "peak", "multiplier": 1.5, "start_date": datetime(2026, 12, 20), "end_date": datetime(2027, 1, 5)},
            {"season": "shoulder", "multiplier": 1.2, "start_date": datetime(2026, 12, 1), "end_date": datetime(2027, 1, 31)},
        ],
    }
    assert seasonal_price(pricing, datetime(2026, 12, 25)) == (1500, "peak")
    assert seasonal_price(pricing, datetime(2026, 12, 10)) == (1200, "shoulder")
    # Boundaries are inclusive
    assert seasonal_price(pricing, datetime(2027, 1, 5)) == (1500, "peak")
    assert seasonal_price(pricing, datetime(2026, 6, 1)) == (1000, None)
    assert seasonal_price({"base_price": 800}, datetime(2026, 6, 1)) == (800, None)


def test_admin_created_package_is_approved_and_listed(client, make_package):
    package = make_package()
    assert package["is_approved"] is True
    assert package["is_available"] is True
    assert package["available_slots"] == 10

    res = client.get("/api/packages")
    assert res.status_code == 200
    data = res.json()["data"]
    assert [p["id"] for p in data["packages"]] == [package["id"]]
    assert data["pagination"]["total"] == 1


def test_agent_package_needs_approval(client, agent, admin_headers, make_package):
    agent_headers, _ = agent
    package = make_package(headers=agent_headers)
    assert package["is_approved"] is False

    assert client.get("/api/packages").json()["data"]["packages"] == []
    pending = client.get("/api/packages/pending/approval", headers=admin_headers).json()["data"]["packages"]
    assert [p["id"] for p in pending] == [package["id"]]

    res = client.post(f"/api/packages/{package['id']}/approve", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["package"]["is_approved"] is True

    again = client.post(f"/api/packages/{package['id']}/approve", headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["message"] == "Package is already approved"

    assert len(client.get("/api/packages").json()["data"]["packages"]) == 1


def test_reject_package(client, agent, admin_headers, make_package):
    agent_headers, _ = agent
    package = make_package(headers=agent_headers)

    res = client.post(f"/api/packages/{package['id']}/reject", json={"reason": "Missing itinerary"}, headers=admin_headers)
    assert res.status_code == 200
    rejected = res.json()["data"]["package"]
    assert rejected["is_approved"] is False
    assert rejected["rejection_reason"] == "Missing itinerary"

    assert client.post(f"/api/packages/{package['id']}/reject", headers=admin_headers).status_code == 400
    assert client.get("/api/packages/pending/approval", headers=admin_headers).json()["data"]["packages"] == []

    listed = client.get("/api/admin/packages", params={"status": "rejected"}, headers=admin_headers).json()["data"]
    assert [p["id"] for p in listed["packages"]] == [package["id"]]


def test_only_owner_agent_or_admin_can_edit(client, register, admin_headers, make_package):
    owner_headers, _ = register("owner@example.com", role="agent")
    other_headers, _ = register("other@example.com", role="agent")
    package = make_package(headers=owner_headers)

    res = client.put(f"/api/packages/{package['id']}", json={"name": "Hijacked"}, headers=other_headers)
    assert res.status_code == 403

    res = client.put(f"/api/packages/{package['id']}", json={"name": "Goa Deluxe"}, headers=owner_headers)
    assert res.status_code == 200
    assert res.json()["data"]["package"]["name"] == "Goa Deluxe"

    res = client.put(f"/api/packages/{package['id']}", json={"is_active": False}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["package"]["availability"]["is_active"] is False

    assert client.put(f"/api/packages/{package['id']}", json={}, headers=owner_headers).status_code == 400


def test_customers_cannot_create_packages(client, customer, package_payload):
    headers, _ = customer
    assert client.post("/api/packages", json=package_payload(), headers=headers).status_code == 403


def test_delete_package_is_admin_only(client, agent, admin_headers, make_package):
    agent_headers, _ = agent
    package = make_package(headers=agent_headers)

    assert client.delete(f"/api/packages/{package['id']}", headers=agent_headers).status_code == 403
    assert client.delete(f"/api/packages/{package['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/packages/{package['id']}").status_code == 404


def test_unknown_or_malformed_ids_are_not_found(client):
    assert client.get("/api/packages/64b7f0c2a1b2c3d4e5f60718").status_code == 404
    res = client.get("/api/packages/not-an-id")
    assert res.status_code == 404
    assert res.json()["message"] == "Package not found"


def test_listing_filters_and_sorting(client, make_package):
    goa = make_package()
    manali = make_package(
        name="Manali Snow Trek",
        description="Trek through the snow-capped Himalayas",
        destination={"country": "India", "city": "Manali"},
        duration={"days": 7, "nights": 6},
        pricing={"base_price": 2500, "currency": "INR"},
        category="mountain",
        tags=["trek", "snow"],
    )
    bali = make_package(
        name="Bali Honeymoon",
        description="Villas and sunsets",
        destination={"country": "Indonesia", "city": "Bali"},
        duration={"days": 4, "nights": 3},
        pricing={"base_price": 4000, "currency": "INR"},
        category="honeymoon",
        tags=["couples"],
    )

    def ids(**params):
        res = client.get("/api/packages", params=params)
        assert res.status_code == 200, res.text
        return [p["id"] for p in res.json()["data"]["packages"]]

    assert ids(category="mountain") == [manali["id"]]
    assert ids(destination="indonesia") == [bali["id"]]
    assert set(ids(min_price=2000)) == {manali["id"], bali["id"]}
    assert ids(max_price=1500) == [goa["id"]]
    assert set(ids(max_duration=5)) == {goa["id"], bali["id"]}
    assert ids(search="snow") == [manali["id"]]
    assert ids(search="couples") == [bali["id"]]
    # Regex metacharacters are matched literally
    assert ids(search="(") == []
    assert ids(sort_by="price", sort_order="asc") == [goa["id"], manali["id"], bali["id"]]

    page = client.get("/api/packages", params={"page": 2, "page_size": 2}).json()["data"]
    assert len(page["packages"]) == 1
    assert page["pagination"] == {
        "current_page": 2,
        "page_size": 2,
        "total_pages": 2,
        "total": 3,
        "has_next_page": False,
        "has_prev_page": True,
    }

    assert client.get("/api/packages", params={"sort_by": "popularity"}).status_code == 400
    assert client.get("/api/packages", params={"page_size": 500}).status_code == 400


def test_categories_destinations_and_featured(client, make_package):
    make_package()
    make_package(name="Kerala Backwaters", destination={"country": "India", "city": "Alleppey"}, category="cultural")

    categories = client.get("/api/packages/categories").json()["data"]["categories"]
    assert categories == ["beach", "cultural"]

    destinations = client.get("/api/packages/destinations").json()["data"]["destinations"]
    assert destinations == [{"country": "India", "city": "Alleppey"}, {"country": "India", "city": "Goa"}]

    featured = client.get("/api/packages/featured", params={"limit": 1}).json()["data"]["packages"]
    assert len(featured) == 1


def test_price_endpoint_applies_season(client, make_package):
    package = make_package(
        pricing={
            "base_price": 1000,
            "currency": "INR",
            "seasonal_pricing": [
                {
                    "season": "peak",
                    "multiplier": 2.0,
                    "start_date": "2026-12-20T00:00:00Z",
                    "end_date": "2027-01-05T00:00:00Z",
                }
            ],
        }
    )

    peak = client.get(f"/api/packages/{package['id']}/price", params={"date": "2026-12-25T00:00:00Z"}).json()["data"]
    assert peak["price"] == 2000
    assert peak["season"] == "peak"

    regular = client.get(f"/api/packages/{package['id']}/price", params={"date": "2026-06-01T00:00:00Z"}).json()["data"]
    assert regular["price"] == 1000
    assert regular["season"] is None


def test_mine_lists_only_own_packages(client, register, make_package):
    first_headers, _ = register("first@example.com", role="agent")
    second_headers, _ = register("second@example.com", role="agent")
    mine = make_package(headers=first_headers)
    make_package(headers=second_headers)

    listed = client.get("/api/packages/mine", headers=first_headers).json()["data"]["packages"]
    assert [p["id"] for p in listed] == [mine["id"]]
