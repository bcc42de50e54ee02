"""
Tests for the tours endpoints.

These tests verify:
  - Listing through filter -> sort -> fields -> paginate over HTTP
  - Secret tours never appear in default queries
  - Create derives the slug, applies defaults and enforces the constraints,
    including discount-below-price on partial updates
  - Get-by-id eager-loads guides and reviews
  - The top-5 alias, tour statistics, monthly plan and geo queries
"""

import pytest

from tourbook.models.user import UserRole


TOURS = "/api/v1/tours"


async def seed_catalogue(create_tour):
    """Four visible tours and one secret tour."""
    await create_tour(name="The Forest Hiker", price=397, difficulty="easy", ratings_average=4.7)
    await create_tour(name="The Sea Explorer", price=497, difficulty="medium", ratings_average=4.8)
    await create_tour(name="The Snow Adventurer", price=997, difficulty="difficult", ratings_average=4.5)
    await create_tour(name="The City Wanderer", price=1197, difficulty="easy", ratings_average=4.6)
    await create_tour(name="The Secret Passage", price=50, difficulty="easy", secret_tour=True)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

class TestListTours:
    """GET /tours with query-builder parameters."""

    async def test_list_is_public_and_hides_secret_tours(self, client, create_tour):
        await seed_catalogue(create_tour)
        response = await client.get(TOURS)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["results"] == 4
        names = {tour["name"] for tour in body["data"]["tours"]}
        assert "The Secret Passage" not in names

    async def test_secret_tour_cannot_be_fetched_by_id(self, client, create_tour):
        secret = await create_tour(name="The Secret Passage", secret_tour=True)
        response = await client.get(f"{TOURS}/{secret['id']}")
        assert response.status_code == 404

    async def test_filter_equality_and_operators(self, client, create_tour):
        await seed_catalogue(create_tour)
        response = await client.get(TOURS, params={"difficulty": "easy", "price[lt]": "1000"})
        tours = response.json()["data"]["tours"]
        assert [tour["name"] for tour in tours] == ["The Forest Hiker"]

    async def test_filter_gte(self, client, create_tour):
        await seed_catalogue(create_tour)
        response = await client.get(TOURS, params={"price[gte]": "997", "sort": "price"})
        assert [t["price"] for t in response.json()["data"]["tours"]] == [997, 1197]

    async def test_sort_multiple_keys(self, client, create_tour):
        await seed_catalogue(create_tour)
        response = await client.get(TOURS, params={"sort": "difficulty,-price"})
        names = [t["name"] for t in response.json()["data"]["tours"]]
        assert names == [
            "The Snow Adventurer",
            "The City Wanderer",
            "The Forest Hiker",
            "The Sea Explorer",
        ]

    async def test_field_projection(self, client, create_tour):
        await seed_catalogue(create_tour)
        response = await client.get(TOURS, params={"fields": "name,price"})
        tour = response.json()["data"]["tours"][0]
        assert set(tour) == {"id", "name", "price"}

    async def test_field_exclusion(self, client, create_tour):
        await seed_catalogue(create_tour)
        response = await client.get(TOURS, params={"fields": "-summary,-description"})
        tour = response.json()["data"]["tours"][0]
        assert "summary" not in tour
        assert "description" not in tour
        assert "name" in tour
        assert "version" not in tour

    async def test_computed_field_in_projection(self, client, create_tour):
        await create_tour(duration=14)
        response = await client.get(TOURS, params={"fields": "name,duration_weeks"})
        tour = response.json()["data"]["tours"][0]
        assert tour["duration_weeks"] == 2
        assert "duration" not in tour

    async def test_pagination(self, client, create_tour):
        await seed_catalogue(create_tour)
        first = await client.get(TOURS, params={"sort": "price", "limit": "3", "page": "1"})
        second = await client.get(TOURS, params={"sort": "price", "limit": "3", "page": "2"})
        assert first.json()["results"] == 3
        assert [t["price"] for t in second.json()["data"]["tours"]] == [1197]

    async def test_page_past_the_end(self, client, create_tour):
        await seed_catalogue(create_tour)
        response = await client.get(TOURS, params={"limit": "3", "page": "3"})
        assert response.status_code == 404
        assert response.json()["detail"] == "This page does not exist"

    async def test_first_page_of_empty_result_is_fine(self, client):
        response = await client.get(TOURS)
        assert response.status_code == 200
        assert response.json()["results"] == 0

    async def test_unknown_filter_field(self, client):
        response = await client.get(TOURS, params={"colour": "red"})
        assert response.status_code == 400

    async def test_bad_page_value(self, client):
        response = await client.get(TOURS, params={"page": "zero"})
        assert response.status_code == 400

    async def test_list_includes_guides(self, client, create_tour, create_user):
        guide, _ = await create_user("guide@example.com", name="Gia Guide")
        await create_tour(guides=[guide.id])
        response = await client.get(TOURS)
        guides = response.json()["data"]["tours"][0]["guides"]
        assert guides == [{"id": str(guide.id), "name": "Gia Guide", "photo": "default.jpg", "role": "user"}]


# ---------------------------------------------------------------------------
# Create / update / delete
# ---------------------------------------------------------------------------

class TestTourWrites:
    """POST, PATCH and DELETE /tours (admin, lead-guide)."""

    async def test_create_derives_slug_and_defaults(self, admin_client, tour_body):
        response = await admin_client.post(TOURS, json=tour_body(name="The Park Camper"))
        assert response.status_code == 201
        tour = response.json()["data"]["tour"]
        assert tour["slug"] == "the-park-camper"
        assert tour["ratings_average"] == 4.5
        assert tour["ratings_quantity"] == 0
        assert tour["duration_weeks"] == pytest.approx(5 / 7)
        assert "version" not in tour

    async def test_create_rejects_bad_records(self, admin_client, tour_body):
        response = await admin_client.post(
            TOURS, json=tour_body(name="Short", difficulty="extreme", price=-3)
        )
        assert response.status_code == 400
        errors = response.json()["errors"]
        assert set(errors) == {"name", "difficulty", "price"}

    async def test_discount_must_be_below_price(self, admin_client, tour_body):
        response = await admin_client.post(TOURS, json=tour_body(price=300, price_discount=400))
        assert response.status_code == 400
        assert response.json()["errors"]["price_discount"] == (
            "Discount price (400.0) should be below the regular price"
        )

    async def test_discount_checked_on_partial_update(self, admin_client, tour_body):
        """Lowering only the price below the stored discount is rejected."""
        created = await admin_client.post(TOURS, json=tour_body(price=500, price_discount=100))
        tour_id = created.json()["data"]["tour"]["id"]

        response = await admin_client.patch(f"{TOURS}/{tour_id}", json={"price": 50})
        assert response.status_code == 400
        assert "price_discount" in response.json()["errors"]

        ok = await admin_client.patch(f"{TOURS}/{tour_id}", json={"price": 450})
        assert ok.status_code == 200
        assert ok.json()["data"]["tour"]["price"] == 450

    async def test_duplicate_name(self, admin_client, tour_body):
        assert (await admin_client.post(TOURS, json=tour_body())).status_code == 201
        response = await admin_client.post(TOURS, json=tour_body())
        assert response.status_code == 409

    async def test_update_renames_slug(self, admin_client, create_tour):
        tour = await create_tour()
        response = await admin_client.patch(
            f"{TOURS}/{tour['id']}", json={"name": "The Mountain Biker"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["tour"]["slug"] == "the-mountain-biker"

    async def test_update_unknown_tour(self, admin_client):
        response = await admin_client.patch(
            f"{TOURS}/00000000-0000-0000-0000-000000000000", json={"price": 10}
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "No tour found with that ID"

    async def test_unknown_guide_id(self, admin_client, tour_body):
        response = await admin_client.post(
            TOURS, json=tour_body(guides=["00000000-0000-0000-0000-000000000000"])
        )
        assert response.status_code == 400

    async def test_rejected_update_changes_nothing(self, admin_client, create_tour, create_user):
        """A bad guide id fails the whole PATCH, including the valid price."""
        guide, _ = await create_user("guide@example.com", UserRole.GUIDE)
        tour = await create_tour(price=397, guides=[guide.id])

        response = await admin_client.patch(
            f"{TOURS}/{tour['id']}",
            json={"price": 999, "guides": ["00000000-0000-0000-0000-000000000000"]},
        )
        assert response.status_code == 400
        assert response.json()["errors"] == {"guides": "Unknown id"}

        stored = (await admin_client.get(f"{TOURS}/{tour['id']}")).json()["data"]["tour"]
        assert stored["price"] == 397
        assert [g["id"] for g in stored["guides"]] == [str(guide.id)]

    async def test_created_tour_reads_back_unchanged(self, admin_client, client, create_user, tour_body):
        """Every field sent on create comes back from get-by-id."""
        guide, _ = await create_user("guide@example.com", UserRole.GUIDE)
        body = tour_body(
            name="The Wine Taster",
            ratings_average=4.7,
            price_discount=300,
            description="Three days among the vineyards of the Napa Valley",
            images=["tour-6-1.jpg", "tour-6-2.jpg"],
            start_dates=["2025-09-01T09:00:00", "2025-10-01T09:00:00"],
            start_location={
                "type": "Point",
                "coordinates": [-122.29, 38.29],
                "address": "Napa, USA",
                "description": "Napa Valley",
            },
            locations=[
                {
                    "type": "Point",
                    "coordinates": [-122.46, 38.5],
                    "address": "St. Helena, USA",
                    "description": "Vineyard tour",
                    "day": 1,
                },
            ],
            guides=[str(guide.id)],
        )
        created = await admin_client.post(TOURS, json=body)
        assert created.status_code == 201
        tour_id = created.json()["data"]["tour"]["id"]

        response = await client.get(f"{TOURS}/{tour_id}")
        assert response.status_code == 200
        stored = response.json()["data"]["tour"]

        sent = dict(body)
        guide_ids = sent.pop("guides")
        for key, value in sent.items():
            assert stored[key] == value, key
        assert [g["id"] for g in stored["guides"]] == guide_ids
        assert stored["secret_tour"] is False

    async def test_delete(self, admin_client, create_tour):
        tour = await create_tour()
        response = await admin_client.delete(f"{TOURS}/{tour['id']}")
        assert response.status_code == 204
        assert response.content == b""
        assert (await admin_client.get(f"{TOURS}/{tour['id']}")).status_code == 404

    async def test_delete_unknown(self, admin_client):
        response = await admin_client.delete(f"{TOURS}/00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Get by id
# ---------------------------------------------------------------------------

class TestGetTour:
    async def test_includes_reviews_with_authors(self, client, user_client, create_tour):
        tour = await create_tour()
        await user_client.post(
            f"{TOURS}/{tour['id']}/reviews", json={"review": "Loved it", "rating": 5}
        )

        response = await client.get(f"{TOURS}/{tour['id']}")
        assert response.status_code == 200
        data = response.json()["data"]["tour"]
        assert len(data["reviews"]) == 1
        review = data["reviews"][0]
        assert review["review"] == "Loved it"
        assert review["user"]["name"] == "Laura Wilson"
        assert "email" not in review["user"]
        # The review's tour is not repeated inside the tour
        assert "tour" not in review

    async def test_malformed_id(self, client):
        response = await client.get(f"{TOURS}/not-a-uuid")
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Aliases and aggregations
# ---------------------------------------------------------------------------

class TestTourReadModels:
    async def test_top_5_cheap(self, client, create_tour):
        await seed_catalogue(create_tour)
        await create_tour(name="The Wine Taster", price=1997, ratings_average=4.8)
        await create_tour(name="The Star Gazer", price=2997, ratings_average=4.4)

        response = await client.get(f"{TOURS}/top-5-cheap")
        assert response.status_code == 200
        tours = response.json()["data"]["tours"]
        assert len(tours) == 5
        assert [t["name"] for t in tours[:2]] == ["The Sea Explorer", "The Wine Taster"]
        assert set(tours[0]) == {"id", "name", "price", "ratings_average", "summary", "difficulty"}

    async def test_tour_stats(self, client, create_tour):
        await seed_catalogue(create_tour)
        await create_tour(name="The Low Rated Trip", price=10, difficulty="easy", ratings_average=3.0)

        response = await client.get(f"{TOURS}/tour-stats")
        assert response.status_code == 200
        stats = response.json()["data"]["stats"]
        assert [s["difficulty"] for s in stats] == ["MEDIUM", "EASY", "DIFFICULT"]
        easy = stats[1]
        assert easy["num_tours"] == 2
        assert easy["min_price"] == 397
        assert easy["max_price"] == 1197
        assert easy["avg_price"] == pytest.approx(797)

    async def test_monthly_plan(self, guide_client, create_tour):
        await create_tour(
            name="The Forest Hiker",
            start_dates=["2025-04-25T09:00:00", "2025-07-20T09:00:00", "2026-01-05T09:00:00"],
        )
        await create_tour(name="The Sea Explorer", start_dates=["2025-07-01T09:00:00"])

        response = await guide_client.get(f"{TOURS}/monthly-plan/2025")
        assert response.status_code == 200
        plan = response.json()["data"]["plan"]
        assert plan[0] == {
            "month": 7,
            "num_tour_starts": 2,
            "tours": ["The Forest Hiker", "The Sea Explorer"],
        }
        assert plan[1]["month"] == 4
        assert len(plan) == 2


# ---------------------------------------------------------------------------
# Geo queries
# ---------------------------------------------------------------------------

# Los Angeles and San Francisco start points, [lng, lat]
LOS_ANGELES = {"type": "Point", "coordinates": [-118.2437, 34.0522]}
SAN_FRANCISCO = {"type": "Point", "coordinates": [-122.4194, 37.7749]}


class TestGeoQueries:
    async def test_tours_within(self, client, create_tour):
        await create_tour(name="The Sunset Stroller", start_location=LOS_ANGELES)
        await create_tour(name="The Bay Wanderer", start_location=SAN_FRANCISCO)

        response = await client.get(
            f"{TOURS}/tours-within/100/center/34.0,-118.0/unit/mi"
        )
        assert response.status_code == 200
        names = [t["name"] for t in response.json()["data"]["tours"]]
        assert names == ["The Sunset Stroller"]

        wide = await client.get(f"{TOURS}/tours-within/1000/center/34.0,-118.0/unit/km")
        assert wide.json()["results"] == 2

    async def test_distances(self, client, create_tour):
        await create_tour(name="The Sunset Stroller", start_location=LOS_ANGELES)
        await create_tour(name="The Bay Wanderer", start_location=SAN_FRANCISCO)

        response = await client.get(f"{TOURS}/distances/34.0522,-118.2437/unit/km")
        assert response.status_code == 200
        distances = response.json()["data"]["distances"]
        assert [d["name"] for d in distances] == ["The Sunset Stroller", "The Bay Wanderer"]
        assert distances[0]["distance"] == pytest.approx(0, abs=0.01)
        assert distances[1]["distance"] == pytest.approx(559, rel=0.02)

    async def test_malformed_latlng(self, client):
        response = await client.get(f"{TOURS}/distances/not-a-point/unit/km")
        assert response.status_code == 400

    async def test_bad_unit(self, client):
        response = await client.get(f"{TOURS}/distances/34.0,-118.0/unit/parsecs")
        assert response.status_code == 400
