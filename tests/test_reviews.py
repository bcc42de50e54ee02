"""
Tests for the reviews endpoints and tour rating aggregation.

These tests verify:
  - All review routes require a login
  - Reviews are created through the nested tour route or with a tour_id
  - One review per user and tour (409 on the second)
  - The tour's ratings_quantity / ratings_average follow every write
  - Users may only edit their own reviews; admins may edit any
"""

import pytest


REVIEWS = "/api/v1/reviews"


def nested(tour_id) -> str:
    return f"/api/v1/tours/{tour_id}/reviews"


async def tour_ratings(client, tour_id) -> tuple[int, float]:
    response = await client.get(f"/api/v1/tours/{tour_id}")
    tour = response.json()["data"]["tour"]
    return tour["ratings_quantity"], tour["ratings_average"]


class TestCreateReview:
    async def test_requires_login(self, client, create_tour):
        tour = await create_tour()
        response = await client.get(nested(tour["id"]))
        assert response.status_code == 401

    async def test_create_nested(self, user_client, create_tour):
        tour = await create_tour()
        response = await user_client.post(
            nested(tour["id"]), json={"review": "Amazing tour", "rating": 4}
        )
        assert response.status_code == 201
        review = response.json()["data"]["review"]
        assert review["tour_id"] == str(tour["id"])
        assert review["user_id"] == str(user_client.user_id)
        assert review["rating"] == 4

    async def test_create_with_tour_id_in_body(self, user_client, create_tour):
        tour = await create_tour()
        response = await user_client.post(
            REVIEWS, json={"review": "Amazing tour", "rating": 4, "tour_id": str(tour["id"])}
        )
        assert response.status_code == 201

    async def test_missing_tour(self, user_client):
        response = await user_client.post(REVIEWS, json={"review": "Where?", "rating": 4})
        assert response.status_code == 400
        assert "tour_id" in response.json()["errors"]

    async def test_unknown_tour(self, user_client):
        response = await user_client.post(
            nested("00000000-0000-0000-0000-000000000000"),
            json={"review": "Where?", "rating": 4},
        )
        assert response.status_code == 404

    async def test_rating_out_of_range(self, user_client, create_tour):
        tour = await create_tour()
        response = await user_client.post(
            nested(tour["id"]), json={"review": "Too good", "rating": 6}
        )
        assert response.status_code == 400
        assert "rating" in response.json()["errors"]

    async def test_one_review_per_tour(self, user_client, create_tour):
        tour = await create_tour()
        body = {"review": "Amazing tour", "rating": 4}
        assert (await user_client.post(nested(tour["id"]), json=body)).status_code == 201
        second = await user_client.post(nested(tour["id"]), json=body)
        assert second.status_code == 409


class TestListReviews:
    async def test_nested_listing_is_scoped_to_the_tour(self, user_client, create_tour):
        first = await create_tour(name="The Forest Hiker")
        second = await create_tour(name="The Sea Explorer")
        await user_client.post(nested(first["id"]), json={"review": "Nice", "rating": 4})
        await user_client.post(nested(second["id"]), json={"review": "Wet", "rating": 3})

        response = await user_client.get(nested(first["id"]))
        assert response.status_code == 200
        reviews = response.json()["data"]["reviews"]
        assert [r["review"] for r in reviews] == ["Nice"]
        assert reviews[0]["user"]["name"] == "Laura Wilson"

        everything = await user_client.get(REVIEWS)
        assert everything.json()["results"] == 2

    async def test_nested_listing_accepts_filters(self, user_client, create_tour):
        tour = await create_tour()
        await user_client.post(nested(tour["id"]), json={"review": "Nice", "rating": 4})
        response = await user_client.get(nested(tour["id"]), params={"rating[gte]": "5"})
        assert response.json()["results"] == 0


class TestRatingAggregation:
    """The tour's rating summary follows review writes."""

    async def test_create_update_delete(self, user_client, make_client, create_user, create_tour):
        tour = await create_tour()
        _, other_token = await create_user("other@example.com", name="Other Reviewer")
        other = make_client(other_token)

        first = await user_client.post(nested(tour["id"]), json={"review": "Good", "rating": 4})
        await other.post(nested(tour["id"]), json={"review": "Great", "rating": 5})
        assert await tour_ratings(user_client, tour["id"]) == (2, 4.5)

        review_id = first.json()["data"]["review"]["id"]
        await user_client.patch(f"{REVIEWS}/{review_id}", json={"rating": 2})
        quantity, average = await tour_ratings(user_client, tour["id"])
        assert quantity == 2
        assert average == pytest.approx(3.5)

        assert (await user_client.delete(f"{REVIEWS}/{review_id}")).status_code == 204
        assert await tour_ratings(user_client, tour["id"]) == (1, 5)

    async def test_last_review_deleted_restores_defaults(self, user_client, create_tour):
        tour = await create_tour()
        created = await user_client.post(nested(tour["id"]), json={"review": "Meh", "rating": 1})
        assert await tour_ratings(user_client, tour["id"]) == (1, 1)

        review_id = created.json()["data"]["review"]["id"]
        await user_client.delete(f"{REVIEWS}/{review_id}")
        assert await tour_ratings(user_client, tour["id"]) == (0, 4.5)

    async def test_average_is_rounded(self, user_client, make_client, create_user, create_tour):
        tour = await create_tour()
        await user_client.post(nested(tour["id"]), json={"review": "A", "rating": 5})
        for i, rating in enumerate((4, 4)):
            _, token = await create_user(f"r{i}@example.com", name=f"Reviewer {i}")
            await make_client(token).post(nested(tour["id"]), json={"review": "B", "rating": rating})
        assert await tour_ratings(user_client, tour["id"]) == (3, 4.3)


class TestReviewOwnership:
    async def test_user_cannot_edit_others_review(self, user_client, make_client, create_user, create_tour):
        tour = await create_tour()
        created = await user_client.post(nested(tour["id"]), json={"review": "Mine", "rating": 4})
        review_id = created.json()["data"]["review"]["id"]

        _, token = await create_user("other@example.com", name="Other Reviewer")
        response = await make_client(token).patch(f"{REVIEWS}/{review_id}", json={"rating": 1})
        assert response.status_code == 403

    async def test_admin_can_delete_any_review(self, user_client, admin_client, create_tour):
        tour = await create_tour()
        created = await user_client.post(nested(tour["id"]), json={"review": "Spam", "rating": 1})
        review_id = created.json()["data"]["review"]["id"]

        response = await admin_client.delete(f"{REVIEWS}/{review_id}")
        assert response.status_code == 204
        assert (await admin_client.get(f"{REVIEWS}/{review_id}")).status_code == 404

    async def test_guide_cannot_edit_reviews(self, user_client, guide_client, create_tour):
        tour = await create_tour()
        created = await user_client.post(nested(tour["id"]), json={"review": "Mine", "rating": 4})
        review_id = created.json()["data"]["review"]["id"]

        response = await guide_client.patch(f"{REVIEWS}/{review_id}", json={"rating": 1})
        assert response.status_code == 403
