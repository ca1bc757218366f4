"""Review eligibility, authorship and moderation."""

import pytest

from config import settings
from models.category import CatalogStatus
from models.review import ProductReview
from services import reviews as review_service
from utils.errors import Conflict, Forbidden, NotEligible, NotFound


def _submit(db, user, product, rating=5, comment="Great sound"):
    return review_service.submit_review(db, user=user, product_id=product.id, rating=rating, comment=comment)


class TestSubmitReview:
    def test_delivered_purchase_can_review(self, db, customer, product, deliver):
        deliver(customer, product)

        review = _submit(db, customer, product)

        assert review.is_approved is True
        assert review.rating == 5

    def test_without_purchase_is_not_eligible(self, db, customer, product):
        with pytest.raises(NotEligible) as exc:
            _submit(db, customer, product)

        assert exc.value.status_code == 403
        assert exc.value.message == "You can only review products you have purchased"

    def test_verification_can_be_switched_off(self, db, customer, product, monkeypatch):
        monkeypatch.setattr(settings, "REQUIRE_VERIFIED_PURCHASE", False)

        assert _submit(db, customer, product).id is not None

    def test_duplicate_review_conflicts(self, db, customer, product, deliver):
        deliver(customer, product)
        _submit(db, customer, product)

        with pytest.raises(Conflict):
            _submit(db, customer, product, rating=1, comment="Changed my mind")

    def test_retired_product_is_not_found(self, db, customer, product, deliver):
        deliver(customer, product)
        product.status = CatalogStatus.RETIRED
        db.commit()

        with pytest.raises(NotFound):
            _submit(db, customer, product)

    def test_parallel_duplicate_becomes_conflict(self, db, session_factory, customer, product, monkeypatch):
        user_id, product_id = customer.id, product.id

        # A second submission lands between the duplicate check and the insert
        def eligible_after_race(session, *, user_id, product_id):
            other = session_factory()
            other.add(ProductReview(product_id=product_id, user_id=user_id, rating=4, comment="First"))
            other.commit()
            other.close()
            return True

        monkeypatch.setattr(review_service, "has_delivered_purchase", eligible_after_race)

        with pytest.raises(Conflict) as exc:
            _submit(db, customer, product)

        assert exc.value.message == "You have already reviewed this product"
        db.expire_all()
        [kept] = db.query(ProductReview).filter(
            ProductReview.user_id == user_id, ProductReview.product_id == product_id
        ).all()
        assert kept.comment == "First"


class TestAuthorship:
    def test_author_can_edit(self, db, customer, product, deliver):
        deliver(customer, product)
        review = _submit(db, customer, product)
        created_at = review.created_at

        updated = review_service.update_review(
            db, user=customer, review_id=review.id, rating=3, comment="Okay after a month"
        )

        assert updated.rating == 3
        assert updated.comment == "Okay after a month"
        assert updated.created_at == created_at

    def test_other_user_cannot_edit_or_delete(self, db, customer, other_customer, product, deliver):
        deliver(customer, product)
        review = _submit(db, customer, product)

        with pytest.raises(Forbidden):
            review_service.update_review(db, user=other_customer, review_id=review.id, rating=1, comment="x")
        with pytest.raises(Forbidden):
            review_service.delete_review(db, user=other_customer, review_id=review.id)

    def test_missing_review(self, db, customer):
        with pytest.raises(NotFound):
            review_service.delete_review(db, user=customer, review_id=42)


class TestListing:
    def test_product_reviews_hide_rejected(self, db, customer, other_customer, admin, product, deliver):
        deliver(customer, product)
        deliver(other_customer, product)
        kept = _submit(db, customer, product, rating=5)
        hidden = _submit(db, other_customer, product, rating=1, comment="Broke")
        review_service.set_approval(db, review_id=hidden.id, approved=False)

        rows, total = review_service.list_product_reviews(db, product_id=product.id, page=1, page_size=10)

        assert total == 1
        assert [r.id for r in rows] == [kept.id]

    def test_admin_listing_filters(self, db, customer, other_customer, product, deliver):
        deliver(customer, product)
        deliver(other_customer, product)
        _submit(db, customer, product, rating=5)
        hidden = _submit(db, other_customer, product, rating=1, comment="Broke")
        review_service.set_approval(db, review_id=hidden.id, approved=False)

        rows, total = review_service.list_all_reviews(db, page=1, page_size=10, is_approved=False)
        assert total == 1 and rows[0].id == hidden.id

        rows, total = review_service.list_all_reviews(db, page=1, page_size=10, search="smith")
        assert total == 1 and rows[0].user_id == other_customer.id


class TestReviewsApi:
    def test_create_review(self, client, customer, customer_headers, product, deliver):
        deliver(customer, product)

        response = client.post(
            "/reviews",
            params={"product_id": product.id},
            json={"rating": 4, "comment": "Solid"},
            headers=customer_headers,
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["user_name"] == "Jane Doe"
        assert data["product_name"] == "Headphones"

    def test_not_eligible_is_403(self, client, customer_headers, product):
        response = client.post(
            "/reviews",
            params={"product_id": product.id},
            json={"rating": 4, "comment": "Solid"},
            headers=customer_headers,
        )

        assert response.status_code == 403

    def test_rating_out_of_range(self, client, customer_headers, product):
        response = client.post(
            "/reviews",
            params={"product_id": product.id},
            json={"rating": 6, "comment": "Too good"},
            headers=customer_headers,
        )

        assert response.status_code == 400

    def test_product_detail_shows_rating(self, client, customer, customer_headers, product, deliver):
        deliver(customer, product)
        client.post(
            "/reviews",
            params={"product_id": product.id},
            json={"rating": 4, "comment": "Solid"},
            headers=customer_headers,
        )

        data = client.get(f"/products/{product.id}").json()["data"]

        assert data["average_rating"] == 4.0
        assert data["review_count"] == 1
        assert data["reviews"][0]["comment"] == "Solid"

    def test_moderation(self, client, customer, customer_headers, admin_headers, product, deliver):
        deliver(customer, product)
        review_id = client.post(
            "/reviews",
            params={"product_id": product.id},
            json={"rating": 2, "comment": "Meh"},
            headers=customer_headers,
        ).json()["data"]["id"]

        assert client.put(f"/reviews/admin/{review_id}/reject", headers=customer_headers).status_code == 403

        response = client.put(f"/reviews/admin/{review_id}/reject", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["is_approved"] is False
        assert response.json()["data"]["user_email"] == "customer@example.com"

        public = client.get(f"/reviews/product/{product.id}").json()["data"]
        assert public["total"] == 0

        own = client.get("/reviews/user", headers=customer_headers).json()["data"]
        assert own["total"] == 1

    def test_delete_own_review(self, client, customer, customer_headers, product, deliver):
        deliver(customer, product)
        review_id = client.post(
            "/reviews",
            params={"product_id": product.id},
            json={"rating": 5, "comment": "Love it"},
            headers=customer_headers,
        ).json()["data"]["id"]

        response = client.delete(f"/reviews/{review_id}", headers=customer_headers)

        assert response.status_code == 200
        assert client.get("/reviews/user", headers=customer_headers).json()["data"]["total"] == 0
