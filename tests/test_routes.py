import pytest

from rental_engine.constants.rental_status import TermsCategory
from rental_engine.models import HardcopyRental

BUYER = "buyer-1"
HEADERS = {"X-Buyer-Id": BUYER}
ADMIN_HEADERS = {"X-Admin-Key": "back-office-key"}


def create_ebook_rental(client, content, item, headers=HEADERS):
    return client.post(
        "/rentals",
        json={
            "content_id": content.id,
            "mode": "ebook",
            "tier": "SINGLE_READ",
            "order_item_id": item.id,
        },
        headers=headers,
    )


def test_root_and_health(client):
    assert client.get("/").status_code == 200

    response = client.get("/health/check")
    assert response.status_code == 200
    assert response.json()["database"] == "ok"


def test_buyer_header_is_required(client, make_content, make_paid_item):
    content = make_content()
    item = make_paid_item(BUYER, content)

    response = create_ebook_rental(client, content, item, headers={})

    assert response.status_code == 401


def test_create_rental_and_read_it(client, make_content, make_paid_item):
    content = make_content()
    item = make_paid_item(BUYER, content)

    response = create_ebook_rental(client, content, item)

    assert response.status_code == 201
    body = response.json()
    assert body["mode"] == "ebook"
    assert body["state"] == "ACTIVE"
    assert body["fee"] == 300
    assert len(body["access_token"]) == 64
    assert body["watermark"]

    active = client.get("/rentals/active", headers=HEADERS).json()
    assert [r["id"] for r in active] == [body["id"]]

    history = client.get("/rentals/history", headers=HEADERS).json()
    assert history["total_items"] == 1
    assert history["results"][0]["id"] == body["id"]


def test_second_rental_conflicts(client, make_content, make_paid_item):
    content = make_content()
    item = make_paid_item(BUYER, content)
    create_ebook_rental(client, content, item)

    response = create_ebook_rental(client, content, item)

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "ALREADY_RENTED"


def test_unpaid_rental(client, make_content, make_paid_item):
    content = make_content()
    item = make_paid_item(BUYER, content, status="PENDING")

    response = create_ebook_rental(client, content, item)

    assert response.status_code == 402
    assert response.json()["error"]["code"] == "NOT_PAID"


def test_access_check(client, make_content, make_paid_item):
    content = make_content()
    rental = create_ebook_rental(client, content, make_paid_item(BUYER, content)).json()
    request = {"mode": "ebook", "content_id": content.id, "rental_id": rental["id"]}

    granted = client.post("/rentals/access", json={**request, "token": rental["access_token"]}, headers=HEADERS)
    assert granted.status_code == 200
    assert granted.json()["locator"] == "https://cdn.example.com/books/lahuta.epub"
    assert granted.json()["access_count"] == 1

    denied = client.post("/rentals/access", json={**request, "token": "f" * 64}, headers=HEADERS)
    assert denied.status_code == 403
    assert denied.json() == {"error": {"code": "ACCESS_DENIED", "message": "Access denied", "details": {}}}

    foreign = client.post(
        "/rentals/access",
        json={**request, "token": rental["access_token"]},
        headers={"X-Buyer-Id": "buyer-2"},
    )
    assert foreign.json() == denied.json()


def test_reported_violation_blocks_access(client, make_content, make_paid_item):
    content = make_content()
    rental = create_ebook_rental(client, content, make_paid_item(BUYER, content)).json()

    reported = client.post(
        "/rentals/events",
        json={
            "rental_id": rental["id"],
            "mode": "ebook",
            "content_id": content.id,
            "kind": "SECURITY_VIOLATION",
            "detail": {"reason": "screen capture"},
        },
        headers=HEADERS,
    )
    assert reported.status_code == 201
    assert reported.json()["kind"] == "SECURITY_VIOLATION"

    response = client.post(
        "/rentals/access",
        json={"mode": "ebook", "content_id": content.id, "rental_id": rental["id"], "token": rental["access_token"]},
        headers=HEADERS,
    )
    assert response.status_code == 403

    events = client.get(f"/rentals/ebook/{rental['id']}/events", headers=HEADERS).json()
    assert [e["kind"] for e in events] == ["RENTAL_CREATED", "SECURITY_VIOLATION"]


def test_end_rental(client, make_content, make_paid_item):
    content = make_content()
    rental = create_ebook_rental(client, content, make_paid_item(BUYER, content)).json()

    ended = client.post(f"/rentals/ebook/{rental['id']}/end", headers=HEADERS)
    assert ended.status_code == 200
    assert ended.json()["state"] == "REVOKED"

    again = client.post(f"/rentals/ebook/{rental['id']}/end", json={"reason": "again"}, headers=HEADERS)
    assert again.status_code == 409


def test_terms_flow(client, make_content, make_paid_item):
    content = make_content()
    item = make_paid_item(BUYER, content)

    published = client.post(
        "/terms",
        json={
            "category": "EBOOK_RENTAL",
            "title": "Kushtet e qirasë së librave elektronikë",
            "version": "1.0",
            "content": "Duke pranuar këto kushte ...",
            "effective_at": "2020-01-01T00:00:00",
        },
    )
    assert published.status_code == 201
    terms_id = published.json()["id"]

    blocked = create_ebook_rental(client, content, item)
    assert blocked.status_code == 428
    assert blocked.json()["error"]["details"]["terms_id"] == terms_id

    status = client.get("/terms/status", params={"category": "EBOOK_RENTAL"}, headers=HEADERS).json()
    assert status["requires_acceptance"] is True

    unconfirmed = client.post(
        "/terms/accept",
        json={"terms_id": terms_id, "confirmed_read": True, "confirmed_understood": False},
        headers=HEADERS,
    )
    assert unconfirmed.status_code == 400

    accepted = client.post(
        "/terms/accept",
        json={"terms_id": terms_id, "confirmed_read": True, "confirmed_understood": True, "scroll_depth": 100},
        headers={**HEADERS, "User-Agent": "lexo-app/2.1"},
    )
    assert accepted.status_code == 201

    assert create_ebook_rental(client, content, item).status_code == 201

    history = client.get("/terms/history", headers=HEADERS).json()
    assert [h["terms_id"] for h in history] == [terms_id]

    reaccept = client.get("/terms/reacceptance", params={"category": "EBOOK_RENTAL"}, headers=HEADERS).json()
    assert reaccept == {"needs_reacceptance": False, "terms": None}


def test_active_terms_missing(client):
    response = client.get(f"/terms/{TermsCategory.SUBSCRIPTION.value}")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NO_ACTIVE_TERMS"


def test_hardcopy_return(client, make_content, make_paid_item):
    content = make_content(inventory=3)
    item = make_paid_item(BUYER, content)

    created = client.post(
        "/rentals",
        json={
            "content_id": content.id,
            "mode": "hardcopy",
            "tier": "MEDIUM_TERM",
            "order_item_id": item.id,
            "shipping_address": "Rruga e Kavajës 40, Tiranë",
        },
        headers=HEADERS,
    )
    assert created.status_code == 201
    rental = created.json()
    assert rental["guarantee"] == 800
    assert "access_token" in rental and rental["access_token"] is None

    shipped = client.post(
        f"/admin/rentals/hardcopy/{rental['id']}/shipment",
        json={"tracking_number": "AL55"},
        headers=ADMIN_HEADERS,
    )
    assert shipped.status_code == 200
    assert shipped.json()["tracking_number"] == "AL55"

    returned = client.post(
        f"/rentals/hardcopy/{rental['id']}/return",
        json={"content_id": content.id, "grade": "GOOD"},
        headers=HEADERS,
    )
    assert returned.status_code == 200
    assert returned.json()["refund_amount"] == 720
    assert returned.json()["late_fee"] == 0

    again = client.post(
        f"/rentals/hardcopy/{rental['id']}/return",
        json={"content_id": content.id, "grade": "GOOD"},
        headers=HEADERS,
    )
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "ALREADY_RETURNED"


def create_hardcopy_rental(client, content, item):
    return client.post(
        "/rentals",
        json={
            "content_id": content.id,
            "mode": "hardcopy",
            "tier": "SHORT_TERM",
            "order_item_id": item.id,
            "shipping_address": "Rruga e Kavajës 40, Tiranë",
        },
        headers=HEADERS,
    ).json()


def test_hardcopy_end_points_to_return(client, session, make_content, make_paid_item):
    content = make_content(inventory=1)
    rental = create_hardcopy_rental(client, content, make_paid_item(BUYER, content))

    ended = client.post(f"/rentals/hardcopy/{rental['id']}/end", headers=HEADERS)
    assert ended.status_code == 409
    assert ended.json()["error"]["code"] == "RETURN_REQUIRED"

    returned = client.post(
        f"/rentals/hardcopy/{rental['id']}/return",
        json={"content_id": content.id, "grade": "EXCELLENT"},
        headers=HEADERS,
    )
    assert returned.status_code == 200
    assert returned.json()["refund_amount"] == 800
    session.refresh(content)
    assert content.inventory == 1


def test_revoked_hardcopy_can_still_be_returned(client, session, make_content, make_paid_item):
    content = make_content(inventory=1)
    rental = create_hardcopy_rental(client, content, make_paid_item(BUYER, content))

    reported = client.post(
        "/rentals/events",
        json={"rental_id": rental["id"], "mode": "hardcopy", "content_id": content.id, "kind": "SECURITY_VIOLATION"},
        headers=HEADERS,
    )
    assert reported.status_code == 201

    returned = client.post(
        f"/rentals/hardcopy/{rental['id']}/return",
        json={"content_id": content.id, "grade": "GOOD"},
        headers=HEADERS,
    )
    assert returned.status_code == 200
    assert returned.json()["refund_amount"] == 720

    session.refresh(content)
    assert content.inventory == 1

    events = client.get(f"/rentals/hardcopy/{rental['id']}/events", headers=HEADERS).json()
    assert "GUARANTEE_REFUNDED" in {e["kind"] for e in events}


@pytest.mark.parametrize("kind", ["GUARANTEE_REFUNDED", "LATE_FEE_CHARGED", "RENTAL_CREATED", "PLAY_SESSION"])
def test_event_endpoint_rejects_ledger_kinds(client, make_content, make_paid_item, kind):
    content = make_content()
    rental = create_ebook_rental(client, content, make_paid_item(BUYER, content)).json()

    response = client.post(
        "/rentals/events",
        json={"rental_id": rental["id"], "mode": "ebook", "content_id": content.id, "kind": kind},
        headers=HEADERS,
    )
    assert response.status_code == 422

    events = client.get(f"/rentals/ebook/{rental['id']}/events", headers=HEADERS).json()
    assert [e["kind"] for e in events] == ["RENTAL_CREATED"]


def test_order_item_is_spent_by_one_rental(client, make_content, make_paid_item):
    content = make_content()
    item = make_paid_item(BUYER, content)
    rental = create_ebook_rental(client, content, item).json()
    client.post(f"/rentals/ebook/{rental['id']}/end", headers=HEADERS)

    response = create_ebook_rental(client, content, item)
    assert response.status_code == 402
    assert response.json()["error"]["code"] == "NOT_PAID"


def test_shipment_requires_admin(client, session, make_content, make_paid_item):
    content = make_content()
    rental = create_hardcopy_rental(client, content, make_paid_item(BUYER, content))
    path = f"/admin/rentals/hardcopy/{rental['id']}/shipment"

    assert client.post(path, json={"tracking_number": "AL1"}).status_code == 403
    assert client.post(path, json={"tracking_number": "AL1"}, headers=HEADERS).status_code == 403
    wrong = client.post(path, json={"tracking_number": "AL1"}, headers={"X-Admin-Key": "guess"})
    assert wrong.status_code == 403

    # the buyer-facing path is gone
    buyer_path = f"/rentals/hardcopy/{rental['id']}/shipment"
    assert client.post(buyer_path, json={"tracking_number": "AL1"}, headers=HEADERS).status_code == 404

    assert session.get(HardcopyRental, rental["id"]).tracking_number is None


def test_overdue_hardcopy_listing(client, make_content, make_paid_item):
    content = make_content()
    create_hardcopy_rental(client, content, make_paid_item(BUYER, content))

    assert client.get("/admin/rentals/hardcopy/overdue").status_code == 403

    listing = client.get("/admin/rentals/hardcopy/overdue", headers=ADMIN_HEADERS)
    assert listing.status_code == 200
    assert listing.json()["total_items"] == 0


def test_hardcopy_without_address(client, make_content, make_paid_item):
    content = make_content()
    item = make_paid_item(BUYER, content)

    response = client.post(
        "/rentals",
        json={"content_id": content.id, "mode": "hardcopy", "tier": "SHORT_TERM", "order_item_id": item.id},
        headers=HEADERS,
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "SHIPPING_ADDRESS_REQUIRED"


def test_audio_listening(client, make_content, make_paid_item):
    content = make_content()
    item = make_paid_item(BUYER, content)
    rental = client.post(
        "/rentals",
        json={"content_id": content.id, "mode": "audio", "tier": "SINGLE_LISTEN", "order_item_id": item.id},
        headers=HEADERS,
    ).json()

    played = client.post(f"/audio/{rental['id']}/play", json={"content_id": content.id}, headers=HEADERS)
    assert played.json()["play_count"] == 1

    timed = client.post(
        f"/audio/{rental['id']}/play-time", json={"content_id": content.id, "seconds": 300}, headers=HEADERS
    )
    assert timed.json()["total_play_seconds"] == 300

    negative = client.post(
        f"/audio/{rental['id']}/play-time", json={"content_id": content.id, "seconds": -5}, headers=HEADERS
    )
    assert negative.status_code == 422

    done = client.post(f"/audio/{rental['id']}/complete", json={"content_id": content.id}, headers=HEADERS)
    assert done.json()["completed"] is True

    stranger = client.post(
        f"/audio/{rental['id']}/play", json={"content_id": content.id}, headers={"X-Buyer-Id": "buyer-2"}
    )
    assert stranger.status_code == 403


def test_subscription_cap(client, make_content):
    content = make_content()

    plan = client.post(
        "/subscriptions",
        json={"name": "Lexues i Vetëm", "price": 490, "max_concurrent": 1, "content_ids": [content.id]},
    )
    assert plan.status_code == 201
    plan_id = plan.json()["id"]

    enrolled = client.post(f"/subscriptions/{plan_id}/subscribe", headers=HEADERS)
    assert enrolled.status_code == 201

    first = client.post("/subscriptions/acquire", json={"content_id": content.id}, headers=HEADERS)
    assert first.status_code == 200
    assert first.json()["current_access"] == 1

    capped = client.post("/subscriptions/acquire", json={"content_id": content.id}, headers=HEADERS)
    assert capped.status_code == 429
    assert capped.json()["error"]["details"] == {"current": 1, "max_concurrent": 1}

    access = client.get("/subscriptions/access", params={"content_id": content.id}, headers=HEADERS).json()
    assert access["has_access"] is True
    assert access["can_acquire_more"] is False

    released = client.post("/subscriptions/release", json={"content_id": content.id}, headers=HEADERS)
    assert released.json()["current_access"] == 0

    mine = client.get("/subscriptions/my", headers=HEADERS).json()
    assert mine["subscription_id"] == plan_id
    assert mine["total_access"] == 1


def test_subscription_catalog_routes(client, make_content):
    content = make_content()
    plan_id = client.post("/subscriptions", json={"name": "Bazë", "price": 0, "max_concurrent": 1}).json()["id"]

    added = client.post(f"/subscriptions/{plan_id}/content/{content.id}")
    assert added.status_code == 201

    catalog = client.get(f"/subscriptions/{plan_id}/content").json()
    assert [c["content_id"] for c in catalog] == [content.id]

    assert client.delete(f"/subscriptions/{plan_id}/content/{content.id}").status_code == 200
    assert client.delete(f"/subscriptions/{plan_id}/content/{content.id}").status_code == 404
    assert client.get("/subscriptions/999/content").status_code == 404


def test_content_views(client, make_content, make_paid_item):
    content = make_content(inventory=1)

    availability = client.get(f"/content/{content.id}/availability").json()
    assert availability["can_be_rented"] is True
    assert availability["modes"]["hardcopy"]["pricing"]["SHORT_TERM"]["guarantee_amount"] == 800

    recommended = client.get(f"/content/{content.id}/recommended-mode").json()
    assert recommended["recommended_mode"] == "hardcopy"

    assert client.get(f"/content/{content.id}/access", headers=HEADERS).json()["has_access"] is False
    create_ebook_rental(client, content, make_paid_item(BUYER, content))
    assert client.get(f"/content/{content.id}/access", headers=HEADERS).json()["has_access"] is True

    info = client.get(f"/content/{content.id}/rental-info", headers=HEADERS).json()
    assert info["active_rentals"]["ebook"]["state"] == "ACTIVE"
    assert info["active_rentals"]["hardcopy"] is None

    assert client.get("/content/404/recommended-mode").status_code == 404
