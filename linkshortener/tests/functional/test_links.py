import pytest
from datetime import datetime, timedelta, timezone
from fastapi import status
from linkshortener.models import Click, Link
from linkshortener.config import settings

def test_create_short_link(auth_client, test_user):
    # Test creating a link with auto-generated short code
    response = auth_client.post(
        "/links/shorten",
        json={"original_url": "https://example.com"}
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert len(data["short_code"]) == settings.DEFAULT_SHORT_CODE_LENGTH
    assert data["original_url"] == "https://example.com"
    assert data["short_url"].endswith("/" + data["short_code"])
    assert data["click_count"] == 0
    assert "created_at" in data

    # Test creating a link with custom alias
    response = auth_client.post(
        "/links/shorten",
        json={
            "original_url": "https://example.org",
            "custom_alias": "mylink"
        }
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["short_code"] == "mylink"
    assert data["original_url"] == "https://example.org"

    # Test duplicate custom alias
    response = auth_client.post(
        "/links/shorten",
        json={
            "original_url": "https://example.net",
            "custom_alias": "mylink"
        }
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    # Test invalid URL
    response = auth_client.post(
        "/links/shorten",
        json={
            "original_url": "not_a_valid_url",
        }
    )
    assert response.status_code == 422

def test_create_requires_authentication(client, db):
    response = client.post(
        "/links/shorten",
        json={"original_url": "https://example.com"}
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert db.query(Link).count() == 0

@pytest.mark.parametrize("alias", ["ab", "has space", "sign-in", "x" * 21])
def test_create_rejects_bad_alias(auth_client, alias):
    response = auth_client.post(
        "/links/shorten",
        json={"original_url": "https://example.com", "custom_alias": alias}
    )
    assert response.status_code == 422

def test_same_url_gets_distinct_codes(auth_client):
    first = auth_client.post("/links/shorten", json={"original_url": "https://example.com/same"})
    second = auth_client.post("/links/shorten", json={"original_url": "https://example.com/same"})

    assert first.status_code == second.status_code == status.HTTP_201_CREATED
    assert first.json()["short_code"] != second.json()["short_code"]

def test_list_my_links(auth_client, db, other_user):
    db.add(Link(short_code="foreign", original_url="https://example.org", owner_id=other_user.id))
    db.commit()
    for alias in ("older", "newer"):
        auth_client.post(
            "/links/shorten",
            json={"original_url": f"https://example.com/{alias}", "custom_alias": alias}
        )

    response = auth_client.get("/links")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["count"] == 2
    assert [link["short_code"] for link in data["links"]] == ["newer", "older"]

def test_get_link_info(auth_client):
    # Create a link first
    response = auth_client.post(
        "/links/shorten",
        json={"original_url": "https://example.com"}
    )
    short_code = response.json()["short_code"]

    # Test getting link info
    response = auth_client.get(f"/links/{short_code}")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["short_code"] == short_code
    assert data["original_url"] == "https://example.com"

    # Test non-existent link
    response = auth_client.get("/links/nonexistent")
    assert response.status_code == status.HTTP_404_NOT_FOUND

def test_get_expired_link_info(auth_client, db, test_user):
    db.add(Link(
        short_code="stale",
        original_url="https://example.com/stale",
        owner_id=test_user.id,
        expires_at=datetime.now(timezone.utc) - timedelta(minutes=1)
    ))
    db.commit()

    response = auth_client.get("/links/stale")
    assert response.status_code == status.HTTP_410_GONE

def test_update_link(auth_client):
    # Create a link first
    response = auth_client.post(
        "/links/shorten",
        json={"original_url": "https://example.com"}
    )
    short_code = response.json()["short_code"]

    # Test updating link
    response = auth_client.put(
        f"/links/{short_code}",
        json={"original_url": "https://updated-example.com"}
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["short_code"] == short_code
    assert data["original_url"] == "https://updated-example.com"

def test_update_invalidates_cached_destination(auth_client, client, redis_mock):
    auth_client.post(
        "/links/shorten",
        json={"original_url": "https://example.com/old", "custom_alias": "moving"}
    )
    redis_mock.set("url:moving", '{"id": 1, "original_url": "https://example.com/old", "expires_at": null}')

    auth_client.put("/links/moving", json={"original_url": "https://example.com/new"})

    assert redis_mock.get("url:moving") is None
    response = client.get("/moving", follow_redirects=False)
    assert response.headers["location"] == "https://example.com/new"

def test_delete_link(auth_client):
    # Create a link first
    response = auth_client.post(
        "/links/shorten",
        json={"original_url": "https://example.com"}
    )
    short_code = response.json()["short_code"]

    # Test deleting link
    response = auth_client.delete(f"/links/{short_code}")
    assert response.status_code == status.HTTP_204_NO_CONTENT

    # Verify deletion
    response = auth_client.get(f"/links/{short_code}")
    assert response.status_code == status.HTTP_404_NOT_FOUND

def test_only_owner_can_modify(client, db, test_user, other_user, auth_headers):
    db.add(Link(short_code="owned", original_url="https://example.com/owned", owner_id=test_user.id))
    db.commit()
    headers = auth_headers(other_user)

    response = client.put("/links/owned", json={"original_url": "https://evil.example.com"}, headers=headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.delete("/links/owned", headers=headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.get("/links/owned/stats", headers=headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.delete("/links/owned")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED

    link = db.query(Link).filter(Link.short_code == "owned").first()
    assert link.original_url == "https://example.com/owned"

def test_get_link_stats(auth_client, db):
    # Create link
    timestamp = datetime.now().timestamp()
    test_url = f"https://stats-test-{int(timestamp)}.com"

    response = auth_client.post(
        "/links/shorten",
        json={"original_url": test_url}
    )
    assert response.status_code == 201
    short_code = response.json()["short_code"]

    # Get link from db
    link = db.query(Link).filter(Link.short_code == short_code).first()

    # Update click count
    link.click_count = 3
    link.last_accessed = datetime.now(timezone.utc)

    # Create clicks
    for i in range(3):
        click = Click(
            link_id=link.id,
            ip_address=f"192.168.1.{i}",
            user_agent="Test Browser",
            referer="https://test.com"
        )
        db.add(click)

    db.commit()

    # Check stats
    response = auth_client.get(f"/links/{short_code}/stats")
    assert response.status_code == 200
    stats = response.json()

    assert stats["short_code"] == short_code
    assert stats["original_url"] == test_url
    assert stats["click_count"] == 3
    assert stats["last_accessed"] is not None
    assert len(stats["recent_clicks"]) == 3

def test_health(client):
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}
