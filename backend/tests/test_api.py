# API 통합 테스트
# - 저장소/메일러 의존성을 인메모리 구현으로 교체 (MongoDB, Redis 불필요)
# - TestClient를 with 없이 사용하므로 startup(DB 연결) 이벤트는 실행되지 않음
import pytest
from fastapi.testclient import TestClient

from conftest import PASSWORD
from hijab_api.api.deps import get_mailer, get_review_repository, get_style_repository, get_user_repository
from hijab_api.main import app

IMAGE = "https://cdn.example.com/wrap.jpg"
REVIEW_TEXT = "Stays put all day, very comfortable."


@pytest.fixture
def client(users, styles, reviews, mailer):
    app.dependency_overrides[get_user_repository] = lambda: users
    app.dependency_overrides[get_style_repository] = lambda: styles
    app.dependency_overrides[get_review_repository] = lambda: reviews
    app.dependency_overrides[get_mailer] = lambda: mailer
    yield TestClient(app)
    app.dependency_overrides.clear()


def signup(client, name="Amina", email="amina@example.com"):
    res = client.post("/api/v1/auth/register", json={"name": name, "email": email, "password": PASSWORD})
    assert res.status_code == 201
    res = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    assert res.status_code == 200
    body = res.json()["data"]
    return body["user"]["id"], {"Authorization": f"Bearer {body['tokens']['accessToken']}"}


def create_style(client, headers, name="Classic Wrap", **data):
    res = client.post("/api/v1/styles", json={"name": name, "image": IMAGE, **data}, headers=headers)
    assert res.status_code == 201
    return res.json()["data"]


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["database"] == "disconnected"


def test_register_login_and_me(client, mailer):
    user_id, headers = signup(client)
    assert mailer.verifications[0][0] == "amina@example.com"

    res = client.get("/api/v1/auth/me", headers=headers)
    assert res.status_code == 200
    me = res.json()["data"]
    assert me["id"] == user_id
    assert me["email"] == "amina@example.com"
    assert me["loginCount"] == 1
    assert "hashedPassword" not in me
    assert me["settings"]["privacy"]["profileVisibility"] == "Public"


def test_errors_use_the_envelope(client):
    res = client.get("/api/v1/auth/me")
    assert res.status_code == 401
    assert res.json() == {"success": False, "message": "Not authenticated"}

    res = client.post("/api/v1/auth/register", json={"name": "A", "email": "bad", "password": PASSWORD})
    assert res.status_code == 400
    body = res.json()
    assert body["message"] == "Validation error"
    assert len(body["errors"]) == 2

    res = client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
    assert res.status_code == 401
    assert res.json()["message"] == "Invalid credentials"


def test_duplicate_registration_is_conflict(client):
    signup(client)
    res = client.post(
        "/api/v1/auth/register", json={"name": "Amina", "email": "AMINA@example.com", "password": PASSWORD}
    )
    assert res.status_code == 409


def test_logout_invalidates_token(client):
    _, headers = signup(client)
    assert client.post("/api/v1/auth/logout", headers=headers).status_code == 200
    assert client.get("/api/v1/auth/me", headers=headers).status_code == 401


def test_update_profile_and_private_visibility(client):
    owner_id, owner = signup(client)
    _, viewer = signup(client, "Sara", "sara@example.com")

    res = client.patch(
        "/api/v1/users/me",
        json={"profile": {"bio": "Modest fashion"}, "settings": {"privacy": {"profileVisibility": "Private"}}},
        headers=owner,
    )
    assert res.status_code == 200
    assert res.json()["data"]["profile"]["bio"] == "Modest fashion"

    res = client.get(f"/api/v1/users/{owner_id}", headers=viewer)
    assert res.status_code == 403
    assert res.json()["message"] == "This profile is private"


def test_style_listing_with_pagination(client):
    _, headers = signup(client)
    for i in range(3):
        create_style(client, headers, name=f"Wrap {i}", occasions=["Office"])
    create_style(client, headers, name="Party", occasions=["Party"])

    res = client.get("/api/v1/styles", params={"occasions": "Office", "limit": 2, "page": 1})
    assert res.status_code == 200
    body = res.json()
    assert len(body["data"]) == 2
    assert body["pagination"] == {
        "currentPage": 1,
        "totalPages": 2,
        "totalCount": 3,
        "limit": 2,
        "hasNext": True,
        "hasPrev": False,
    }
    assert body["data"][0]["creator"]["name"] == "Amina"

    res = client.get("/api/v1/styles", params={"occasions": "Picnic"})
    assert res.status_code == 400


def test_style_detail_counts_view_and_includes_reviews(client, styles):
    _, creator = signup(client)
    _, reviewer = signup(client, "Sara", "sara@example.com")
    style = create_style(client, creator)
    res = client.post(
        f"/api/v1/reviews/style/{style['id']}", json={"text": REVIEW_TEXT, "rating": 4.5}, headers=reviewer
    )
    assert res.status_code == 201

    res = client.get(f"/api/v1/styles/{style['id']}")
    assert res.status_code == 200
    detail = res.json()["data"]
    assert detail["style"]["slug"] == "classic-wrap"
    assert detail["reviewStats"]["averageRating"] == 4.5
    assert detail["reviews"][0]["user"]["name"] == "Sara"
    assert styles.items[style["id"]].views == 1


def test_style_like_and_missing_style(client):
    _, headers = signup(client)
    style = create_style(client, headers)
    res = client.post(f"/api/v1/styles/{style['id']}/like", headers=headers)
    assert res.json()["data"] == {"likes": 1}
    res = client.post(f"/api/v1/styles/{style['id']}/like", json={"action": "unlike"}, headers=headers)
    assert res.json()["data"] == {"likes": 0}
    assert client.get("/api/v1/styles/missing").status_code == 404


def test_review_flow(client):
    _, creator = signup(client)
    _, author = signup(client, "Sara", "sara@example.com")
    _, voter = signup(client, "Huda", "huda@example.com")
    style = create_style(client, creator)

    res = client.post(f"/api/v1/reviews/style/{style['id']}", json={"text": REVIEW_TEXT, "rating": 4}, headers=author)
    review = res.json()["data"]
    res = client.post(f"/api/v1/reviews/style/{style['id']}", json={"text": REVIEW_TEXT, "rating": 5}, headers=author)
    assert res.status_code == 409

    res = client.post(f"/api/v1/reviews/{review['id']}/vote", json={"voteType": "helpful"}, headers=voter)
    assert res.json()["data"] == {"helpfulVotes": 1, "unhelpfulVotes": 0}

    res = client.put(f"/api/v1/reviews/{review['id']}", json={"rating": 3}, headers=author)
    assert res.status_code == 200
    assert res.json()["data"]["isEdited"] is True
    assert len(res.json()["data"]["editHistory"]) == 1

    res = client.put(f"/api/v1/reviews/{review['id']}", json={"rating": 1}, headers=voter)
    assert res.status_code == 403

    res = client.get(f"/api/v1/reviews/stats/{style['id']}")
    assert res.json()["data"]["ratingBreakdown"] == {"5": 0, "4": 0, "3": 1, "2": 0, "1": 0}

    res = client.get(f"/api/v1/reviews/can-review/{style['id']}", headers=author)
    assert res.json()["data"]["canReview"] is False


def test_moderation_endpoints_require_staff(client):
    _, headers = signup(client)
    res = client.post("/api/v1/reviews/bulk-delete", json={"reviewIds": ["x"]}, headers=headers)
    assert res.status_code == 403


def test_style_update_with_null_name_is_a_400(client):
    _, headers = signup(client)
    style = create_style(client, headers)
    for body in ({"name": None}, {"tags": None}, {"image": None}):
        res = client.put(f"/api/v1/styles/{style['id']}", json=body, headers=headers)
        assert res.status_code == 400
        assert res.json()["success"] is False
        assert res.json()["errors"]
