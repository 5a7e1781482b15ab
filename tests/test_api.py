import base58
from fastapi.testclient import TestClient
from pymongo.errors import PyMongoError

from calix.api import create_app
from calix.config import Settings
from calix.logic.identity import COOKIE_NAME

from conftest import days, food, session

MESSAGE = "Link this wallet to Calix"


def seven_day_log():
    return {
        "diet": {d: [food(calories=2000, protein=60)] for d in days(1, 7)},
        "activity": {d: [session(duration=30)] for d in days(1, 7)},
        "goals": {"calorieGoal": 2000, "proteinGoal": 50, "activityGoal": 30},
        "goalStory": "Feel stronger",
    }


def link(client, wallet):
    return client.post("/api/wallet/link", json={
        "publicKey": wallet.address,
        "message": MESSAGE,
        "signature": wallet.sign_b58(MESSAGE),
    })


class TestIdentity:
    def test_first_request_issues_cookie(self, client):
        response = client.get("/api/data")
        assert response.status_code == 200
        cookie = response.headers["set-cookie"]
        assert cookie.startswith(f"{COOKIE_NAME}=")
        assert "HttpOnly" in cookie
        assert "samesite=lax" in cookie.lower()
        assert "Max-Age=31536000" in cookie

    def test_existing_cookie_is_reused(self, client, collection):
        client.get("/api/data")
        anon_id = client.cookies.get(COOKIE_NAME)
        response = client.get("/api/data")
        assert "set-cookie" not in response.headers
        assert client.cookies.get(COOKIE_NAME) == anon_id
        assert list(collection.docs) == [anon_id]

    def test_malformed_cookie_is_replaced(self, client):
        client.cookies.set(COOKIE_NAME, "bad id!")
        response = client.get("/api/data")
        assert f"{COOKIE_NAME}=" in response.headers["set-cookie"]

    def test_clients_get_distinct_identities(self, app):
        first = TestClient(app).get("/api/data").cookies.get(COOKIE_NAME)
        second = TestClient(app).get("/api/data").cookies.get(COOKIE_NAME)
        assert first and second and first != second


class TestData:
    def test_empty_read(self, client):
        body = client.get("/api/data").json()
        assert body["diet"] == {}
        assert body["activity"] == {}
        assert body["goals"] is None
        assert body["goalStory"] == ""
        assert body["walletAddress"] is None
        assert body["achievementsEarned"] == []
        assert body["achievementsMinted"] == []
        assert len(body["achievementsMeta"]) == 8

    def test_write_then_read(self, client):
        assert client.put("/api/data", json=seven_day_log()).json() == {"ok": True}
        body = client.get("/api/data").json()
        assert body["goalStory"] == "Feel stronger"
        assert body["diet"]["2024-01-01"][0]["protein"] == 60
        assert set(body["achievementsEarned"]) == {
            "first_food", "first_activity", "streak_3", "streak_7",
            "protein_goal_5", "calorie_goal_5", "activity_goal_5",
        }

    def test_write_does_not_compute_achievements(self, client, collection):
        client.put("/api/data", json=seven_day_log())
        doc = next(iter(collection.docs.values()))
        assert "achievementsEarned" not in doc
        assert "updatedAt" in doc

    def test_null_fields_take_shape_defaults(self, client, collection):
        client.put("/api/data", json={"diet": None, "goalStory": None})
        doc = next(iter(collection.docs.values()))
        assert doc["diet"] == {}
        assert doc["activity"] == {}
        assert doc["goals"] is None
        assert doc["goalStory"] == ""

    def test_bad_shape_is_a_validation_failure(self, client):
        response = client.put("/api/data", json={"diet": ["not", "a", "mapping"]})
        assert response.status_code == 400
        assert response.json()["code"] == "ValidationFailure"

    def test_read_prunes_minted_after_retroactive_edit(self, client, collection):
        client.put("/api/data", json=seven_day_log())
        anon_id = client.cookies.get(COOKIE_NAME)
        collection.docs[anon_id]["achievementsEarned"] = ["streak_7"]
        collection.docs[anon_id]["achievementsMinted"] = ["streak_7", "first_food"]

        client.put("/api/data", json={"diet": {"2024-01-01": [food()]}})
        body = client.get("/api/data").json()

        assert body["achievementsMinted"] == ["first_food"]
        assert set(body["achievementsMinted"]) <= set(body["achievementsEarned"])
        assert collection.docs[anon_id]["achievementsMinted"] == ["first_food"]

    def test_failed_reconciliation_write_fails_the_read(self, client, collection, monkeypatch):
        anon_id = "e" * 32
        collection.docs[anon_id] = {"_id": anon_id, "diet": {"2024-01-01": [food()]}}
        client.cookies.set(COOKIE_NAME, anon_id)

        def disk_full(*args, **kwargs):
            raise PyMongoError("disk full")
        monkeypatch.setattr(collection, "update_one", disk_full)

        response = client.get("/api/data")
        assert response.status_code == 502
        assert response.json() == {"error": "Failed to save achievements.", "code": "UpstreamFailure"}
        assert collection.docs[anon_id] == {"_id": anon_id, "diet": {"2024-01-01": [food()]}}

    def test_repeated_reads_are_identical(self, client, collection):
        client.put("/api/data", json=seven_day_log())
        first = client.get("/api/data").json()
        writes = len(collection.updates)
        second = client.get("/api/data").json()
        assert first == second
        assert len(collection.updates) == writes


class TestWallet:
    def test_link_and_disconnect(self, client, wallet):
        response = link(client, wallet)
        assert response.status_code == 200
        assert response.json() == {"ok": True, "walletAddress": wallet.address}
        assert client.get("/api/data").json()["walletAddress"] == wallet.address

        assert client.post("/api/wallet/disconnect").json() == {"ok": True}
        assert client.get("/api/data").json()["walletAddress"] is None

    def test_63_byte_signature(self, client, wallet, collection):
        short = base58.b58encode(wallet.sign(MESSAGE)[:63]).decode()
        response = client.post("/api/wallet/link", json={
            "publicKey": wallet.address, "message": MESSAGE, "signature": short,
        })
        assert response.status_code == 401
        assert response.json()["code"] == "InvalidSignatureLength"
        assert collection.docs == {}

    def test_wrong_signature(self, client, wallet, collection):
        response = client.post("/api/wallet/link", json={
            "publicKey": wallet.address, "message": MESSAGE + " tampered", "signature": wallet.sign_b58(MESSAGE),
        })
        assert response.status_code == 401
        assert response.json() == {"error": "Signature verification failed.", "code": "InvalidSignature"}
        assert collection.docs == {}

    def test_rejected_link_still_issues_cookie(self, client, wallet):
        response = client.post("/api/wallet/link", json={
            "publicKey": wallet.address, "message": MESSAGE + " tampered", "signature": wallet.sign_b58(MESSAGE),
        })
        assert response.status_code == 401
        assert f"{COOKIE_NAME}=" in response.headers["set-cookie"]

    def test_missing_fields(self, client):
        response = client.post("/api/wallet/link", json={"publicKey": "abc"})
        assert response.status_code == 400
        assert response.json()["code"] == "ValidationFailure"


class TestMint:
    def test_mint_flow(self, client, wallet, mint_client):
        client.put("/api/data", json=seven_day_log())
        link(client, wallet)

        response = client.post("/api/achievements/streak_7/mint")
        assert response.status_code == 200
        assert response.json() == {"ok": True, "achievementId": "streak_7", "transaction": "tx-1"}
        assert mint_client.calls[0][0] == wallet.address
        assert client.get("/api/data").json()["achievementsMinted"] == ["streak_7"]

        again = client.post("/api/achievements/streak_7/mint")
        assert again.status_code == 409
        assert again.json()["code"] == "AlreadyMinted"
        assert len(mint_client.calls) == 1

    def test_wallet_not_linked(self, client):
        response = client.post("/api/achievements/first_food/mint")
        assert response.status_code == 409
        assert response.json()["code"] == "WalletNotLinked"

    def test_error_with_existing_cookie_sets_none(self, client):
        client.get("/api/data")
        response = client.post("/api/achievements/first_food/mint")
        assert response.json()["code"] == "WalletNotLinked"
        assert "set-cookie" not in response.headers

    def test_unknown_achievement(self, client, wallet):
        link(client, wallet)
        response = client.post("/api/achievements/moon_walk/mint")
        assert response.status_code == 404
        assert response.json()["code"] == "UnknownAchievement"

    def test_not_earned(self, client, wallet):
        link(client, wallet)
        response = client.post("/api/achievements/first_food/mint")
        assert response.status_code == 409
        assert response.json()["code"] == "NotEarned"

    def test_minting_unavailable(self, store, wallet):
        client = TestClient(create_app(Settings(), store=store))
        client.put("/api/data", json=seven_day_log())
        link(client, wallet)
        response = client.post("/api/achievements/first_food/mint")
        assert response.status_code == 503
        assert response.json()["code"] == "MintingUnavailable"


class TestWithoutStore:
    def test_data_routes_answer_503(self):
        client = TestClient(create_app(Settings()))
        for response in (
            client.get("/api/data"),
            client.put("/api/data", json={}),
            client.post("/api/wallet/disconnect"),
            client.post("/api/achievements/first_food/mint"),
        ):
            assert response.status_code == 503
            assert response.json()["code"] == "ConfigurationMissing"

    def test_error_response_carries_new_cookie(self):
        response = TestClient(create_app(Settings())).get("/api/data")
        assert response.status_code == 503
        assert response.headers["set-cookie"].startswith(f"{COOKIE_NAME}=")

    def test_health_reports_collaborators(self):
        body = TestClient(create_app(Settings())).get("/api/health").json()
        assert body == {"ok": True, "mongodb": False, "minting": False}

    def test_lifespan_without_uri_keeps_store_unset(self):
        app = create_app(Settings())
        with TestClient(app) as client:
            assert client.get("/api/health").json()["mongodb"] is False


def test_health_with_collaborators(client):
    assert client.get("/api/health").json() == {"ok": True, "mongodb": True, "minting": True}


def test_catalog_route(client):
    body = client.get("/api/achievements").json()
    assert [a["id"] for a in body][:2] == ["first_food", "first_activity"]
    assert all(set(a) == {"id", "name", "description"} for a in body)
