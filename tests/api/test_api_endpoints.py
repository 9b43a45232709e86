"""HTTP-level tests: routing, auth, error envelope and serialization."""

from datetime import timedelta

import pytest

from wallet_ledger.utils.permissions import Permission
from wallet_ledger.utils.time import utcnow


class TestJoinEndpoint:
    """Tests for POST /tournaments/{id}/join."""

    @pytest.mark.asyncio
    async def test_join_and_read_back(self, client, seed, account_headers):
        """201 with the seat; wallet and history reflect the debit."""
        tournament = await seed.tournament(entry_fee="20.00", capacity=2)
        account = await seed.account(cash="50.00")
        headers = account_headers(account.id)

        response = await client.post(
            f"/api/v1/tournaments/{tournament.id}/join",
            json={"inGameName": "Bravo"},
            headers=headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["seatNumber"] == 1
        assert body["feeCharged"] == "20.00"
        assert body["voucherDenomination"] is None

        wallet = (await client.get("/api/v1/wallet", headers=headers)).json()
        assert wallet["cash"] == "30.00"
        assert wallet["vouchers"] == {"20": 0, "30": 0, "50": 0}

        history = (await client.get("/api/v1/wallet/transactions", headers=headers)).json()
        assert [(t["txType"], t["amount"]) for t in history["items"]] == [
            ("tournament_entry", "-20.00")
        ]

        mine = await client.get(
            f"/api/v1/tournaments/{tournament.id}/participation", headers=headers
        )
        assert mine.status_code == 200
        assert mine.json()["id"] == body["id"]

        seats = (await client.get(f"/api/v1/tournaments/{tournament.id}/participants")).json()
        assert [s["seatNumber"] for s in seats] == [1]

    @pytest.mark.asyncio
    async def test_error_envelope(self, client, seed, account_headers):
        """Domain errors carry a stable code and the request's trace id."""
        tournament = await seed.tournament(entry_fee="0.00", capacity=5)
        account = await seed.account()
        headers = {**account_headers(account.id), "X-Request-ID": "trace-abc"}
        url = f"/api/v1/tournaments/{tournament.id}/join"

        await client.post(url, json={"inGameName": "Alpha"}, headers=headers)
        response = await client.post(url, json={"inGameName": "Alpha"}, headers=headers)

        assert response.status_code == 409
        body = response.json()
        assert body["error"]["code"] == "ALREADY_JOINED"
        assert body["error"]["recoverable"] is False
        assert body["traceId"] == "trace-abc"
        assert response.headers["X-Request-ID"] == "trace-abc"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload, status_code, code",
        [
            ({"inGameName": "ab"}, 400, "INVALID_NAME"),
            ({}, 422, "INVALID_REQUEST"),
            ({"inGameName": "Alpha", "voucherDenomination": 30}, 400, "VOUCHER_MISMATCH"),
        ],
    )
    async def test_rejections(self, client, seed, account_headers, payload, status_code, code):
        tournament = await seed.tournament(entry_fee="20.00")
        account = await seed.account(cash="50.00", vouchers={30: 1})

        response = await client.post(
            f"/api/v1/tournaments/{tournament.id}/join",
            json=payload,
            headers=account_headers(account.id),
        )

        assert response.status_code == status_code
        assert response.json()["error"]["code"] == code

    @pytest.mark.asyncio
    async def test_idempotency_header_replays(self, client, seed, account_headers):
        tournament = await seed.tournament(entry_fee="20.00", capacity=5)
        account = await seed.account(cash="50.00")
        headers = {**account_headers(account.id), "Idempotency-Key": "join-42"}
        url = f"/api/v1/tournaments/{tournament.id}/join"

        first = await client.post(url, json={"inGameName": "Alpha"}, headers=headers)
        second = await client.post(url, json={"inGameName": "Alpha"}, headers=headers)

        assert first.status_code == second.status_code == 201
        assert first.json()["id"] == second.json()["id"]
        wallet = (await client.get("/api/v1/wallet", headers=account_headers(account.id))).json()
        assert wallet["cash"] == "30.00"

    @pytest.mark.asyncio
    async def test_requires_account_token(self, client, seed):
        tournament = await seed.tournament()

        response = await client.post(
            f"/api/v1/tournaments/{tournament.id}/join", json={"inGameName": "Alpha"}
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_REQUIRED"

    @pytest.mark.asyncio
    async def test_unknown_tournament(self, client, seed, account_headers):
        account = await seed.account()
        response = await client.get(
            "/api/v1/tournaments/does-not-exist", headers=account_headers(account.id)
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "TOURNAMENT_NOT_FOUND"


class TestRoomEndpoint:
    @pytest.mark.asyncio
    async def test_room_revealed_to_participant_only(self, client, seed, account_headers):
        tournament = await seed.tournament(
            entry_fee="0.00",
            start_time=utcnow() + timedelta(minutes=2),
            room_id="ROOM-9",
            room_password="pw-9",
        )
        player = await seed.account()
        outsider = await seed.account()
        await client.post(
            f"/api/v1/tournaments/{tournament.id}/join",
            json={"inGameName": "Alpha"},
            headers=account_headers(player.id),
        )

        revealed = await client.get(
            f"/api/v1/tournaments/{tournament.id}/room", headers=account_headers(player.id)
        )
        hidden = await client.get(
            f"/api/v1/tournaments/{tournament.id}/room", headers=account_headers(outsider.id)
        )

        assert revealed.json() == {"roomId": "ROOM-9", "roomPassword": "pw-9"}
        assert hidden.status_code == 200
        assert hidden.json() is None

    @pytest.mark.asyncio
    async def test_participation_missing(self, client, seed, account_headers):
        tournament = await seed.tournament()
        account = await seed.account()
        response = await client.get(
            f"/api/v1/tournaments/{tournament.id}/participation",
            headers=account_headers(account.id),
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "PARTICIPATION_NOT_FOUND"


class TestAdminEndpoints:
    """Admin routes resolve permissions from the admin account on each request."""

    @pytest.mark.asyncio
    async def test_adjust_balance(self, client, seed, admin_headers):
        admin = await seed.admin()
        account = await seed.account(cash="10.00")

        response = await client.post(
            f"/api/v1/admin/accounts/{account.id}/adjust",
            json={"deltas": {"real": "-2.50", "gems": 4}, "reason": "Goodwill"},
            headers=admin_headers(admin.id),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["cash"] == "7.50"
        assert body["gems"] == 4

        log = await client.get("/api/v1/admin/audit-log", headers=admin_headers(admin.id))
        assert [e["action"] for e in log.json()] == ["user_currency_edit"]
        assert log.json()[0]["details"]["reason"] == "Goodwill"

    @pytest.mark.asyncio
    async def test_negative_balance(self, client, seed, admin_headers):
        admin = await seed.admin()
        account = await seed.account(cash="1.00")

        response = await client.post(
            f"/api/v1/admin/accounts/{account.id}/adjust",
            json={"deltas": {"real": "-2.00"}},
            headers=admin_headers(admin.id),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NEGATIVE_BALANCE"

    @pytest.mark.asyncio
    async def test_missing_permission(self, client, seed, admin_headers):
        """Permissions come from the database, not the token."""
        admin = await seed.admin([Permission.USER_VIEW])
        account = await seed.account(cash="10.00")

        response = await client.post(
            f"/api/v1/admin/accounts/{account.id}/adjust",
            json={"deltas": {"real": "5.00"}},
            headers=admin_headers(admin.id),
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

        view = await client.get(
            f"/api/v1/admin/accounts/{account.id}", headers=admin_headers(admin.id)
        )
        assert view.status_code == 200
        assert view.json()["cash"] == "10.00"

    @pytest.mark.asyncio
    async def test_account_token_refused(self, client, seed, account_headers):
        account = await seed.account()

        response = await client.get(
            f"/api/v1/admin/accounts/{account.id}", headers=account_headers(account.id)
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "TOKEN_WRONG_TYPE"

    @pytest.mark.asyncio
    async def test_disabled_admin(self, client, seed, admin_headers):
        admin = await seed.admin(is_active=False)
        account = await seed.account()

        response = await client.get(
            f"/api/v1/admin/accounts/{account.id}", headers=admin_headers(admin.id)
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_tournament_lifecycle_and_prize(
        self, client, seed, admin_headers, account_headers
    ):
        admin = await seed.admin()
        headers = admin_headers(admin.id)
        player = await seed.account(cash="0.00")

        created = await client.post(
            "/api/v1/admin/tournaments",
            json={
                "name": "Weekend Cup",
                "game": "freefire",
                "entryFee": "0",
                "capacity": 2,
                "startTime": (utcnow() + timedelta(days=1)).isoformat(),
            },
            headers=headers,
        )
        assert created.status_code == 201
        tournament_id = created.json()["id"]

        listed = (await client.get("/api/v1/tournaments", params={"game": "freefire"})).json()
        assert [t["id"] for t in listed] == [tournament_id]

        joined = await client.post(
            f"/api/v1/tournaments/{tournament_id}/join",
            json={"inGameName": "Champion"},
            headers=account_headers(player.id),
        )
        participation_id = joined.json()["id"]

        prize = await client.post(
            f"/api/v1/admin/participations/{participation_id}/prize",
            json={"amount": "75.00"},
            headers=headers,
        )
        assert prize.status_code == 200
        assert prize.json()["prizeAmount"] == "75.00"
        assert prize.json()["winnerTagged"] is True

        clawback = await client.post(
            f"/api/v1/admin/participations/{participation_id}/clawback",
            json={"amount": "100.00"},
            headers=headers,
        )
        assert clawback.status_code == 400
        assert clawback.json()["error"]["code"] == "INVALID_AMOUNT"

        edited = await client.patch(
            f"/api/v1/admin/tournaments/{tournament_id}",
            json={"capacity": 3, "name": "Weekend Cup II"},
            headers=headers,
        )
        assert edited.status_code == 200
        assert edited.json()["capacity"] == 3

        deleted = await client.delete(f"/api/v1/admin/tournaments/{tournament_id}", headers=headers)
        assert deleted.json() == {"participantsRemoved": 1}

        log = (
            await client.get(
                "/api/v1/admin/audit-log",
                params={"adminId": admin.id, "limit": 10},
                headers=headers,
            )
        ).json()
        assert [e["action"] for e in log] == [
            "tournament_delete",
            "tournament_edit",
            "money_sent",
            "tournament_create",
        ]

    @pytest.mark.asyncio
    async def test_account_status(self, client, seed, admin_headers):
        admin = await seed.admin()
        account = await seed.account()

        banned = await client.post(
            f"/api/v1/admin/accounts/{account.id}/status",
            json={"status": "banned", "reason": "Cheating"},
            headers=admin_headers(admin.id),
        )
        unban = await client.post(
            f"/api/v1/admin/accounts/{account.id}/status",
            json={"status": "active"},
            headers=admin_headers(admin.id),
        )

        assert banned.json()["status"] == "banned"
        assert unban.status_code == 409
        assert unban.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"

    @pytest.mark.asyncio
    async def test_create_tournament_idempotency_header(self, client, seed, admin_headers):
        """A retried create with the same Idempotency-Key returns the first tournament."""
        admin = await seed.admin()
        headers = {**admin_headers(admin.id), "Idempotency-Key": "create-weekend"}
        body = {
            "name": "Weekend Cup",
            "game": "freefire",
            "entryFee": "5.00",
            "capacity": 8,
            "startTime": (utcnow() + timedelta(days=1)).isoformat(),
        }

        first = await client.post("/api/v1/admin/tournaments", json=body, headers=headers)
        second = await client.post("/api/v1/admin/tournaments", json=body, headers=headers)

        assert first.status_code == second.status_code == 201
        assert second.json()["id"] == first.json()["id"]
        listed = (await client.get("/api/v1/tournaments")).json()
        assert len(listed) == 1

        changed = await client.post(
            "/api/v1/admin/tournaments", json={**body, "capacity": 4}, headers=headers
        )
        assert changed.status_code == 422
        assert changed.json()["error"]["code"] == "IDEMPOTENCY_KEY_REUSED"


class TestAnnouncements:
    @pytest.mark.asyncio
    async def test_create_and_list(self, client, seed, admin_headers):
        admin = await seed.admin([Permission.ANNOUNCEMENT_CREATE])

        created = await client.post(
            "/api/v1/admin/announcements",
            json={"title": "Season 3", "message": "New season starts Monday", "kind": "update"},
            headers=admin_headers(admin.id),
        )
        assert created.status_code == 201

        feed = (await client.get("/api/v1/announcements", params={"kind": "update"})).json()
        assert feed["total"] == 1
        assert feed["pageSize"] == 20
        assert feed["items"][0]["title"] == "Season 3"
        assert feed["items"][0]["createdBy"] == admin.id


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.json()["status"] == "ok"
