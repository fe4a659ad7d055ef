"""
Tests for savings goal API endpoints.

The client's clock is frozen at 2024-03-15.
"""


def create_goal(client, target=1_000_000, deadline="2024-12-31", initial=0):
    response = client.post("/goals", json={
        "user_id": 1,
        "name": "New laptop",
        "target_amount": target,
        "deadline": deadline,
        "initial_amount": initial,
    })
    assert response.status_code == 201
    return response.json()


class TestGoals:

    def test_create_goal_returns_derived_view(self, client):
        goal = create_goal(client, initial=250_000)

        assert goal["state"] == "active"
        assert goal["status"] == "active"
        assert goal["progress_percent"] == 25.0
        assert goal["remaining_amount"] == 750_000
        assert goal["days_remaining"] == 291

    def test_close_deadline_is_urgent(self, client):
        goal = create_goal(client, deadline="2024-03-20")
        assert goal["state"] == "urgent"

    def test_past_deadline_returns_400(self, client):
        response = client.post("/goals", json={
            "user_id": 1,
            "name": "Too late",
            "target_amount": 100,
            "deadline": "2024-03-01",
        })
        assert response.status_code == 400

    def test_state_follows_the_clock(self, client, clock):
        goal = create_goal(client, deadline="2024-03-25")
        assert goal["state"] == "active"

        clock.advance(days=5)
        assert client.get(f"/goals/{goal['id']}").json()["state"] == "urgent"

        clock.advance(days=10)
        assert client.get(f"/goals/{goal['id']}").json()["state"] == "overdue"

    def test_list_goals(self, client):
        create_goal(client, deadline="2025-01-01")
        create_goal(client, deadline="2024-06-01")

        goals = client.get("/goals", params={"user_id": 1}).json()

        assert [g["deadline"] for g in goals] == ["2024-06-01", "2025-01-01"]

    def test_update_and_delete(self, client):
        goal = create_goal(client)

        response = client.patch(f"/goals/{goal['id']}", json={"name": "Gaming PC"})
        assert response.json()["name"] == "Gaming PC"

        assert client.delete(f"/goals/{goal['id']}").status_code == 204
        assert client.get(f"/goals/{goal['id']}").status_code == 404


class TestContributions:

    def test_contribution_from_wallet(self, client):
        wallet = client.post("/wallets", json={
            "user_id": 1, "name": "Cash", "initial_amount": 500_000,
        }).json()
        goal = create_goal(client)

        response = client.post(f"/goals/{goal['id']}/contributions", json={
            "amount": 200_000,
            "wallet_id": wallet["id"],
        })

        assert response.status_code == 201
        detail = response.json()
        assert detail["current_amount"] == 200_000
        assert detail["contributions"][0]["transaction_id"] is not None
        assert client.get(f"/wallets/{wallet['id']}").json()["balance"] == 300_000

    def test_failed_debit_leaves_goal_unchanged(self, client):
        goal = create_goal(client, initial=50_000)

        response = client.post(f"/goals/{goal['id']}/contributions", json={
            "amount": 10_000,
            "wallet_id": 999,
        })

        assert response.status_code == 404
        assert client.get(f"/goals/{goal['id']}").json()["current_amount"] == 50_000

    def test_reaching_target_completes(self, client):
        goal = create_goal(client, target=100_000)

        detail = client.post(f"/goals/{goal['id']}/contributions", json={
            "amount": 100_000,
        }).json()

        assert detail["status"] == "completed"
        assert detail["state"] == "completed"

        response = client.post(f"/goals/{goal['id']}/contributions", json={
            "amount": 1,
        })
        assert response.status_code == 409

    def test_zero_contribution_returns_400(self, client):
        goal = create_goal(client)
        response = client.post(f"/goals/{goal['id']}/contributions", json={
            "amount": 0,
        })
        assert response.status_code == 400
