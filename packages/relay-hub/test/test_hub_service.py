#!/usr/bin/env python3
"""Tests for the hub's HTTP API."""

from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient

from relay_hub.errors import ValidationError
from relay_hub.packet_store import PacketStore
from relay_hub.service import create_app


def submission(src_seq: int = 0, **overrides) -> dict:
    body = {
        "srcChainId": "A",
        "dstChainId": "B",
        "srcSeq": src_seq,
        "sender": "0x" + "aa" * 20,
        "receiver": "0x" + "bb" * 20,
        "payloadHex": "0x" + b"hi".hex(),
        "commitment": "0xc0ffee",
        "proof": {"txHash": "0x01", "header": {"number": 5}},
    }
    body.update(overrides)
    return body


@pytest.fixture
def store(tmp_path):
    with PacketStore(tmp_path / "hub.sqlite") as s:
        yield s


@pytest.fixture
def client(store):
    return TestClient(create_app(store))


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"ok": True}


class TestSubmit:
    """POST /submit status mapping."""

    def test_submit_returns_hub_seq(self, client):
        response = client.post("/submit", json=submission())
        assert response.status_code == 200
        assert response.json() == {"ok": True, "hubSeq": 1}

    def test_duplicate_is_409(self, client, store):
        client.post("/submit", json=submission())
        response = client.post("/submit", json=submission())

        assert response.status_code == 409
        assert response.json()["error"] == "Already submitted"
        assert store.next_hub_seq == 2

    @pytest.mark.parametrize(
        "overrides",
        [
            {"srcSeq": -1},
            {"srcSeq": 1.5},
            {"srcSeq": "3"},
            {"srcChainId": ""},
            {"dstChainId": ""},
            {"sender": ""},
            {"receiver": ""},
            {"commitment": ""},
            {"payloadHex": "hi"},
            {"payloadHex": "0xabc"},
            {"payloadHex": "0xzz"},
            {"srcSeq": 2**63},
            {"srcSeq": 2**64},
        ],
    )
    def test_malformed_submission_is_400_and_not_stored(self, client, store, overrides):
        response = client.post("/submit", json=submission(**overrides))

        assert response.status_code == 400
        assert "error" in response.json()
        assert store.count() == 0

    def test_missing_field_is_400(self, client, store):
        body = submission()
        del body["receiver"]
        assert client.post("/submit", json=body).status_code == 400
        assert store.count() == 0

    def test_largest_storable_src_seq_is_accepted(self, client, store):
        """Test that srcSeq up to the SQLite integer limit is stored intact."""
        response = client.post("/submit", json=submission(2**63 - 1))

        assert response.status_code == 200
        assert store.get(response.json()["hubSeq"]).packet.src_seq == 2**63 - 1

    def test_empty_payload_is_accepted(self, client):
        response = client.post("/submit", json=submission(payloadHex="0x"))
        assert response.status_code == 200

    def test_proof_verifier_can_reject(self, store):
        def reject_all(packet):
            raise ValidationError(f"proof for {packet.src_seq} does not verify")

        client = TestClient(create_app(store, proof_verifier=reject_all))
        response = client.post("/submit", json=submission())

        assert response.status_code == 400
        assert "does not verify" in response.json()["error"]
        assert store.count() == 0

    def test_concurrent_http_submissions_are_dense(self, client):
        n = 20
        with ThreadPoolExecutor(max_workers=8) as pool:
            responses = list(pool.map(lambda i: client.post("/submit", json=submission(i)), range(n)))

        assert all(r.status_code == 200 for r in responses)
        assert sorted(r.json()["hubSeq"] for r in responses) == list(range(1, n + 1))


class TestPendingAndDelivered:
    """GET /pending and POST /markDelivered."""

    def test_pending_returns_records_in_order(self, client):
        for i in range(3):
            client.post("/submit", json=submission(i))

        packets = client.get("/pending").json()["packets"]

        assert [p["hubSeq"] for p in packets] == [1, 2, 3]
        first = packets[0]
        assert first["srcChainId"] == "A"
        assert first["payloadHex"] == "0x6869"
        assert first["proof"] == {"txHash": "0x01", "header": {"number": 5}}
        assert first["delivered"] is False

    def test_pending_limit(self, client):
        for i in range(3):
            client.post("/submit", json=submission(i))
        packets = client.get("/pending", params={"limit": 2}).json()["packets"]
        assert [p["hubSeq"] for p in packets] == [1, 2]

    def test_pending_limit_validation(self, client):
        assert client.get("/pending", params={"limit": 0}).status_code == 400
        assert client.get("/pending", params={"limit": 100000}).status_code == 400

    def test_pending_after_hub_seq_pages_forward(self, client):
        """Test that afterHubSeq skips everything up to and including the cursor."""
        for i in range(5):
            client.post("/submit", json=submission(i))
        client.post("/markDelivered", json={"hubSeq": 4})

        first = client.get("/pending", params={"limit": 2}).json()["packets"]
        second = client.get(
            "/pending", params={"limit": 2, "afterHubSeq": first[-1]["hubSeq"]}
        ).json()["packets"]

        assert [p["hubSeq"] for p in first] == [1, 2]
        assert [p["hubSeq"] for p in second] == [3, 5]

    @pytest.mark.parametrize("after", [-1, 2**63, "x"])
    def test_pending_after_hub_seq_validation(self, client, after):
        assert client.get("/pending", params={"afterHubSeq": after}).status_code == 400

    def test_mark_delivered_then_excluded(self, client):
        client.post("/submit", json=submission(0))
        client.post("/submit", json=submission(1))

        first = client.post("/markDelivered", json={"hubSeq": 1})
        second = client.post("/markDelivered", json={"hubSeq": 1})

        assert first.json() == {"ok": True, "changes": 1}
        assert second.json() == {"ok": True, "changes": 0}
        packets = client.get("/pending").json()["packets"]
        assert [p["hubSeq"] for p in packets] == [2]

    def test_mark_unknown_is_zero(self, client):
        response = client.post("/markDelivered", json={"hubSeq": 77})
        assert response.status_code == 200
        assert response.json()["changes"] == 0

    @pytest.mark.parametrize("hub_seq", [0, -3, "1", 2.5, 2**63, 2**64])
    def test_mark_delivered_validation(self, client, hub_seq):
        assert client.post("/markDelivered", json={"hubSeq": hub_seq}).status_code == 400


class TestEndToEndScenario:
    """The A -> B walkthrough at the hub's surface."""

    def test_submit_mark_and_pending(self, client):
        response = client.post("/submit", json=submission(
            srcChainId="A",
            dstChainId="B",
            srcSeq=0,
            payloadHex="0x" + b"hi".hex(),
            commitment="0xc0ffee",
        ))
        assert response.json()["hubSeq"] == 1

        assert client.post("/markDelivered", json={"hubSeq": 1}).json()["changes"] == 1
        assert client.get("/pending").json()["packets"] == []
