"""Integration tests for proxy routes."""

import pytest
from sqlalchemy import select

from zonekeeper.models.powerdns import PDNSRecord
from zonekeeper.models.proxy_route import ProxyRoute
from zonekeeper.models.record import Record
from zonekeeper.models.zone import Zone

PROXY_IP = "72.62.74.183"


@pytest.fixture
def zone_id(authenticated_client):
    response = authenticated_client.post("/api/zones", json={"domain": "example.com"})
    return response.json()["zone"]["id"]


@pytest.fixture
def record_id(authenticated_client, zone_id):
    response = authenticated_client.post(
        "/api/records",
        json={"zone_id": zone_id, "name": "@", "type": "A", "content": "10.0.0.5"},
    )
    return response.json()["record"]["id"]


def _apex_a(db):
    return sorted(
        db.execute(
            select(PDNSRecord.content).where(
                PDNSRecord.name == "example.com", PDNSRecord.type == "A"
            )
        ).scalars()
    )


class TestToggleProxy:
    def test_enable(self, authenticated_client, sync_db_session, record_id):
        response = authenticated_client.post("/api/proxy", json={"record_id": record_id, "proxied": True})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Proxy enabled"
        assert body["data"] == {"proxied": True, "displayed_ip": PROXY_IP, "origin_ip": "10.0.0.5"}
        assert PROXY_IP in _apex_a(sync_db_session)
        assert "10.0.0.5" not in _apex_a(sync_db_session)

    def test_disable(self, authenticated_client, sync_db_session, record_id):
        authenticated_client.post("/api/proxy", json={"record_id": record_id, "proxied": True})

        response = authenticated_client.post("/api/proxy", json={"record_id": record_id, "proxied": False})

        assert response.status_code == 200
        assert response.json()["message"] == "Proxy disabled"
        assert response.json()["data"]["displayed_ip"] == "10.0.0.5"
        assert PROXY_IP not in _apex_a(sync_db_session)

    def test_non_address_record_rejected(self, authenticated_client, sync_db_session, zone_id):
        txt_id = authenticated_client.post(
            "/api/records",
            json={"zone_id": zone_id, "name": "@", "type": "TXT", "content": "hello"},
        ).json()["record"]["id"]

        response = authenticated_client.post("/api/proxy", json={"record_id": txt_id, "proxied": True})

        assert response.status_code == 400
        assert response.json() == {"error": "Only A and AAAA records can be proxied"}
        assert sync_db_session.query(ProxyRoute).count() == 0

    def test_invalid_origin_rejected(self, authenticated_client, record_id):
        response = authenticated_client.post(
            "/api/proxy", json={"record_id": record_id, "proxied": True, "origin_ip": "not-an-ip"}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid IPv4 address format"}

    def test_other_users_record_is_not_found(self, authenticated_client, sync_db_session, other_user):
        zone = Zone(user_id=other_user.id, domain="other.com")
        record = Record(zone=zone, name="other.com", type="A", content="10.1.1.1")
        sync_db_session.add_all([zone, record])
        sync_db_session.commit()

        response = authenticated_client.post("/api/proxy", json={"record_id": record.id, "proxied": True})

        assert response.status_code == 404
        sync_db_session.refresh(record)
        assert record.proxied is False

    def test_missing_record(self, authenticated_client, zone_id):
        response = authenticated_client.post("/api/proxy", json={"record_id": 9999, "proxied": True})

        assert response.status_code == 404

    def test_config_failure_reports_committed_change(
        self, authenticated_client, sync_db_session, record_id, controller
    ):
        controller.reload_ok = False

        response = authenticated_client.post("/api/proxy", json={"record_id": record_id, "proxied": True})

        assert response.status_code == 502
        body = response.json()
        assert body["committed"] is True
        assert body["error"] == "Failed to reload Nginx configuration"
        assert body["data"]["proxied"] is True
        assert PROXY_IP in _apex_a(sync_db_session)

    def test_requires_auth(self, sync_client):
        response = sync_client.post("/api/proxy", json={"record_id": 1, "proxied": True})

        assert response.status_code == 401


class TestProxyStatus:
    def test_lists_proxyable_records(self, authenticated_client, zone_id, record_id):
        authenticated_client.post("/api/proxy", json={"record_id": record_id, "proxied": True})

        response = authenticated_client.get(f"/api/proxy?zone_id={zone_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["proxy_ip"] == PROXY_IP
        (entry,) = body["records"]
        assert entry["id"] == record_id
        assert entry["proxied"] is True
        assert entry["displayed_ip"] == PROXY_IP
        assert entry["origin_ip"] == "10.0.0.5"


class TestRegenerate:
    def test_put_regenerates(self, authenticated_client, record_id, controller, proxy_config):
        authenticated_client.post("/api/proxy", json={"record_id": record_id, "proxied": True})
        controller.calls.clear()

        response = authenticated_client.put("/api/proxy")

        assert response.status_code == 200
        assert response.json()["routes"] == 1
        assert response.json()["path"] == proxy_config.config_path
        assert controller.calls == ["test", "reload"]

    def test_put_reports_failure(self, authenticated_client, record_id, controller):
        authenticated_client.post("/api/proxy", json={"record_id": record_id, "proxied": True})
        controller.test_ok = False

        response = authenticated_client.put("/api/proxy")

        assert response.status_code == 502
        assert response.json() == {"error": "Nginx configuration test failed"}

    def test_sync_repairs_routes(self, authenticated_client, sync_db_session, record_id):
        authenticated_client.post("/api/proxy", json={"record_id": record_id, "proxied": True})
        sync_db_session.query(ProxyRoute).delete()
        sync_db_session.commit()
        sync_db_session.expire_all()

        response = authenticated_client.post("/api/proxy/sync")

        assert response.status_code == 200
        assert response.json()["synced"] == 1
        assert sync_db_session.query(ProxyRoute).count() == 1


class TestEndToEnd:
    def test_example_com_proxy_lifecycle(self, authenticated_client, sync_db_session, proxy_config):
        zone_id = authenticated_client.post("/api/zones", json={"domain": "example.com"}).json()["zone"]["id"]
        seeded = authenticated_client.get(f"/api/zones/authoritative?id={zone_id}").json()["records"]
        assert sorted(r["type"] for r in seeded) == ["A", "A", "NS", "NS", "SOA"]
        assert all(r["ttl"] == 86400 for r in seeded if r["type"] == "NS")

        record_id = authenticated_client.post(
            "/api/records",
            json={"zone_id": zone_id, "name": "@", "type": "A", "content": "10.0.0.5"},
        ).json()["record"]["id"]
        assert "10.0.0.5" in _apex_a(sync_db_session)

        enabled = authenticated_client.post("/api/proxy", json={"record_id": record_id, "proxied": True})
        assert enabled.json()["data"]["displayed_ip"] == PROXY_IP
        assert PROXY_IP in _apex_a(sync_db_session)
        assert "10.0.0.5" not in _apex_a(sync_db_session)
        route = sync_db_session.query(ProxyRoute).one()
        assert route.origin_ip == "10.0.0.5"
        with open(proxy_config.config_path, encoding="utf-8") as f:
            text = f.read()
        assert "server_name example.com;" in text
        assert "proxy_pass http://10.0.0.5:80;" in text

        disabled = authenticated_client.post("/api/proxy", json={"record_id": record_id, "proxied": False})
        assert disabled.json()["data"]["displayed_ip"] == "10.0.0.5"
        assert "10.0.0.5" in _apex_a(sync_db_session)
        assert PROXY_IP not in _apex_a(sync_db_session)
        assert sync_db_session.query(ProxyRoute).count() == 0
        with open(proxy_config.config_path, encoding="utf-8") as f:
            assert "server {" not in f.read()
