"""Unit tests for config audit service."""

from datetime import datetime

from zonekeeper.models.config_change import ConfigChange
from zonekeeper.models.zone import Zone
from zonekeeper.services.config_audit import (
    get_entity_history,
    get_recent_changes,
    get_user_changes,
    record_change,
    snapshot,
)


class TestRecordChange:
    def test_adds_change_to_session(self, sync_db_session, test_user):
        change = record_change(
            sync_db_session,
            entity_type="zone",
            entity_id=7,
            action="create",
            actor_user_id=test_user.id,
            after_data={"domain": "example.com"},
            comment="seeded",
        )
        sync_db_session.commit()

        stored = sync_db_session.get(ConfigChange, change.id)
        assert stored.entity_type == "zone"
        assert stored.after_data == {"domain": "example.com"}
        assert stored.before_data is None
        assert stored.comment == "seeded"
        assert stored.created_at is not None


class TestGetEntityHistory:
    def test_returns_changes_for_entity_type(self, sync_db_session):
        sync_db_session.add_all(
            [
                ConfigChange(entity_type="record", entity_id=1, action="create"),
                ConfigChange(entity_type="record", entity_id=2, action="create"),
                ConfigChange(entity_type="zone", entity_id=1, action="create"),
            ]
        )
        sync_db_session.commit()

        history = get_entity_history(sync_db_session, "record")

        assert len(history) == 2
        assert all(c.entity_type == "record" for c in history)

    def test_filters_by_entity_id_newest_first(self, sync_db_session):
        sync_db_session.add_all(
            [
                ConfigChange(entity_type="record", entity_id=1, action="create"),
                ConfigChange(entity_type="record", entity_id=1, action="update"),
                ConfigChange(entity_type="record", entity_id=2, action="create"),
            ]
        )
        sync_db_session.commit()

        history = get_entity_history(sync_db_session, "record", entity_id=1)

        assert [c.action for c in history] == ["update", "create"]

    def test_respects_limit(self, sync_db_session):
        for i in range(10):
            sync_db_session.add(ConfigChange(entity_type="record", entity_id=i, action="create"))
        sync_db_session.commit()

        assert len(get_entity_history(sync_db_session, "record", limit=5)) == 5


class TestGetRecentChanges:
    def test_returns_all_types(self, sync_db_session):
        sync_db_session.add_all(
            [
                ConfigChange(entity_type="record", entity_id=1, action="create"),
                ConfigChange(entity_type="zone", entity_id=1, action="delete"),
            ]
        )
        sync_db_session.commit()

        recent = get_recent_changes(sync_db_session)

        assert [c.entity_type for c in recent] == ["zone", "record"]


class TestSnapshot:
    def test_serializes_columns(self, sync_db_session, zone):
        data = snapshot(zone)

        assert data["domain"] == "example.com"
        assert data["status"] == "active"
        assert isinstance(data["created_at"], str)
        datetime.fromisoformat(data["created_at"])

    def test_excludes_fields(self, sync_db_session, zone):
        data = snapshot(zone, exclude={"created_at", "updated_at"})

        assert "created_at" not in data
        assert "updated_at" not in data
        assert data["id"] == zone.id

    def test_unsaved_object(self):
        data = snapshot(Zone(domain="new.com", user_id=1))

        assert data["domain"] == "new.com"
        assert data["id"] is None


class TestGetUserChanges:
    def test_own_changes_and_owned_zone_rows(self, sync_db_session, zone, test_user, other_user):
        sync_db_session.add_all(
            [
                ConfigChange(entity_type="record", entity_id=1, action="create", actor_user_id=test_user.id),
                ConfigChange(entity_type="zone", entity_id=zone.id, action="update"),
                ConfigChange(entity_type="zone", entity_id=zone.id + 100, action="create", actor_user_id=other_user.id),
                ConfigChange(entity_type="record", entity_id=2, action="create", actor_user_id=other_user.id),
            ]
        )
        sync_db_session.commit()

        changes = get_user_changes(sync_db_session, test_user.id)

        assert [(c.entity_type, c.action) for c in changes] == [("zone", "update"), ("record", "create")]

    def test_filters_by_entity(self, sync_db_session, test_user):
        sync_db_session.add_all(
            [
                ConfigChange(entity_type="record", entity_id=1, action="create", actor_user_id=test_user.id),
                ConfigChange(entity_type="record", entity_id=2, action="create", actor_user_id=test_user.id),
            ]
        )
        sync_db_session.commit()

        changes = get_user_changes(sync_db_session, test_user.id, "record", 2)

        assert [c.entity_id for c in changes] == [2]
