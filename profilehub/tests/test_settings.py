from sqlmodel import select

from profilehub.models import AuditEvent
from profilehub.settings import get_min_retention, get_photo_settings


def test_photo_settings_defaults(session):
    settings = get_photo_settings(session)
    assert settings == {"min_retention_seconds": 0, "max_upload_kb": 2048}
    assert get_min_retention(session).total_seconds() == 0


def test_admin_can_update_photo_settings(client, app, session, make_user):
    app.state.current_user_id = make_user("root", is_admin=True).id

    r = client.put("/api/admin/settings/photos", json={"min_retention_seconds": 3600})

    assert r.status_code == 200
    assert r.json()["min_retention_seconds"] == 3600
    assert get_min_retention(session).total_seconds() == 3600
    events = session.exec(select(AuditEvent).where(AuditEvent.action == "setting.update")).all()
    assert len(events) == 1


def test_photo_settings_are_validated(client, app, make_user):
    app.state.current_user_id = make_user("root", is_admin=True).id

    assert client.put("/api/admin/settings/photos", json={"min_retention_seconds": -1}).status_code == 400
    assert client.put("/api/admin/settings/photos", json={"max_upload_kb": "lots"}).status_code == 400
    assert client.put("/api/admin/settings/photos", json={"colour": 1}).status_code == 400
    assert client.get("/api/admin/settings/unknown").status_code == 400


def test_non_admin_cannot_read_settings(client, user):
    assert client.get("/api/admin/settings/photos").status_code == 403


def test_min_retention_setting_drives_upload_policy(client, app, session, make_user, png_bytes):
    admin = make_user("root", is_admin=True)
    app.state.current_user_id = admin.id
    client.put("/api/admin/settings/photos", json={"min_retention_seconds": 3600})

    for _ in range(2):
        r = client.post("/api/settings/profile/photo", files={"profile_photo": ("me.png", png_bytes, "image/png")})
        assert r.status_code == 200

    history = client.get("/api/settings/profile/photo/history").json()["photo_history"]
    assert len(history) == 1
    assert history[0]["is_current"] is True


def test_display_timezone_setting(client, app, make_user):
    app.state.current_user_id = make_user("root", is_admin=True).id

    assert client.put("/api/admin/settings/general", json={"timezone": "Mars/Olympus_Mons"}).status_code == 400
    r = client.put("/api/admin/settings/general", json={"timezone": "Europe/Berlin"})
    assert r.status_code == 200

    assert client.get("/api/settings/profile").json()["timezone"] == "Europe/Berlin"
