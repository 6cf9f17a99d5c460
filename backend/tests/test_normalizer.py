from datetime import datetime, timezone

from app.services.normalizer import NormalizerService


def test_normalize_toggl_entry():
    raw = {
        "id": 3400000001, "wid": 123, "pid": 456, "billable": True,
        "start": "2024-01-08T09:00:00+01:00", "stop": "2024-01-08T10:30:00+01:00",
        "duration": 5400, "description": None, "tags": ["meeting"],
    }
    entry = NormalizerService().normalize_toggl_entry(raw, account_id=1, account_name="Agency", project_name="Support", client_name="Acme")

    assert entry.id == 3400000001
    assert entry.description == ""
    assert entry.start == datetime(2024, 1, 8, 8, 0, tzinfo=timezone.utc)
    assert (entry.workspace_id, entry.project_id) == (123, 456)
    assert (entry.project, entry.client) == ("Support", "Acme")
    assert entry.tags == ["meeting"]
    assert entry.billable is True
    assert entry.responsible is None
    assert entry.source == "api"


def test_normalize_archive_entry_marks_source_and_assumes_utc():
    entry = NormalizerService().normalize_archive_entry({
        "id": "legacy-1",
        "start": "2023-05-01T09:00:00",
        "duration": 1800,
        "responsible": "Old Timer",
        "tags": [12, "x"],
    })

    assert entry.source == "archive"
    assert entry.start.tzinfo is not None
    assert entry.start.hour == 9
    assert entry.responsible == "Old Timer"
    assert entry.tags == ["12", "x"]
