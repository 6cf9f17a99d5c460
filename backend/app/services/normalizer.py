from typing import Any, Dict, Optional

from app.schemas.time_entry import TimeEntry


class NormalizerService:
    """
    Service responsible for normalizing raw entries from Toggl and from
    historical archives into the shared `TimeEntry` format.
    """

    def normalize_toggl_entry(
        self,
        toggl_data: Dict[str, Any],
        account_id: Optional[int] = None,
        account_name: Optional[str] = None,
        project_name: Optional[str] = None,
        client_name: Optional[str] = None,
    ) -> TimeEntry:
        """
        Normalizes a raw Toggl v9 time entry dictionary into TimeEntry format.
        """
        # Example Toggl v9 data structure:
        # {
        #   "id": 3400000001, "workspace_id": 123, "project_id": 456, "task_id": null,
        #   "billable": false, "start": "2024-01-08T09:00:00+00:00",
        #   "stop": "2024-01-08T10:30:00+00:00", "duration": 5400,
        #   "description": "Weekly sync", "tags": ["meeting"], "tag_ids": [789]
        # }
        # Running entries have no "stop" and a negative duration.
        return TimeEntry(
            id=toggl_data["id"],
            description=toggl_data.get("description") or "",
            start=toggl_data["start"],
            stop=toggl_data.get("stop"),
            duration=int(toggl_data.get("duration") or 0),
            billable=bool(toggl_data.get("billable", False)),
            tags=toggl_data.get("tags") or [],
            workspace_id=toggl_data.get("workspace_id", toggl_data.get("wid")),
            project_id=toggl_data.get("project_id", toggl_data.get("pid")),
            project=project_name,
            client=client_name,
            account_id=account_id,
            account_name=account_name,
            responsible=toggl_data.get("user") or None,
            source="api",
        )

    def normalize_archive_entry(self, archive_data: Dict[str, Any]) -> TimeEntry:
        """
        Normalizes a stored archive entry. Archive entries keep whatever
        responsible/project labels were extracted when the archive was parsed.
        """
        entry = TimeEntry.model_validate(archive_data)
        return entry.model_copy(update={"source": "archive"})
