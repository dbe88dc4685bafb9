"""Jira webhook handling: resolved issues wake up the workflow waiting on them."""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .cloudevents import CloudEvent, CloudEventClient

logger = logging.getLogger(__name__)

JIRA_CALLBACK_EVENT_TYPE = "jira_webhook_callback"  # must match the workflow's event definition
WORKFLOW_LABEL_MARKER = "workflowId"
RESOLVED_STATUSES = ("Done", "Resolved")


class _JiraModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class IssueFields(_JiraModel):
    labels: list[str] = []


class Issue(_JiraModel):
    id: str
    key: str
    fields: IssueFields = IssueFields()


class ChangelogItem(_JiraModel):
    field: str
    from_string: Optional[str] = Field(None, alias="fromString")
    to_string: Optional[str] = Field(None, alias="toString")


class Changelog(_JiraModel):
    items: list[ChangelogItem] = []


class JiraEvent(_JiraModel):
    """An ``jira:issue_updated`` webhook payload (commented, generic or resolved)."""

    webhook_event: str = Field("jira:issue_updated", alias="webhookEvent")
    issue_event_type_name: str
    issue: Issue
    changelog: Optional[Changelog] = None
    comment: Optional[dict[str, Any]] = None


class JiraService:
    def __init__(self, cloud_events: CloudEventClient) -> None:
        self.cloud_events = cloud_events

    async def handle_event(self, event: JiraEvent | None) -> None:
        if event is None:
            logger.warning("Received empty event")
            return

        if event.issue_event_type_name != "issue_resolved":
            return

        new_status = None
        if event.changelog:
            new_status = next(
                (item.to_string for item in event.changelog.items if item.field == "status"), None
            )

        label = next((l for l in event.issue.fields.labels if WORKFLOW_LABEL_MARKER in l), None)
        if label is None:
            logger.warning("Received event without JIRA label")
            return

        workflow_instance_id = label[label.find("=") + 1:]
        if new_status not in RESOLVED_STATUSES:
            return

        response = await self.cloud_events.send(
            CloudEvent(
                type=JIRA_CALLBACK_EVENT_TYPE,
                source="jira",
                data=event.model_dump(mode="json", by_alias=True),
                extensions={"kogitoprocrefid": workflow_instance_id},
            )
        )
        if not response.success:
            logger.error("Failed to send cloud event: %s", response.error)
