"""Shared test fixtures."""

from datetime import datetime, timezone

import pytest

from sniff.models import AgentDefinition, NormalizedIssue, PlatformActor, PlatformEvent


@pytest.fixture
def issue_payload() -> dict:
    return {
        "type": "Issue",
        "action": "create",
        "createdAt": "2024-05-01T12:00:00.000Z",
        "organizationId": "org_1",
        "data": {
            "id": "issue_abc123",
            "title": "Login broken",
            "description": "Users get a 500 after submitting the login form.",
            "priority": 2,
            "url": "https://linear.app/acme/issue/ENG-123",
            "createdAt": "2024-05-01T12:00:00.000Z",
            "updatedAt": "2024-05-01T12:05:00.000Z",
            "state": {"id": "st_1", "name": "Todo", "type": "unstarted"},
            "team": {"id": "team_1", "key": "ENG", "name": "Engineering"},
            "creator": {"id": "user_1", "name": "Jane Doe", "email": "jane@example.com"},
            "assignee": {"id": "user_2", "name": "Sam Roe", "email": "sam@example.com"},
            "labels": [{"id": "lb_1", "name": "bug", "color": "#f00"}, {"id": "lb_2", "name": "auth", "color": "#0f0"}],
        },
    }


@pytest.fixture
def agent_session_payload() -> dict:
    return {
        "type": "AgentSession",
        "action": "create",
        "createdAt": "2024-05-02T09:00:00.000Z",
        "organizationId": "org_1",
        "agentSession": {
            "id": "as_1",
            "createdAt": "2024-05-02T09:00:00.000Z",
            "updatedAt": "2024-05-02T09:00:01.000Z",
            "creatorId": "user_1",
            "issueId": "issue_abc123",
            "status": "pending",
            "type": "commentThread",
            "creator": {"id": "user_1", "name": "Jane Doe", "email": "jane@example.com"},
            "comment": {"id": "comment_1", "body": "@sniff why is login broken?", "issueId": "issue_abc123"},
            "issue": {
                "id": "issue_abc123",
                "title": "Login broken",
                "teamId": "team_1",
                "team": {"id": "team_1", "key": "ENG", "name": "Engineering"},
                "identifier": "ENG-123",
                "url": "https://linear.app/acme/issue/ENG-123",
                "description": "Users get a 500.",
            },
        },
    }


@pytest.fixture
def agent_activity_payload(agent_session_payload: dict) -> dict:
    return {
        "type": "AgentActivity",
        "action": "create",
        "createdAt": "2024-05-02T09:10:00.000Z",
        "organizationId": "org_1",
        "agentSession": agent_session_payload["agentSession"],
        "agentActivity": {
            "id": "act_1",
            "createdAt": "2024-05-02T09:10:00.000Z",
            "agentSessionId": "as_1",
            "content": {"type": "prompt", "body": "Can you check the session middleware?"},
        },
    }


@pytest.fixture
def agent() -> AgentDefinition:
    return AgentDefinition(id="triage", name="Triage", system_prompt="You triage bugs.")


@pytest.fixture
def issue() -> NormalizedIssue:
    return NormalizedIssue(
        id="issue_abc123",
        title="Login broken",
        description="Users get a 500.",
        state="Todo",
        state_type="unstarted",
        labels=["bug"],
        priority=2,
        url="https://linear.app/acme/issue/ENG-123",
        created_at=datetime(2024, 5, 1, 12, tzinfo=timezone.utc),
        updated_at=datetime(2024, 5, 1, 12, 5, tzinfo=timezone.utc),
    )


@pytest.fixture
def issue_event(issue: NormalizedIssue) -> PlatformEvent:
    return PlatformEvent(
        type="issue_created",
        platform="linear",
        issue=issue,
        actor=PlatformActor(id="user_1", name="Jane Doe"),
    )
