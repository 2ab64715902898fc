"""Provider connectors package."""

from lifecycle_api.providers.base import BaseConnector
from lifecycle_api.providers.bitbucket import BitbucketConnector
from lifecycle_api.providers.google_workspace import GoogleWorkspaceConnector
from lifecycle_api.providers.hubspot import HubSpotConnector
from lifecycle_api.providers.jira import JiraConnector
from lifecycle_api.providers.noop import FirefliesConnector, NoopConnector, WebflowConnector
from lifecycle_api.providers.passbolt import PassboltConnector
from lifecycle_api.providers.slack import SlackConnector
from lifecycle_api.providers.standup import StandupConnector
from lifecycle_api.providers.webhook import WebhookConnector

__all__ = [
    "BaseConnector",
    "BitbucketConnector",
    "FirefliesConnector",
    "GoogleWorkspaceConnector",
    "HubSpotConnector",
    "JiraConnector",
    "NoopConnector",
    "PassboltConnector",
    "SlackConnector",
    "StandupConnector",
    "WebflowConnector",
    "WebhookConnector",
]
