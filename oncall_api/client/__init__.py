from oncall_api.client.api import ClientConfig, ClientError, OnCallClient
from oncall_api.client.mirror import ScheduleMirror

__all__ = ["ClientConfig", "ClientError", "OnCallClient", "ScheduleMirror"]
