"""Shared helpers for tests that fake the upload server with httpx.MockTransport."""
import re
from typing import Callable, Dict, List

import httpx

from asset_uploader.services.api_client import HTTPAPIClient

BASE_URL = "http://assets.test"


def make_client(handler: Callable, **kwargs) -> HTTPAPIClient:
    return HTTPAPIClient(BASE_URL, transport=httpx.MockTransport(handler), **kwargs)


def form_fields(request: httpx.Request) -> Dict[str, str]:
    """Plain (non-file) multipart fields of an already-read request."""
    fields = {}
    pattern = rb'Content-Disposition: form-data; name="([^"]+)"\r\n\r\n(.*?)\r\n--'
    for name, value in re.findall(pattern, request.content, re.S):
        fields[name.decode()] = value.decode(errors="replace")
    return fields


class Recorder:
    """Collects strategy/orchestrator callback arguments in order."""

    def __init__(self):
        self.calls: List[tuple] = []

    def __call__(self, *args):
        self.calls.append(args)

    @property
    def values(self) -> List:
        return [args[0] if len(args) == 1 else args for args in self.calls]
