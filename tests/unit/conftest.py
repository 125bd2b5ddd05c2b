"""Shared fixtures for the provisioning unit tests."""

import pytest

from provisioning.context import ExecutionContext


class RecordingInvoker:
    """Invoker stand-in that records calls and replays canned outcomes."""

    def __init__(self, service, recorder):
        self.service = service
        self._recorder = recorder

    def invoke(self, operation_name, parameters):
        self._recorder.calls.append((self.service, operation_name, dict(parameters)))
        outcome = self._recorder.responses.get(operation_name, {})
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class Recorder:
    """Holds canned responses per operation and every call made."""

    def __init__(self):
        self.calls = []
        self.responses = {}
        self.context = ExecutionContext(
            invoker_factory=lambda service: RecordingInvoker(service, self)
        )

    def operations(self):
        return [operation for _, operation, _ in self.calls]


@pytest.fixture
def recorder():
    """Recorder whose context hands out RecordingInvokers."""
    return Recorder()


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 clients never reach a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-1")
