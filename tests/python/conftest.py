"""Pytest configuration and fixtures."""

import asyncio
import os
import sys
from contextlib import contextmanager

import pytest

# Add python directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))

from tdd_relay.ami import AMIListResponse, AMIMessage, AMIResponse


def pytest_configure(config):
    """Configure pytest."""
    os.environ['TDD_RELAY_LOG_LEVEL'] = 'WARNING'
    config.addinivalue_line("markers", "asyncio: mark test as async")


def make_event(name, **fields):
    """Build an AMI event message."""
    return AMIMessage([("Event", name)] + [(k, str(v)) for k, v in fields.items()])


def make_channel(channel, duration="00:00:10", caller="100", called="200"):
    return {
        "Channel": channel,
        "Duration": duration,
        "CallerIDNum": caller,
        "ConnectedLineNum": called,
    }


class FakeAMIClient:
    """In-memory stand-in for AMIClient."""

    def __init__(self, channels=None, refuse=(), list_ok=True):
        self.channels = list(channels or [])
        self.refuse = set(refuse)
        self.list_ok = list_ok
        self.actions = []
        self.released = []
        self.events = asyncio.Queue()

    def action_names(self):
        return [name for name, _ in self.actions]

    async def send_action(self, action, **fields):
        self.actions.append((action, fields))
        status = "Error" if action in self.refuse else "Success"
        return AMIResponse(action=action, message=AMIMessage([("Response", status)]))

    async def send_list_action(self, action, **fields):
        self.actions.append((action, fields))
        if not self.list_ok:
            return AMIListResponse(
                action=action,
                message=AMIMessage([("Response", "Error"), ("Message", "Permission denied")]),
            )
        events = [make_event("CoreShowChannel", **row) for row in self.channels]
        return AMIListResponse(
            action=action,
            message=AMIMessage([("Response", "Success"), ("EventList", "start")]),
            events=events,
            complete=make_event("CoreShowChannelsComplete", EventList="Complete"),
        )

    async def next_event(self):
        return await self.events.get()

    def release_event(self, event):
        self.released.append(event)
        self.events.task_done()


class FakeTerminal:
    """
    Scripted terminal.

    keys / lines are consumed in order; an entry may be an async callable whose
    result is used instead (lines: None means the wait timed out). Running out
    of script is end of input.
    """

    def __init__(self, keys="", lines=None):
        self.keys = list(keys)
        self.lines = list(lines or [])
        self.output = []
        self.modes = []
        self.key_reads = 0

    @property
    def text(self):
        return "".join(self.output)

    def write(self, text):
        self.output.append(text)

    async def read_key(self):
        await asyncio.sleep(0)
        if not self.keys:
            raise EOFError
        self.key_reads += 1
        item = self.keys.pop(0)
        if callable(item):
            item = await item()
        return item

    async def read_line(self, timeout=None):
        await asyncio.sleep(0)
        if not self.lines:
            raise EOFError
        item = self.lines.pop(0)
        if callable(item):
            item = await item()
        return item

    @contextmanager
    def raw_mode(self):
        self.modes.append("raw")
        try:
            yield self
        finally:
            self.modes.append("restored")

    @contextmanager
    def line_mode(self):
        self.modes.append("line")
        try:
            yield self
        finally:
            self.modes.append("raw")


@pytest.fixture
def fake_client():
    return FakeAMIClient(channels=[make_channel("SIP/100-1"), make_channel("SIP/200-2")])


@pytest.fixture
def session():
    from tdd_relay.core import Session
    return Session()
