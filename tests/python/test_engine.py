"""End-to-end tests for the relay engine with a fake AMI client."""

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))

from tdd_relay.config import RelayConfig
from tdd_relay.core import TERM_CLEAR, Phase, RelayEngine
from tdd_relay.core.selector import PROMPT

from conftest import FakeAMIClient, FakeTerminal, make_channel, make_event

ESC = "\x1b"


def make_config(**kwargs):
    kwargs.setdefault("channel", "")
    return RelayConfig(
        ami_host="127.0.0.1",
        dtmf_interval_ms=0,
        select_poll_sec=0.01,
        ws_urls=[],
        **kwargs,
    )


class RecordingMirror:
    def __init__(self):
        self.events = []

    def publish_relay_start(self, leg_id):
        self.events.append(("start", leg_id))

    def publish_text(self, leg_id, role, text):
        self.events.append(("text", leg_id, role, text))

    def publish_relay_end(self, leg_id, outcome):
        self.events.append(("end", leg_id, outcome))


class TestRelayEngine:
    """Test engine flows."""

    @pytest.mark.asyncio
    async def test_configured_channel_relay_and_quit(self, fake_client):
        event = make_event("TddRxMsg", Channel="SIP/100-1", Message="HELLO_THERE")

        async def remote_types_then_operator_answers():
            await fake_client.events.put(event)
            await fake_client.events.join()
            return "A"

        terminal = FakeTerminal(keys=[remote_types_then_operator_answers, ESC, "q"])
        mirror = RecordingMirror()
        engine = RelayEngine(fake_client, terminal, make_config(channel="SIP/100-1"), mirror=mirror)

        assert await engine.run() == 0

        assert fake_client.action_names() == ["TddRx", "TddTx"]
        assert fake_client.actions[0][1] == {"Channel": "SIP/100-1", "Options": "b(1)s"}
        assert fake_client.released == [event]
        assert "*** TDD Relay ***" in terminal.text
        assert "HELLO THERE\nCA : A" in terminal.text
        assert terminal.modes == ["raw", "restored"]
        assert mirror.events[0] == ("start", "SIP/100-1")
        assert mirror.events[-1] == ("end", "SIP/100-1", "quit")
        assert engine.session.phase is Phase.TERMINATING
        assert engine.session.active_leg_id == ""

    @pytest.mark.asyncio
    async def test_select_then_hangup_returns_to_selector(self, fake_client):
        terminal = FakeTerminal(keys=[ESC, "2"], lines=["2\n"])
        engine = RelayEngine(fake_client, terminal, make_config())

        # Second selection prompt hits end of input
        assert await engine.run() == 0

        assert fake_client.action_names() == ["CoreShowChannels", "TddRx", "CoreShowChannels"]
        assert fake_client.actions[1][1]["Channel"] == "SIP/200-2"

    @pytest.mark.asyncio
    async def test_refused_enable_returns_to_selector(self, capsys):
        client = FakeAMIClient(refuse={"TddRx"})
        terminal = FakeTerminal(lines=[])
        engine = RelayEngine(client, terminal, make_config(channel="SIP/100-1"))

        assert await engine.run() == 0

        assert client.action_names() == ["TddRx", "CoreShowChannels"]
        assert "Failed to enable TTY on channel SIP/100-1" in capsys.readouterr().err
        assert terminal.modes == []

    @pytest.mark.asyncio
    async def test_refused_enable_notice_survives_screen_clear(self):
        client = FakeAMIClient(channels=[make_channel("SIP/100-1")], refuse={"TddRx"})
        terminal = FakeTerminal(lines=["\n"])
        engine = RelayEngine(client, terminal, make_config(channel="SIP/100-1"))

        assert await engine.run() == 0

        assert client.action_names() == ["TddRx", "CoreShowChannels", "CoreShowChannels"]
        notice = "Failed to enable TTY on channel SIP/100-1\n"
        assert notice in terminal.output
        assert terminal.output.index(TERM_CLEAR) < terminal.output.index(notice)
        assert terminal.output.index(notice) < terminal.output.index(PROMPT)
        # Only the first listing after the failure carries the notice
        assert terminal.output.count(notice) == 1

    @pytest.mark.asyncio
    async def test_failed_send_returns_to_selector(self, capsys):
        client = FakeAMIClient(refuse={"TddTx"})
        terminal = FakeTerminal(keys="A")
        engine = RelayEngine(client, terminal, make_config(channel="SIP/100-1"))

        assert await engine.run() == 0

        assert client.action_names() == ["TddRx", "TddTx", "CoreShowChannels"]
        assert "CALL DISCONNECTED" in capsys.readouterr().err

        screen = terminal.text
        assert screen.rindex(TERM_CLEAR) < screen.rindex("*** CALL DISCONNECTED ***\n")

    @pytest.mark.asyncio
    async def test_quit_from_selector(self, fake_client):
        terminal = FakeTerminal(lines=["q\n"])
        engine = RelayEngine(fake_client, terminal, make_config())

        assert await engine.run() == 0
        assert "TddRx" not in fake_client.action_names()

    @pytest.mark.asyncio
    async def test_events_during_selection_are_released(self, fake_client):
        hangup = make_event("Hangup", Channel="SIP/200-2")

        async def call_ends_while_prompting():
            await fake_client.events.put(hangup)
            await fake_client.events.join()
            return None

        terminal = FakeTerminal(lines=[call_ends_while_prompting, "q\n"])
        engine = RelayEngine(fake_client, terminal, make_config())

        assert await engine.run() == 0
        assert fake_client.released == [hangup]
        assert fake_client.action_names() == ["CoreShowChannels", "CoreShowChannels"]

    @pytest.mark.asyncio
    async def test_pump_stops_with_engine(self, fake_client):
        engine = RelayEngine(fake_client, FakeTerminal(lines=["q\n"]), make_config())

        await engine.run()
        await asyncio.sleep(0)

        assert engine._pump_task.done()


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
