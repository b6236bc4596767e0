"""Tests for the channel selector."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))

from tdd_relay.core import ChannelSelector, LegTable, SelectableLeg, TranscriptDisplay
from tdd_relay.core.selector import PROMPT, SELECTOR_HEADER, parse_ordinal

from conftest import FakeAMIClient, FakeTerminal, make_channel


def make_selector(client, terminal, session, always_refresh=False):
    display = TranscriptDisplay(terminal.write, session)
    session.begin_selection()
    return ChannelSelector(
        client, terminal, display, session, always_refresh=always_refresh, poll_interval=0.01
    )


def list_count(client):
    return client.action_names().count("CoreShowChannels")


class TestLegTable:
    """Test selectable ordinals."""

    def test_three_legs(self):
        legs = tuple(SelectableLeg(i, f"SIP/{i}00-{i}", "00:00:01", "", "") for i in (1, 2, 3))
        table = LegTable(legs)

        assert table.size == 5
        assert [n for n in range(-1, 7) if table.is_selectable(n)] == [1, 2, 3]
        assert table.leg(3).leg_id == "SIP/300-3"

    def test_empty_table(self):
        table = LegTable()

        assert table.size == 2
        assert not table.is_selectable(0)
        assert not table.is_selectable(1)
        with pytest.raises(IndexError):
            table.leg(1)

    def test_render_lists_channels(self):
        table = LegTable((SelectableLeg(1, "SIP/100-1", "00:01:00", "100", "200"),))

        rendered = table.render()

        assert rendered.startswith("Channels: 1\n")
        assert "SIP/100-1" in rendered
        assert "00:01:00" in rendered

    @pytest.mark.parametrize("text,expected", [
        ("2", 2), (" 3\n", 3), ("2abc", 2), ("abc", 0), ("", 0), ("-1", -1), ("+4", 4),
    ])
    def test_parse_ordinal(self, text, expected):
        assert parse_ordinal(text) == expected


class TestChannelSelector:
    """Test the LIST -> PROMPT -> VALIDATE loop."""

    @pytest.mark.asyncio
    async def test_valid_selection(self, fake_client, session):
        terminal = FakeTerminal(lines=["2\n"])
        selector = make_selector(fake_client, terminal, session)

        assert await selector.select() == "SIP/200-2"
        assert list_count(fake_client) == 1
        assert "SIP/100-1" in terminal.text
        assert terminal.text.endswith(PROMPT)

    @pytest.mark.asyncio
    async def test_notice_shown_below_header_on_first_listing(self, fake_client, session):
        terminal = FakeTerminal(lines=["\n", "1\n"])
        selector = make_selector(fake_client, terminal, session)

        assert await selector.select(notice="*** CALL DISCONNECTED ***") == "SIP/100-1"

        out = terminal.output
        notice = "*** CALL DISCONNECTED ***\n"
        assert out.index(SELECTOR_HEADER) < out.index(notice) < out.index(PROMPT)
        assert out.count(notice) == 1

    @pytest.mark.asyncio
    async def test_quit(self, fake_client, session):
        terminal = FakeTerminal(lines=["Q\n"])
        selector = make_selector(fake_client, terminal, session)

        assert await selector.select() is None

    @pytest.mark.asyncio
    async def test_end_of_input(self, fake_client, session):
        selector = make_selector(fake_client, FakeTerminal(lines=[]), session)

        assert await selector.select() is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("entry", ["0\n", "3\n", "abc\n", "-1\n"])
    async def test_invalid_selection_relists(self, fake_client, session, entry):
        terminal = FakeTerminal(lines=[entry, "1\n"])
        selector = make_selector(fake_client, terminal, session)

        assert await selector.select() == "SIP/100-1"
        assert list_count(fake_client) == 2
        assert f"Invalid channel number: {entry.rstrip()}" in terminal.text

    @pytest.mark.asyncio
    async def test_empty_entry_relists(self, fake_client, session):
        terminal = FakeTerminal(lines=["\n", "1\n"])
        selector = make_selector(fake_client, terminal, session)

        assert await selector.select() == "SIP/100-1"
        assert list_count(fake_client) == 2
        assert "Invalid channel number" not in terminal.text

    @pytest.mark.asyncio
    async def test_timeout_keeps_listing(self, fake_client, session):
        terminal = FakeTerminal(lines=[None, None, "1\n"])
        selector = make_selector(fake_client, terminal, session)

        assert await selector.select() == "SIP/100-1"
        assert list_count(fake_client) == 1

    @pytest.mark.asyncio
    async def test_always_refresh_relists_every_poll(self, fake_client, session):
        terminal = FakeTerminal(lines=[None, None, "1\n"])
        selector = make_selector(fake_client, terminal, session, always_refresh=True)

        assert await selector.select() == "SIP/100-1"
        assert list_count(fake_client) == 3

    @pytest.mark.asyncio
    async def test_topology_change_during_prompt_discards_entry(self, fake_client, session):
        async def channel_appears_then_type_one():
            fake_client.channels.insert(0, make_channel("SIP/300-3"))
            session.flag_topology_change()
            return "1\n"

        terminal = FakeTerminal(lines=[channel_appears_then_type_one, "1\n"])
        selector = make_selector(fake_client, terminal, session)

        # The first "1" was typed against the stale listing
        assert await selector.select() == "SIP/300-3"
        assert list_count(fake_client) == 2

    @pytest.mark.asyncio
    async def test_topology_change_between_polls_relists(self, fake_client, session):
        async def hangup_then_timeout():
            session.flag_topology_change()
            return None

        terminal = FakeTerminal(lines=[hangup_then_timeout, "1\n"])
        selector = make_selector(fake_client, terminal, session)

        assert await selector.select() == "SIP/100-1"
        assert list_count(fake_client) == 2

    @pytest.mark.asyncio
    async def test_failed_listing_retries_and_allows_quit(self, session):
        client = FakeAMIClient(list_ok=False)
        terminal = FakeTerminal(lines=[None, "q\n"])
        selector = make_selector(client, terminal, session)

        assert await selector.select() is None
        assert list_count(client) == 2
        assert "Failed to get channel list" in terminal.text

    @pytest.mark.asyncio
    async def test_failed_listing_rejects_ordinals(self, session):
        client = FakeAMIClient(list_ok=False)
        terminal = FakeTerminal(lines=["1\n"])
        selector = make_selector(client, terminal, session)

        assert await selector.select() is None
        assert "Invalid channel number: 1" in terminal.text


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
