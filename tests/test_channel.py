"""Tests for the session channel."""

import asyncio

import pytest

from volley.channel import END_OF_CONNECTIONS, Connected, SessionChannel


@pytest.mark.asyncio
async def test_yields_sessions_until_end_marker(make_host):
    channel = SessionChannel()
    a, b = make_host("a"), make_host("b")
    await channel.send(a, "session-a")
    await channel.send(b, "session-b")
    await channel.close()

    received = [slot async for slot in channel]
    assert received == [Connected(a, "session-a", a.label), Connected(b, "session-b", b.label)]
    assert channel.ends_sent == 1


@pytest.mark.asyncio
async def test_receive_returns_marker(make_host):
    channel = SessionChannel()
    await channel.close()
    assert await channel.receive() is END_OF_CONNECTIONS


@pytest.mark.asyncio
async def test_close_twice_fails():
    channel = SessionChannel()
    await channel.close()
    with pytest.raises(RuntimeError):
        await channel.close()


@pytest.mark.asyncio
async def test_send_after_close_fails(make_host):
    channel = SessionChannel()
    await channel.close()
    with pytest.raises(RuntimeError):
        await channel.send(make_host(), "session")


@pytest.mark.asyncio
async def test_consumer_streams_before_close(make_host):
    channel = SessionChannel(capacity=1)
    host = make_host()
    await channel.send(host, "session")
    # Nothing closed yet; the first slot is already available
    slot = await asyncio.wait_for(channel.receive(), timeout=1)
    assert slot == Connected(host, "session", host.label)


@pytest.mark.asyncio
async def test_slot_carries_host_key(make_host):
    channel = SessionChannel()
    host = make_host()
    await channel.send(host, "session", key="host1_10.0.0.1#2")
    assert (await channel.receive()).key == "host1_10.0.0.1#2"
