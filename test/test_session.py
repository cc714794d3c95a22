"""Tests for lspcheck.session request/response correlation, over in-memory streams."""

import asyncio
import io

import pytest

from lspcheck.channel import Channel, TransportError
from lspcheck.jsonrpc import (
    FramingError,
    Notification,
    ParseError,
    Request,
    Response,
    encode,
    read_message_sync,
)
from lspcheck.session import METHOD_NOT_FOUND, Session


class FakeWriter:
    """Collects what the session writes to the server."""

    def __init__(self, closing: bool = False):
        self.data = bytearray()
        self.closing = closing

    def write(self, data: bytes):
        self.data.extend(data)

    async def drain(self):
        await asyncio.sleep(0)

    def is_closing(self) -> bool:
        return self.closing

    def messages(self) -> list[dict]:
        stream = io.BytesIO(bytes(self.data))
        out = []
        while (msg := read_message_sync(stream)) is not None:
            out.append(msg)
        return out


def make_session(timeout=None, closing=False):
    reader = asyncio.StreamReader()
    writer = FakeWriter(closing=closing)
    session = Session(Channel(writer, reader), timeout=timeout)  # pyright: ignore[reportArgumentType]
    return session, reader, writer


def test_request_ids_start_at_one_and_increase():
    async def go():
        session, _, writer = make_session()
        ids = [await session.issue_request('ping', {'n': n}) for n in range(5)]
        return ids, writer.messages()

    ids, sent = asyncio.run(go())
    assert ids == [1, 2, 3, 4, 5]
    assert [m['id'] for m in sent] == ids
    assert all(m['jsonrpc'] == '2.0' and m['method'] == 'ping' for m in sent)


def test_notifications_carry_no_id():
    async def go():
        session, _, writer = make_session()
        await session.issue_notification('initialized', {})
        return writer.messages()

    assert asyncio.run(go()) == [{'jsonrpc': '2.0', 'method': 'initialized', 'params': {}}]


def test_out_of_order_responses_reach_their_requests():
    async def go():
        session, reader, _ = make_session()
        async with session:
            first = await session.issue_request('first')
            second = await session.issue_request('second')
            reader.feed_data(encode(Response(id=second, result='B')))
            reader.feed_data(encode(Notification('window/logMessage', {'message': 'hi'})))
            reader.feed_data(encode(Response(id=first, result='A')))
            a = await session.wait_response(first)
            b = await session.wait_response(second)
            note = await session.next_message()
        return a, b, note

    a, b, note = asyncio.run(go())
    assert a['result'] == 'A'
    assert b['result'] == 'B'
    assert note['method'] == 'window/logMessage'


def test_unsolicited_responses_are_dropped():
    async def go():
        session, reader, _ = make_session()
        async with session:
            request_id = await session.issue_request('initialize', {})
            reader.feed_data(encode(Response(id=42, result='stray')))
            reader.feed_data(encode(Response(id=None, error={'code': -32700, 'message': 'x'})))
            reader.feed_data(encode(Response(id=request_id, result={'capabilities': {}})))
            return await session.wait_response(request_id)

    assert asyncio.run(go())['result'] == {'capabilities': {}}


def test_notifications_keep_arrival_order():
    async def go():
        session, reader, _ = make_session()
        async with session:
            for n in range(3):
                reader.feed_data(encode(Notification('n', {'n': n})))
            return [(await session.next_message())['params']['n'] for _ in range(3)]

    assert asyncio.run(go()) == [0, 1, 2]


def test_closed_stream_fails_pending_request():
    async def go():
        session, reader, _ = make_session()
        async with session:
            request_id = await session.issue_request('shutdown')
            reader.feed_eof()
            with pytest.raises(TransportError):
                await session.wait_response(request_id)
            # and keeps failing afterwards
            with pytest.raises(TransportError):
                await session.next_message()
            with pytest.raises(TransportError):
                await session.request('textDocument/hover', {})

    asyncio.run(go())


def test_messages_before_eof_still_delivered():
    async def go():
        session, reader, _ = make_session()
        async with session:
            reader.feed_data(encode(Notification('textDocument/publishDiagnostics',
                                                 {'uri': 'file:///a', 'diagnostics': []})))
            reader.feed_eof()
            msg = await session.next_message()
            with pytest.raises(TransportError):
                await session.next_message()
        return msg

    assert asyncio.run(go())['method'] == 'textDocument/publishDiagnostics'


def test_framing_error_is_fatal():
    async def go():
        session, reader, _ = make_session()
        async with session:
            request_id = await session.issue_request('initialize', {})
            reader.feed_data(b"Content-Length: 100\r\n\r\n{}")
            reader.feed_eof()
            with pytest.raises(FramingError):
                await session.wait_response(request_id)

    asyncio.run(go())


def test_deeply_nested_body_fails_pending_request():
    async def go():
        session, reader, _ = make_session()
        async with session:
            request_id = await session.issue_request('initialize', {})
            body = b'[' * 200000 + b']' * 200000
            reader.feed_data(b"Content-Length: " + str(len(body)).encode() + b"\r\n\r\n" + body)
            with pytest.raises(ParseError):
                await asyncio.wait_for(session.wait_response(request_id), 5)

    asyncio.run(go())


class ExplodingChannel(Channel):
    async def receive(self):
        raise RuntimeError("boom")


def test_unexpected_reader_error_fails_every_waiter():
    async def go():
        session = Session(ExplodingChannel(FakeWriter(), asyncio.StreamReader()))  # pyright: ignore[reportArgumentType]
        async with session:
            request_id = await session.issue_request('initialize', {})
            with pytest.raises(TransportError, match="boom"):
                await asyncio.wait_for(session.wait_response(request_id), 5)
            with pytest.raises(TransportError, match="boom"):
                await asyncio.wait_for(session.next_message(), 5)
        return session.failure

    failure = asyncio.run(go())
    assert isinstance(failure.__cause__, RuntimeError)


def test_waiting_on_unknown_id_is_an_error():
    async def go():
        session, reader, _ = make_session()
        async with session:
            request_id = await session.issue_request('initialize', {})
            reader.feed_data(encode(Response(id=request_id, result={})))
            await session.wait_response(request_id)
            with pytest.raises(ValueError):
                await session.wait_response(request_id)
            with pytest.raises(ValueError):
                await session.wait_response(77)

    asyncio.run(go())


def test_server_requests_are_answered_and_queued():
    async def go():
        session, reader, writer = make_session()
        async with session:
            reader.feed_data(encode(Request(id=7, method='workspace/configuration',
                                            params={'items': [{}, {}]})))
            reader.feed_data(encode(Request(id=8, method='window/workDoneProgress/create',
                                            params={'token': 't'})))
            reader.feed_data(encode(Request(id=9, method='custom/frobnicate')))
            seen = [(await session.next_message())['method'] for _ in range(3)]
        return seen, writer.messages()

    seen, sent = asyncio.run(go())
    assert seen == ['workspace/configuration', 'window/workDoneProgress/create', 'custom/frobnicate']
    assert sent[0] == {'jsonrpc': '2.0', 'id': 7, 'result': [None, None]}
    assert sent[1] == {'jsonrpc': '2.0', 'id': 8, 'result': None}
    assert sent[2]['id'] == 9
    assert sent[2]['error']['code'] == METHOD_NOT_FOUND


def test_wait_timeout_raises_transport_error():
    async def go():
        session, _, _ = make_session(timeout=0.05)
        async with session:
            request_id = await session.issue_request('initialize', {})
            with pytest.raises(TransportError):
                await session.wait_response(request_id)
            with pytest.raises(TransportError):
                await session.next_message()

    asyncio.run(go())


def test_send_on_closed_stream_raises_transport_error():
    async def go():
        session, _, _ = make_session(closing=True)
        with pytest.raises(TransportError):
            await session.issue_notification('initialized', {})
        with pytest.raises(TransportError):
            await session.issue_request('initialize', {})
        return session.pending_requests

    assert asyncio.run(go()) == {}
