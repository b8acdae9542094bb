"""
Tests for the byte-stream tee and the passthrough relay.
"""

import asyncio

import pytest

from studymind.services.ai_gateway import NoStreamError, UpstreamStream
from studymind.services.stream_splitter import StreamSplitter, relay_stream, tee_stream


async def source(chunks, error=None):
    for chunk in chunks:
        yield chunk
        await asyncio.sleep(0)
    if error is not None:
        raise error


async def drain(stream):
    return [chunk async for chunk in stream]


class CloseCounter:
    def __init__(self):
        self.count = 0

    async def __call__(self):
        self.count += 1


class TestStreamSplitter:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrent_branches_see_every_chunk(self):
        chunks = [b"one", b"two", b"three", b"four"]
        first, second = StreamSplitter(source(chunks)).split()

        a, b = await asyncio.gather(drain(first), drain(second))

        assert a == chunks
        assert b == chunks

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_branches_read_at_different_paces(self):
        """A branch that is read later still gets every chunk in order"""
        chunks = [b"a", b"b", b"c"]
        fast, slow = StreamSplitter(source(chunks)).split()

        assert await drain(fast) == chunks
        assert await drain(slow) == chunks

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_error_reaches_every_branch_after_prior_chunks(self):
        first, second = StreamSplitter(source([b"partial"], error=RuntimeError("upstream reset"))).split()

        for branch in (first, second):
            received = []
            with pytest.raises(RuntimeError, match="upstream reset"):
                async for chunk in branch:
                    received.append(chunk)
            assert received == [b"partial"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_on_exhausted_runs_once(self):
        closer = CloseCounter()
        first, second = StreamSplitter(source([b"x"]), on_exhausted=closer).split()

        await asyncio.gather(drain(first), drain(second))

        assert closer.count == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_on_exhausted_runs_after_error(self):
        closer = CloseCounter()
        (only,) = StreamSplitter(source([], error=ValueError("boom")), branches=1, on_exhausted=closer).split()

        with pytest.raises(ValueError):
            await drain(only)
        assert closer.count == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancelled_reader_does_not_cut_off_other_branch(self):
        """A browser disconnect mid-read leaves the persistence copy complete"""
        chunks = [b"one", b"two", b"three", b"four"]

        async def slow_source():
            for chunk in chunks:
                await asyncio.sleep(0.05)
                yield chunk

        closer = CloseCounter()
        client_branch, persist_branch = StreamSplitter(slow_source(), on_exhausted=closer).split()

        client_task = asyncio.create_task(drain(client_branch))
        await asyncio.sleep(0.07)
        client_task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await client_task

        assert await drain(persist_branch) == chunks
        assert closer.count == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_upstream_drained_when_no_branch_is_read_to_the_end(self):
        closer = CloseCounter()
        first, second = StreamSplitter(source([b"a", b"b", b"c"]), on_exhausted=closer).split()

        assert await first.__anext__() == b"a"
        await first.aclose()
        for _ in range(20):
            await asyncio.sleep(0)

        assert closer.count == 1
        assert await drain(second) == [b"a", b"b", b"c"]

    @pytest.mark.unit
    def test_missing_source_raises_no_stream(self):
        with pytest.raises(NoStreamError):
            StreamSplitter(None)

    @pytest.mark.unit
    def test_cannot_claim_extra_branches(self):
        splitter = StreamSplitter(source([]), branches=2)
        splitter.branch()
        splitter.branch()
        with pytest.raises(RuntimeError):
            splitter.branch()

    @pytest.mark.unit
    def test_invalid_branch_count(self):
        with pytest.raises(ValueError):
            StreamSplitter(source([]), branches=0)


class TestRelayAndTee:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_relay_forwards_bytes_and_closes_upstream(self):
        closer = CloseCounter()
        upstream = UpstreamStream(body=source([b"data: 1\n\n", b"data: 2\n\n"]), close=closer)

        assert await drain(relay_stream(upstream)) == [b"data: 1\n\n", b"data: 2\n\n"]
        assert closer.count == 1

    @pytest.mark.unit
    def test_relay_without_body_raises(self):
        with pytest.raises(NoStreamError):
            relay_stream(UpstreamStream(body=None))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tee_gives_client_and_persistence_copies(self):
        closer = CloseCounter()
        upstream = UpstreamStream(body=source([b"a", b"b"]), close=closer)

        client_branch, persist_branch = tee_stream(upstream)
        assert await drain(client_branch) == [b"a", b"b"]
        assert await drain(persist_branch) == [b"a", b"b"]
        assert closer.count == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_upstream_close_is_idempotent(self):
        closer = CloseCounter()
        upstream = UpstreamStream(body=source([]), close=closer)

        await upstream.aclose()
        await upstream.aclose()

        assert closer.count == 1
