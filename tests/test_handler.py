import pytest
from hypothesis import assume, given
from hypothesis import strategies as st

from blockindexer.errors import HandlerFailed
from blockindexer.events import ChainEvent
from blockindexer.handler import Context, EventFilter, Handler
from blockindexer.storage import CheckpointStore

ZERO_HASH = bytes(32)
names = st.text(
    alphabet="abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789",
    max_size=20,
)


class MockHandler(Handler):
    def __init__(self, event_filter=None, fail=False):
        self._filter = event_filter or EventFilter.all()
        self.events = []
        self.errors = []
        self.fail = fail

    def event_filter(self):
        return self._filter

    async def handle_event(self, event, ctx):
        self.events.append(f"{event.pallet_name}.{event.variant_name}")
        if self.fail:
            raise HandlerFailed("mock", ctx.block_number, OSError("fail"))

    async def handle_block(self, ctx, events):
        self.events.append(f"block:{ctx.block_number}")

    async def handle_error(self, error, ctx):
        self.errors.append(str(error))


class MockCheckpointStore(CheckpointStore):
    def __init__(self):
        self.checkpoints = []

    async def load_checkpoint(self):
        return self.checkpoints[-1] if self.checkpoints else None

    async def store_checkpoint(self, block):
        self.checkpoints.append(block)


def test_event_filter_matches():
    assert EventFilter.all().matches("A", "B")
    assert EventFilter.for_pallet("A").matches("A", "C")
    assert not EventFilter.for_pallet("A").matches("B", "C")
    assert EventFilter.for_event("A", "B").matches("A", "B")
    assert not EventFilter.for_event("A", "B").matches("A", "C")


def test_event_only_filter_matches_nothing():
    assert not EventFilter(event="B").matches("A", "B")


@given(p=names, e=names, other_p=names, other_e=names)
def test_event_filter_logic(p, e, other_p, other_e):
    assert EventFilter.all().matches(p, e)
    assume(other_p != p)
    by_pallet = EventFilter.for_pallet(p)
    assert by_pallet.matches(p, e)
    assert not by_pallet.matches(other_p, e)
    by_event = EventFilter.for_event(p, e)
    assert by_event.matches(p, e)
    if other_e != e:
        assert not by_event.matches(p, other_e)


@given(p=names, e1=names, e2=names)
def test_filter_composition_laws(p, e1, e2):
    fe1 = EventFilter.for_event(p, e1)
    fe2 = EventFilter.for_event(p, e2)
    if fe1.matches(p, e1):
        assert EventFilter.for_pallet(p).matches(p, e1)
        assert EventFilter.all().matches(p, e1)
    c1 = fe1.matches(p, e1) and fe2.matches(p, e1)
    c2 = fe2.matches(p, e1) and fe1.matches(p, e1)
    assert c1 == c2


def test_default_handler_filter_is_all():
    assert Handler().event_filter() == EventFilter.all()


@pytest.mark.asyncio
async def test_handler_flow():
    handler = MockHandler()
    ctx = Context(1, ZERO_HASH)
    events = [ChainEvent("Test", "A", 0, (1,))]
    assert ctx.block_number == 1
    assert events[0].pallet_name == "Test"
    assert events[0].variant_name == "A"
    assert events[0].index == 0
    assert handler.event_filter().matches("Test", "A")
    await handler.handle_block(ctx, events)
    for event in events:
        await handler.handle_event(event, ctx)
    assert "block:1" in handler.events
    assert any("Test.A" in call for call in handler.events)


@pytest.mark.asyncio
async def test_handler_error_path():
    handler = MockHandler(fail=True)
    ctx = Context(2, ZERO_HASH)
    for index, event in enumerate([ChainEvent("Test", "B", 0, (True,))]):
        with pytest.raises(HandlerFailed) as info:
            await handler.handle_event(ChainEvent("Test", "B", index, (True,)), ctx)
        await handler.handle_error(info.value, ctx)
    assert handler.errors
    assert "Handler mock failed at block 2" in handler.errors[0]


@pytest.mark.asyncio
async def test_full_workflow():
    handler = MockHandler()
    store = MockCheckpointStore()
    blocks = [
        (1, [ChainEvent("Test", "A", 0, (1,))]),
        (2, [ChainEvent("Test", "B", 0, (True,))]),
    ]
    seen_blocks = []
    seen_names = []
    for number, events in blocks:
        ctx = Context(number, ZERO_HASH)
        seen_blocks.append(ctx.block_number)
        await handler.handle_block(ctx, events)
        for event in events:
            seen_names.append(f"{event.pallet_name}.{event.variant_name}")
            try:
                await handler.handle_event(event, ctx)
            except HandlerFailed as error:
                await handler.handle_error(error, ctx)
        await store.store_checkpoint(number)
    assert seen_blocks == [1, 2]
    assert seen_names == ["Test.A", "Test.B"]
    assert len(store.checkpoints) == 2
    assert any("Test.A" in e for e in handler.events)
    assert any("Test.B" in e for e in handler.events)


def test_pipeline_get_consumes():
    ctx = Context(1, ZERO_HASH)
    ctx.set_pipeline_data("num", 42)
    assert ctx.get_pipeline_data("num", int) == 42
    assert ctx.get_pipeline_data("num", int) is None


def test_pipeline_get_wrong_type_returns_none_and_consumes():
    ctx = Context(1, ZERO_HASH)
    ctx.set_pipeline_data("num", 42)
    assert ctx.get_pipeline_data("num", str) is None
    assert ctx.get_pipeline_data("num", int) is None


def test_pipeline_peek_keeps_data_and_copies():
    ctx = Context(1, ZERO_HASH)
    data = [1, 2]
    ctx.set_pipeline_data("list", data)
    peeked = ctx.peek_pipeline_data("list", list)
    assert peeked == [1, 2]
    assert peeked is not data
    assert ctx.peek_pipeline_data("list", dict) is None
    assert ctx.get_pipeline_data("list", list) is data


def test_pipeline_missing_key():
    ctx = Context(3, ZERO_HASH)
    assert ctx.peek_pipeline_data("missing") is None
    assert ctx.get_pipeline_data("missing") is None
    assert ctx.block_number == 3