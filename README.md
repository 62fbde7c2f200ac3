# blockindexer

An asynchronous framework for indexing a block chain. An `Indexer` walks blocks
from a starting point up to the finalized head, then follows newly finalized
blocks, hands every event to your handlers, and records a checkpoint after
each block so that a restarted indexer can pick up from the stored block.

It uses only the Python standard library.

## Installation

```
pip install .
```

For running the test suite:

```
pip install .[test]
pytest
```

## Modules

- `blockindexer.errors` – `IndexerError` and its subclasses.
- `blockindexer.config` – `IndexerConfig` and `IndexerConfigBuilder`.
- `blockindexer.urls` – `WebSocketUrl`, `PostgresUrl`, `SqliteUrl`.
- `blockindexer.retry` – `RetryConfig`, `CircuitBreaker`,
  `is_retryable_error`, `retry_with_backoff`.
- `blockindexer.events` – `ChainEvent` and `StaticEvent`.
- `blockindexer.handler` – `Context`, `EventFilter`, `Handler`.
- `blockindexer.handler_group` – `HandlerGroup`.
- `blockindexer.storage` – `CheckpointStore`, `JsonStore`, `SqliteStore`,
  `init_store`.
- `blockindexer.indexer` – `ChainClient`, `RuntimeVersion`, `FinalizedBlock`,
  `Indexer`.
- `blockindexer.builder` – `IndexerBuilder`.

## Concepts

- **`ChainEvent`** – one event of a block: `pallet_name`, `variant_name`,
  `index` (its position in the block) and `fields` (a mapping of named values
  or a sequence of positional ones). `field_values()` returns a copy of the
  fields. `as_event(SomeEvent)` builds a `StaticEvent` subclass from the
  fields when the subclass's `PALLET` and `EVENT` match the event, returns
  `None` when they do not, and raises `ChainError` when the fields do not fit
  the class.
- **`Handler`** – subclass it and override any of `event_filter()`,
  `handle_event(event, ctx)`, `handle_block(ctx, events)` and
  `handle_error(error, ctx)`. The handling methods are coroutines; the
  defaults do nothing and the default filter matches every event.
- **`EventFilter`** – `EventFilter.all()`, `EventFilter.for_pallet("Balances")`
  or `EventFilter.for_event("Balances", "Transfer")` decide which events reach
  a handler's `handle_event`.
- **`Context`** – carries `block_number` and `block_hash`, plus a small
  pipeline store shared by the handlers of one block:
  `set_pipeline_data(key, data)`, `get_pipeline_data(key, expected_type)`
  (removes the value and returns it, or `None` if it is absent or not of the
  expected type) and `peek_pipeline_data(key, expected_type)` (returns a
  shallow copy and leaves the value in place).
- **`HandlerGroup`** – combines handlers into one handler. Handlers run in the
  order they were added; `HandlerGroup.parallel()` runs them concurrently.
  An `IndexerError` from a handler is passed to that handler's `handle_error`
  and the others still run, unless the group is made `strict()`, in which
  case the first error is raised after being reported.
  `add_conditional(handler, predicate)` passes events to a handler only when
  the predicate accepts them, and `pipe_to(handler)` is `add` under a name
  that reads naturally for pipelines.
- **Checkpoint stores** – `CheckpointStore` is the abstract interface
  (`load_checkpoint()`, `store_checkpoint(block)`). `JsonStore(path)` keeps
  `{"last_block": n}` in a JSON file; `await SqliteStore.open(path)` keeps it in
  an `indexer_checkpoint` table. `await init_store(url)` opens a `SqliteStore`
  for a `sqlite://<path>` URL and, when the URL is `None`, a `JsonStore` at
  `database/checkpoint.json` (creating the `database` directory). Failures
  are raised as `CheckpointError`.
- **Resilience** – `retry_with_backoff(op, config, breaker)` awaits `op()`,
  retrying retryable `IndexerError`s with exponential backoff (`RetryConfig`
  delays are in seconds; defaults: 5 attempts, 0.5 s initial delay, 10 s cap,
  multiplier 2). A `CircuitBreaker(threshold, cooldown)` opens after
  `threshold` consecutive recorded failures and stays open for `cooldown`
  seconds; while it is open, calls fail at once. `BlockNotFound`,
  `InvalidConfig` and `ChainError`s marked as client errors or RPC limits are
  not retried.

## The indexing loop

`Indexer.run()` starts at the configured start block, or else at the block
stored in the checkpoint store (0 if none). For each block it checks the
runtime version and asks the client to update its metadata when the spec
version changed, fetches the events, calls every handler's `handle_block`,
then `handle_event` for each matching event, and stores the block number as
the checkpoint. Handler errors go to that handler's `handle_error` and do not
stop the loop. Once the finalized head is reached, it follows
`subscribe_finalized()` until the end block, if one is set. Every call to the
client and the store goes through the retry logic and a circuit breaker
(by default 3 failures, 60 s cooldown; both can be passed to `Indexer`).
`max_blocks_per_minute` throttles processing by sleeping after fast blocks.
Log messages are written to the `indexer` logger.

## Example

```python
from dataclasses import dataclass

from blockindexer.builder import IndexerBuilder
from blockindexer.events import StaticEvent
from blockindexer.handler import EventFilter, Handler
from blockindexer.handler_group import HandlerGroup
from blockindexer.urls import WebSocketUrl


@dataclass
class Transfer(StaticEvent):
    PALLET = "Balances"
    EVENT = "Transfer"

    sender: str
    receiver: str
    amount: int


class TransferExtractor(Handler):
    def event_filter(self):
        return EventFilter.for_event("Balances", "Transfer")

    async def handle_event(self, event, ctx):
        transfer = event.as_event(Transfer)
        if transfer is not None:
            ctx.set_pipeline_data("transfer", transfer)


class TransferPrinter(Handler):
    async def handle_event(self, event, ctx):
        transfer = ctx.get_pipeline_data("transfer", Transfer)
        if transfer is not None:
            print(ctx.block_number, transfer.sender, transfer.receiver, transfer.amount)


async def main(client_factory):
    pipeline = HandlerGroup().add(TransferExtractor()).pipe_to(TransferPrinter())
    indexer = await (
        IndexerBuilder(client_factory)
        .connect(WebSocketUrl.parse("wss://node.example.com:443"))
        .start_from_block(1017)
        .end_at_block(1133)
        .max_blocks_per_minute(12)
        .add_handler_group(pipeline)
        .build()
    )
    await indexer.run()
```

`client_factory` receives the node URL as a string and returns a
`ChainClient` (or an awaitable of one). `IndexerBuilder.build()` raises
`InvalidConfig` when no URL was given or the settings do not validate.

## What the package does not do

- It does not talk to a node itself. `ChainClient` is an abstract class:
  you supply an implementation that provides runtime versions, metadata
  updates, block hashes, header numbers, decoded events and a stream of
  finalized blocks, and that raises `ChainError` on failure.
- It has no PostgreSQL store. `PostgresUrl` validates such URLs, and
  `with_postgres` records one, but `init_store` rejects `postgres://` and
  `postgresql://` URLs with `InvalidConfig` ("postgres feature disabled").
- It installs no command-line program; it is a library.

## Errors

Every failure is an `IndexerError` subclass from `blockindexer.errors`:
`ChainError`, `DatabaseError`, `ConnectionFailed`, `BlockNotFound`,
`HandlerFailed`, `InvalidConfig`, `CheckpointError`, `MetadataUpdateFailed`
and `EventDecodingFailed`, so a single `except IndexerError` catches them all.