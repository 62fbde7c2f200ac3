from blockindexer.errors import (
    BlockNotFound,
    ChainError,
    CheckpointError,
    ConnectionFailed,
    DatabaseError,
    EventDecodingFailed,
    HandlerFailed,
    IndexerError,
    InvalidConfig,
    MetadataUpdateFailed,
    invalid_config,
)


def test_block_not_found_message():
    assert str(BlockNotFound(block=1)) == "Block 1 not found"


def test_connection_failed_message():
    err = ConnectionFailed(url="wss://node", source=ChainError("conn"))
    assert "Connection to wss://node failed" in str(err)
    assert err.url == "wss://node"


def test_invalid_config_message():
    err = invalid_config("field", "bad")
    assert "Invalid config" in str(err)
    assert str(err) == "Invalid config for `field`: bad"
    assert (err.field, err.message) == ("field", "bad")


def test_handler_failed_message():
    err = HandlerFailed(handler="h", block=1, source=OSError("oops"))
    assert "Handler h failed" in str(err)
    assert err.block == 1


def test_checkpoint_error_message():
    err = CheckpointError(operation="load", backend="json", source=OSError("fail"))
    assert "Checkpoint load failed" in str(err)
    assert err.backend == "json"


def test_metadata_update_failed_message():
    err = MetadataUpdateFailed(source=ChainError("meta"))
    assert "Metadata update failed" in str(err)


def test_event_decoding_failed_message():
    err = EventDecodingFailed(pallet="p", event="e", block=1, source=ChainError("decode"))
    assert "Failed to decode event" in str(err)
    assert "p.e" in str(err)


def test_source_becomes_cause():
    source = OSError("disk gone")
    err = CheckpointError("store_checkpoint", "json", source)
    assert err.__cause__ is source
    assert err.source is source


def test_all_errors_are_indexer_errors():
    err = DatabaseError("pool closed")
    assert isinstance(err, IndexerError)
    assert "pool closed" in str(err)


def test_chain_error_retryable_flags():
    assert ChainError("x").retryable is True
    assert ChainError("x", rpc_limit_reached=True).retryable is False
    assert ChainError("x", client_error=True).retryable is False


def test_invalid_config_is_raisable():
    err = invalid_config("node_url", "cannot be empty")
    assert isinstance(err, InvalidConfig)
    assert err.field == "node_url"
    assert err.message == "cannot be empty"