"""Tests for game.exceptions module: all exception classes and helpers."""

import pytest

from game.exceptions import (
    ConfigurationError,
    ConnectionClosedError,
    GameError,
    GameStateError,
    ProtocolError,
    TransportError,
    raise_if_not,
)

# ==================== GameError base ====================

class TestGameError:
    def test_basic(self):
        e = GameError("test")
        assert e.message == "test"
        assert e.details == {}
        assert str(e) == "test"

    def test_with_details(self):
        e = GameError("test", {"key": "val"})
        assert "Details" in str(e)
        assert e.details["key"] == "val"


# ==================== Protocol ====================

class TestProtocolError:
    def test_default(self):
        e = ProtocolError()
        assert e.message == "protocol error"
        assert e.raw_type is None
        assert isinstance(e, GameError)

    def test_raw_type_in_details(self):
        e = ProtocolError("unknown message type", raw_type=42)
        assert e.raw_type == 42
        assert e.details == {"raw_type": 42}


# ==================== Game state ====================

class TestGameStateError:
    def test_states(self):
        e = GameStateError("bad", current_state="not_started", expected_state="started")
        assert e.current_state == "not_started"
        assert e.details["expected_state"] == "started"

    def test_raise_if_not(self):
        raise_if_not(True, "never")
        with pytest.raises(GameStateError, match="game already started") as exc_info:
            raise_if_not(False, "game already started", "started")
        assert exc_info.value.current_state == "started"


# ==================== Transport ====================

class TestTransportError:
    def test_endpoint(self):
        e = TransportError("refused", endpoint="localhost:59995")
        assert e.endpoint == "localhost:59995"
        assert "localhost:59995" in str(e)

    def test_connection_closed(self):
        e = ConnectionClosedError()
        assert isinstance(e, TransportError)
        assert e.message == "connection closed by peer"


# ==================== Configuration ====================

class TestConfigurationError:
    def test_config_key(self):
        e = ConfigurationError("bad port", config_key="port")
        assert e.config_key == "port"
        assert e.details == {"config_key": "port"}
