"""Tests for configuration loading and the console front end."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from lanchat.cli import Console, apply_overrides, build_parser
from lanchat.config.loader import load_config, save_config
from lanchat.config.schema import Config, NodeConfig
from lanchat.mesh.history import ChatEntry
from lanchat.mesh.protocol import ChatMessage

# ---------------------------------------------------------------------------
# Config schema / loader
# ---------------------------------------------------------------------------


class TestConfig:
    def test_defaults(self):
        cfg = Config()
        assert cfg.node.port == 8888
        assert cfg.node.broadcast_address == "255.255.255.255"
        assert cfg.node.room == "public"
        assert cfg.node.node_address == ""
        assert cfg.node.announce_interval == 0
        assert cfg.logging.level == "INFO"

    def test_camel_case_keys(self):
        cfg = Config.model_validate({
            "node": {"broadcastAddress": "192.168.1.255", "announceInterval": 30},
        })
        assert cfg.node.broadcast_address == "192.168.1.255"
        assert cfg.node.announce_interval == 30

    def test_snake_case_keys(self):
        node = NodeConfig.model_validate({"bind_host": "127.0.0.1", "node_address": "10.0.0.1"})
        assert node.bind_host == "127.0.0.1"
        assert node.node_address == "10.0.0.1"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("LANCHAT_NODE__PORT", "9999")
        assert Config().node.port == 9999

    def test_invalid_port_rejected(self):
        with pytest.raises(ValueError):
            NodeConfig(port=70000)

    def test_load_missing_file(self, tmp_path):
        cfg = load_config(tmp_path / "nope.json")
        assert cfg.node.port == 8888

    def test_load_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"node": {"room": "general", "port": 9000}}))
        cfg = load_config(path)
        assert cfg.node.room == "general"
        assert cfg.node.port == 9000

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"node": {"room": "general", "port": 9000, "broadcastAddress": "10.0.0.255"}}))
        monkeypatch.setenv("LANCHAT_NODE__PORT", "9999")
        cfg = load_config(path)
        assert cfg.node.port == 9999
        assert cfg.node.room == "general"
        assert cfg.node.broadcast_address == "10.0.0.255"

    def test_load_invalid_json_falls_back(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert load_config(path).node.room == "public"

    def test_load_invalid_values_falls_back(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"node": {"port": "eighty"}}))
        assert load_config(path).node.port == 8888

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "sub" / "config.json"
        cfg = Config()
        cfg.node.room = "lab"
        save_config(cfg, path)
        data = json.loads(path.read_text())
        assert data["node"]["room"] == "lab"
        assert "broadcastAddress" in data["node"]
        assert load_config(path).node.room == "lab"


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------


class TestCommandLine:
    def test_overrides_applied(self):
        args = build_parser().parse_args([
            "--port", "9001", "--room", "dev", "--address", "10.1.1.1",
            "--announce-interval", "15", "--log-level", "debug",
        ])
        cfg = apply_overrides(Config(), args)
        assert cfg.node.port == 9001
        assert cfg.node.room == "dev"
        assert cfg.node.node_address == "10.1.1.1"
        assert cfg.node.announce_interval == 15
        assert cfg.logging.level == "DEBUG"

    def test_no_overrides_keeps_config(self):
        base = Config()
        base.node.room = "kept"
        cfg = apply_overrides(base, build_parser().parse_args([]))
        assert cfg.node.room == "kept"
        assert cfg.node.port == 8888


def _make_console():
    node = MagicMock()
    node.local_identity = "10.0.0.1"
    node.peers = frozenset({"10.0.0.2"})
    node.current_room = "public"
    node.send_chat = AsyncMock()
    node.refresh = AsyncMock()
    node.diagnostics.lines = MagicMock(return_value=["[t] one", "[t] two"])
    out: list[str] = []
    return Console(node, write=out.append), node, out


class TestConsole:
    @pytest.mark.asyncio
    async def test_plain_text_goes_to_room(self):
        console, node, _ = _make_console()
        assert await console.handle_line("hello there\n") is True
        node.send_chat.assert_awaited_once_with("hello there")

    @pytest.mark.asyncio
    async def test_private_message(self):
        console, node, _ = _make_console()
        await console.handle_line("/msg 10.0.0.2 hi you")
        node.send_chat.assert_awaited_once_with("hi you", target="10.0.0.2")

    @pytest.mark.asyncio
    async def test_private_message_usage(self):
        console, node, out = _make_console()
        await console.handle_line("/msg 10.0.0.2")
        node.send_chat.assert_not_awaited()
        assert out[-1].startswith("usage")

    @pytest.mark.asyncio
    async def test_peers_listed(self):
        console, _, out = _make_console()
        await console.handle_line("/peers")
        assert "10.0.0.2" in out[-1]

    @pytest.mark.asyncio
    async def test_refresh(self):
        console, node, _ = _make_console()
        await console.handle_line("/refresh")
        node.refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_room_switch(self):
        console, node, _ = _make_console()
        await console.handle_line("/room general")
        node.join_room.assert_called_once_with("general")

    @pytest.mark.asyncio
    async def test_log_shows_diagnostics(self):
        console, _, out = _make_console()
        await console.handle_line("/log")
        assert out == ["[t] one", "[t] two"]

    @pytest.mark.asyncio
    async def test_quit(self):
        console, _, _ = _make_console()
        assert await console.handle_line("/quit") is False

    @pytest.mark.asyncio
    async def test_unknown_command(self):
        console, node, out = _make_console()
        assert await console.handle_line("/dance") is True
        assert "unknown command" in out[-1]
        node.send_chat.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blank_line_ignored(self):
        console, node, _ = _make_console()
        assert await console.handle_line("   \n") is True
        node.send_chat.assert_not_awaited()

    def test_show_entry_skips_own_messages(self):
        console, _, out = _make_console()
        console.show_entry(ChatEntry(ChatMessage(sender="10.0.0.1", content="mine", room="public")))
        console.show_entry(ChatEntry(ChatMessage(sender="10.0.0.2", content="psst", receiver="10.0.0.1"), is_private=True))
        assert out == ["10.0.0.2: psst (Private)"]
