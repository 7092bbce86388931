"""Console front end for lanchat.

Plain lines are sent to the active room.  Commands:

    /msg <address> <text>   private message to one node
    /peers                  list known nodes
    /refresh                re-announce presence
    /room <name>            switch the active room
    /log                    show recent diagnostics
    /quit                   leave
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Awaitable, Callable

from loguru import logger

from lanchat import __logo__, __version__
from lanchat.config.loader import load_config
from lanchat.config.schema import Config
from lanchat.mesh.diagnostics import DiagnosticsBuffer
from lanchat.mesh.history import ChatEntry
from lanchat.mesh.node import ChatNode, SetupError

HELP_TEXT = """commands:
  /msg <address> <text>   private message
  /peers                  list known nodes
  /refresh                re-announce presence
  /room <name>            switch room
  /log                    recent diagnostics
  /quit                   exit"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lanchat",
        description="Serverless chat for peers on the same local network.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, default=None, help="path to config.json")
    parser.add_argument("--port", type=int, default=None, help="UDP port (default: 8888)")
    parser.add_argument("--room", default=None, help="room to join at startup")
    parser.add_argument("--address", default=None, help="override the detected local address")
    parser.add_argument(
        "--announce-interval",
        type=float,
        default=None,
        help="seconds between presence re-announcements (0 = only at startup)",
    )
    parser.add_argument("--log-level", default=None, help="console log level (default: INFO)")
    return parser


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Return *config* with command-line options applied on top."""
    node_updates = {
        key: value
        for key, value in (
            ("port", args.port),
            ("room", args.room),
            ("node_address", args.address),
            ("announce_interval", args.announce_interval),
        )
        if value is not None
    }
    node = config.node.model_copy(update=node_updates)
    logging_cfg = config.logging
    if args.log_level:
        logging_cfg = logging_cfg.model_copy(update={"level": args.log_level.upper()})
    return config.model_copy(update={"node": node, "logging": logging_cfg})


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level, format="<green>{time:HH:mm:ss}</green> | {level: <7} | {message}")


class Console:
    """Maps console lines onto ``ChatNode`` operations."""

    def __init__(self, node: ChatNode, write: Callable[[str], None] = print):
        self.node = node
        self.write = write
        self._commands: dict[str, Callable[[str], Awaitable[bool]]] = {
            "/msg": self._cmd_msg,
            "/peers": self._cmd_peers,
            "/refresh": self._cmd_refresh,
            "/room": self._cmd_room,
            "/log": self._cmd_log,
            "/help": self._cmd_help,
            "/quit": self._cmd_quit,
        }

    def show_entry(self, entry: ChatEntry) -> None:
        if entry.sender != self.node.local_identity:
            self.write(entry.render())

    async def handle_line(self, line: str) -> bool:
        """Process one input line; returns ``False`` when the user quits."""
        line = line.strip()
        if not line:
            return True
        if not line.startswith("/"):
            if not self.node.peers:
                self.write("(no peers yet - message kept locally)")
            await self.node.send_chat(line)
            return True
        name, _, rest = line.partition(" ")
        command = self._commands.get(name)
        if command is None:
            self.write(f"unknown command {name}; try /help")
            return True
        return await command(rest.strip())

    async def _cmd_msg(self, rest: str) -> bool:
        target, _, text = rest.partition(" ")
        if not target or not text.strip():
            self.write("usage: /msg <address> <text>")
        else:
            await self.node.send_chat(text, target=target)
        return True

    async def _cmd_peers(self, rest: str) -> bool:
        peers = sorted(self.node.peers)
        self.write("nodes in network: " + (", ".join(peers) if peers else "(none)"))
        return True

    async def _cmd_refresh(self, rest: str) -> bool:
        await self.node.refresh()
        return True

    async def _cmd_room(self, rest: str) -> bool:
        if not rest:
            self.write(f"current room: {self.node.current_room}")
            return True
        self.node.join_room(rest)
        self.write(f"current room: {self.node.current_room}")
        return True

    async def _cmd_log(self, rest: str) -> bool:
        for line in self.node.diagnostics.lines(last=10):
            self.write(line)
        return True

    async def _cmd_help(self, rest: str) -> bool:
        self.write(HELP_TEXT)
        return True

    async def _cmd_quit(self, rest: str) -> bool:
        return False


async def run(config: Config) -> int:
    diagnostics = DiagnosticsBuffer(max_lines=config.logging.diagnostics_lines)
    node = ChatNode(config.node, diagnostics=diagnostics)
    console = Console(node)
    node.on_message(console.show_entry)
    node.on_peer_added(lambda peer: console.write(f"* {peer} joined"))

    try:
        await node.start()
    except SetupError as exc:
        print(f"Setup error: {exc}", file=sys.stderr)
        return 1

    print(f"{__logo__} lanchat {__version__}")
    print(f"Your IP: {node.local_identity}")
    print(f"Current room: {node.current_room}")
    print("type /help for commands")

    loop = asyncio.get_running_loop()
    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            if not await console.handle_line(line):
                break
    finally:
        await node.stop()
    return 0


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    config = apply_overrides(load_config(args.config), args)
    configure_logging(config.logging.level)
    try:
        code = asyncio.run(run(config))
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)
