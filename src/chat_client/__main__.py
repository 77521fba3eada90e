"""Entrypoint: python -m chat_client --user <me> --peer <them>"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from chat_client.application.exceptions import AppError
from chat_client.config import settings
from chat_client.domain.value_objects.enums import ChannelState
from chat_client.services.chat_session import ChatSession

logger = logging.getLogger("chat_client")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="campus-chat", description="Headless chat session")
    parser.add_argument("--user", required=True, help="id of the signed-in user")
    parser.add_argument("--peer", required=True, help="id of the conversation counterpart")
    return parser.parse_args(argv)


async def run(user_id: str, peer_id: str) -> None:
    async with ChatSession.from_settings(user_id) as session:
        session.channel.add_state_listener(
            lambda state: logger.info(
                "Connection: %s", "real-time" if state == ChannelState.CONNECTED else f"{state} (polling)",
            )
        )

        def _on_change(key: str) -> None:
            if key != session.active_peer:
                return
            for m in session.store.get(key)[-1:]:
                logger.info("[%s] %s: %s", m.id, m.sender_id, m.content or m.image_url)

        session.store.subscribe(_on_change)

        def _on_typing(typing: bool) -> None:
            if typing:
                logger.info("%s is typing...", peer_id)

        session.typing.add_listener(_on_typing)

        history = await session.open_conversation(peer_id)
        logger.info("Loaded %d messages with %s", len(history), peer_id)

        loop = asyncio.get_running_loop()
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            text = line.rstrip("\n")
            if not text.strip():
                continue
            try:
                await session.send(text)
            except AppError as exc:
                logger.error("Failed to send message: %s", exc.detail)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(run(args.user, args.peer))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
