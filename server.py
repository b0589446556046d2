"""
WebSocket game server for hex conquest.

Each connection owns one GameSession. Messages are JSON objects with a
"type": start_game, end_turn, select_unit, move_unit, spawn_unit, reset,
save, load. Every reply carries the session snapshot so a renderer can
redraw without keeping its own copy of the board.
"""

import os
import json
import asyncio
import logging

from dotenv import load_dotenv

import websockets

from hexcore import ActionError, GameConfig
from game import GameSession

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _int_field(msg: dict, name: str) -> int:
    try:
        return int(msg[name])
    except (KeyError, TypeError, ValueError):
        raise ActionError(f"Missing or invalid field {name!r}")


async def dispatch(session: GameSession, msg: dict) -> tuple[str, dict]:
    """Apply one interaction message to a session. Returns (reply type, payload)."""
    msg_type = msg.get("type", "")

    if msg_type == "end_turn":
        report = await session.end_turn()
        if report is None:
            return "error", {"message": "Turn not ended (match over or turn in progress)"}
        payload = {
            "income": report.income,
            "advanced": report.advanced,
            "ai_errors": report.ai_errors,
            "persisted": report.persisted,
        }
        if session.engine.game_over:
            return "game_over", {"result": session.engine.outcome.value, **payload}
        return "state", payload

    if msg_type == "select_unit":
        result = await session.select_unit(_int_field(msg, "unit_id"))
        combat = result.pop("combat", None)
        if combat is not None:
            return "combat", {**result, "result": combat.to_dict()}
        return "state", result

    if msg_type == "move_unit":
        unit = await session.move_unit(
            _int_field(msg, "unit_id"), _int_field(msg, "q"), _int_field(msg, "r")
        )
        return "state", {"moved": unit.id}

    if msg_type == "spawn_unit":
        unit = await session.spawn_unit(
            str(msg.get("unit_type", "")), _int_field(msg, "q"), _int_field(msg, "r")
        )
        return "state", {"spawned": unit.id}

    if msg_type == "reset":
        return "state", {"reset": await session.reset()}

    if msg_type == "save":
        return "state", {"saved": await session.save()}

    if msg_type == "load":
        return "state", {"loaded": await session.load()}

    return "error", {"message": f"Unknown message type: {msg_type}"}


async def handle_websocket(websocket):
    """Handle a single WebSocket connection (one game session)."""
    session = None

    async def send_json(msg_type: str, data: dict):
        await websocket.send(json.dumps({"type": msg_type, **data}, default=str))

    try:
        async for raw in websocket:
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await send_json("error", {"message": "Invalid JSON"})
                continue

            if msg.get("type") == "start_game":
                level = str(msg.get("level", "level1"))
                logger.info(f"Starting game: level={level}")
                session = GameSession(GameConfig.load())
                if not await session.setup(level):
                    await send_json("error", {"message": session.diagnostic})
                    continue
                await send_json("state", {"snapshot": session.snapshot()})
                continue

            if session is None:
                await send_json("error", {"message": "No game in progress"})
                continue

            try:
                reply_type, payload = await dispatch(session, msg)
            except ActionError as e:
                reply_type, payload = "error", {"message": str(e)}
            await send_json(reply_type, {**payload, "snapshot": session.snapshot()})

    except websockets.exceptions.ConnectionClosed:
        logger.info("Client disconnected")


async def main():
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8080"))

    logger.info(f"Starting server on ws://{host}:{port}")

    async with websockets.serve(
        handle_websocket,
        host,
        port,
        max_size=10 * 1024 * 1024,  # 10MB max message
    ):
        await asyncio.Future()  # run forever


if __name__ == "__main__":
    asyncio.run(main())
