"""
Persistence for hex conquest.

PersistenceGateway translates in-memory state to and from a key/value store
addressed by (level, table). Store clients speak the wire contract:

    load(level, table)        -> {"success": bool, "data": ..., "error"?: str}
    save(level, table, data)  -> {"success": bool, "error"?: str}
    delete(level, table)      -> {"success": bool}

Tables: turn_state ({round, turn, gold}), tiles ([{q, r, color, owner}]) and
units_state (unit rows, shared by all levels).
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional, Protocol

from .errors import PersistenceError

logger = logging.getLogger(__name__)

TURN_STATE = "turn_state"
TILES = "tiles"
UNITS_STATE = "units_state"

GLOBAL_SCOPE = "_global"


class StoreClient(Protocol):
    async def load(self, level: str, table: str) -> dict: ...

    async def save(self, level: str, table: str, data: Any) -> dict: ...

    async def delete(self, level: str, table: str) -> dict: ...


class MemoryStore:
    """In-process store. Data is deep-copied through JSON like a real backend."""

    def __init__(self):
        self.tables: dict[tuple[str, str], str] = {}

    async def load(self, level: str, table: str) -> dict:
        raw = self.tables.get((level, table))
        if raw is None:
            return {"success": False, "error": f"No {table} saved for {level}"}
        return {"success": True, "data": json.loads(raw)}

    async def save(self, level: str, table: str, data: Any) -> dict:
        self.tables[(level, table)] = json.dumps(data)
        return {"success": True}

    async def delete(self, level: str, table: str) -> dict:
        self.tables.pop((level, table), None)
        return {"success": True}


class JsonFileStore:
    """Store backed by one JSON file per (level, table) under a directory."""

    def __init__(self, root: Path | str = "saves"):
        self.root = Path(root)

    def _path(self, level: str, table: str) -> Path:
        return self.root / level / f"{table}.json"

    def _read(self, level: str, table: str) -> dict:
        path = self._path(level, table)
        if not path.exists():
            return {"success": False, "error": f"No {table} saved for {level}"}
        with open(path) as f:
            return {"success": True, "data": json.load(f)}

    def _write(self, level: str, table: str, data: Any) -> dict:
        path = self._path(level, table)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        with open(tmp, "w") as f:
            json.dump(data, f, indent=2)
        tmp.replace(path)
        return {"success": True}

    def _delete(self, level: str, table: str) -> dict:
        path = self._path(level, table)
        if path.exists():
            path.unlink()
        return {"success": True}

    async def load(self, level: str, table: str) -> dict:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read, level, table)

    async def save(self, level: str, table: str, data: Any) -> dict:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._write, level, table, data)

    async def delete(self, level: str, table: str) -> dict:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._delete, level, table)


class PersistenceGateway:
    """Load/save contract between the engine and a store client.

    Every call may raise PersistenceError. A missing table is not an error:
    loads return None (or an empty list) and the caller keeps its defaults.
    """

    def __init__(self, store: StoreClient):
        self.store = store

    async def _call(self, op: str, level: str, table: str, *args) -> dict:
        try:
            response = await getattr(self.store, op)(level, table, *args)
        except Exception as e:
            raise PersistenceError(f"{op} {level}/{table} failed: {e}") from e
        if not isinstance(response, dict):
            raise PersistenceError(f"{op} {level}/{table}: malformed store response")
        return response

    async def _load(self, level: str, table: str) -> Optional[Any]:
        response = await self._call("load", level, table)
        if not response.get("success"):
            logger.debug(f"Nothing loaded for {level}/{table}: {response.get('error')}")
            return None
        return response.get("data")

    async def _save(self, level: str, table: str, data: Any):
        response = await self._call("save", level, table, data)
        if not response.get("success"):
            raise PersistenceError(f"save {level}/{table} rejected: {response.get('error')}")

    # Turn state
    async def save_turn_state(self, level: str, state: dict):
        data = {"round": int(state["round"]), "turn": int(state["turn"])}
        if state.get("gold") is not None:
            data["gold"] = int(state["gold"])
        await self._save(level, TURN_STATE, data)
        logger.info(f"Turn state saved for {level}: round {data['round']}, turn {data['turn']}")

    async def load_turn_state(self, level: str) -> Optional[dict]:
        data = await self._load(level, TURN_STATE)
        if not isinstance(data, dict):
            return None
        try:
            state = {"round": int(data["round"]), "turn": int(data["turn"])}
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Malformed turn_state for {level}: {e}") from e
        if data.get("gold") is not None:
            state["gold"] = int(data["gold"])
        return state

    # Tiles
    async def save_tiles(self, level: str, tiles: list[dict]):
        rows = [
            {"q": int(t["q"]), "r": int(t["r"]), "color": int(t["color"]), "owner": t.get("owner") or None}
            for t in tiles
        ]
        await self._save(level, TILES, rows)
        logger.info(f"Tiles saved for {level}: {len(rows)} rows")

    async def load_tiles(self, level: str) -> list[dict]:
        data = await self._load(level, TILES)
        if not data:
            return []
        rows = []
        for row in data:
            try:
                rows.append({
                    "q": int(row["q"]),
                    "r": int(row["r"]),
                    "color": int(row["color"]),
                    "owner": row.get("owner") or None,
                })
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Skipping malformed tile row in {level}: {row!r}")
        return rows

    # Units
    async def save_units(self, rows: list[dict]):
        await self._save(GLOBAL_SCOPE, UNITS_STATE, rows)
        logger.info(f"Units saved: {len(rows)} rows")

    async def load_units(self) -> Optional[list[dict]]:
        """Saved unit rows, or None if no roster was ever saved.

        An empty list is a saved empty roster.
        """
        data = await self._load(GLOBAL_SCOPE, UNITS_STATE)
        if data is None:
            return None
        if not isinstance(data, list):
            raise PersistenceError(f"Malformed {UNITS_STATE}: expected a list of rows")
        rows = []
        for row in data:
            try:
                moves = row.get("moves_left")
                rows.append({
                    "id": int(row["id"]),
                    "unit_type": str(row["unit_type"]),
                    "current_health": int(row["current_health"]),
                    "owned_by": str(row["owned_by"]),
                    "q_pos": int(row["q_pos"]),
                    "r_pos": int(row["r_pos"]),
                    "moves_left": None if moves is None else int(moves),
                })
            except (AttributeError, KeyError, TypeError, ValueError):
                logger.warning(f"Skipping malformed unit row: {row!r}")
        return rows

    async def clear(self, level: str, include_units: bool = True):
        """Delete a level's saved state."""
        await self._call("delete", level, TILES)
        await self._call("delete", level, TURN_STATE)
        if include_units:
            await self._call("delete", GLOBAL_SCOPE, UNITS_STATE)
        logger.info(f"Saved state cleared for {level}")
