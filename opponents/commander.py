"""
Commander opponent - LLM-directed AI using OpenAI (gpt-4o).

The model receives a situation report and returns structured orders. Orders
are validated and executed through GameActions; if the model cannot be
reached or answers with garbage, the turn falls back to the expansionist
policy.
"""

import json
import logging
from typing import Optional

from openai import OpenAI

from hexcore.actions import GameActions
from hexcore.errors import ActionError

from .base import OpponentConfig
from .expansionist import ExpansionistOpponent

logger = logging.getLogger(__name__)


class CommanderOpponent:
    """AI whose moves are planned by a chat model."""

    def __init__(self, config: OpponentConfig, actions: GameActions, client=None):
        self.config = config
        self.name = config.name
        self.actions = actions
        self._client = client
        self.fallback = ExpansionistOpponent(config, actions)
        self.conversation_history: list[dict] = []
        self.turn_count = 0
        self.last_reasoning: Optional[str] = None

    @property
    def client(self):
        if self._client is None:
            self._client = OpenAI()  # Uses OPENAI_API_KEY env var
        return self._client

    @property
    def system_prompt(self) -> str:
        constraints = "\n".join(f"- {c}" for c in self.config.constraints) or "- none"
        return f"""You command the forces of {self.name} in a turn-based hex strategy game.

## RULES
- The map uses axial hex coordinates (q, r). Neighbors differ by one of
  (1,0) (1,-1) (0,-1) (-1,0) (-1,1) (0,1).
- Each unit may spend its moves_left on moving to empty tiles or attacking.
- Moving onto a tile you do not own captures it. Territory drives the enemy's income.
- An attack needs the target within the unit's range and costs one move.
- A player with no tiles left loses.

## STANCE
Aggression: {self.config.aggression:.1f} (0 = cautious, 1 = reckless)
Constraints:
{constraints}

Only order your own units, using their exact ids. Return JSON matching the schema."""

    @property
    def orders_schema(self) -> dict:
        """JSON schema for structured orders output."""
        return {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "reasoning": {
                    "type": "string",
                    "description": "Brief explanation of the plan for this turn"
                },
                "orders": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "additionalProperties": False,
                        "properties": {
                            "unit_id": {"type": "integer"},
                            "action": {"type": "string", "enum": ["move", "attack", "hold"]},
                            "q": {"type": "integer"},
                            "r": {"type": "integer"},
                            "target_id": {"type": "integer"}
                        },
                        "required": ["unit_id", "action", "q", "r", "target_id"]
                    }
                }
            },
            "required": ["reasoning", "orders"]
        }

    def new_turn(self):
        self.turn_count += 1
        for unit in self.actions.registry.all_owned_by(self.name):
            self.actions.registry.increment_turn(unit, self.name)

    def take_turn(self):
        try:
            orders = self.generate_orders()
        except Exception as e:
            logger.error(f"{self.name} commander error, using fallback policy: {e}")
            self.fallback.take_turn()
            return
        self.execute_orders(orders)

    def generate_orders(self) -> list[dict]:
        """Ask the model for this turn's orders."""
        situation_prompt = self._build_situation_prompt()
        self.conversation_history.append({"role": "user", "content": situation_prompt})

        response = self.client.chat.completions.create(
            model=self.config.model,
            messages=[
                {"role": "system", "content": self.system_prompt},
                *self.conversation_history[-6:],
            ],
            response_format={
                "type": "json_schema",
                "json_schema": {
                    "name": "hex_orders",
                    "schema": self.orders_schema,
                    "strict": True
                }
            },
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

        response_text = response.choices[0].message.content
        orders_dict = json.loads(response_text)
        self.conversation_history.append({"role": "assistant", "content": response_text})
        self.last_reasoning = orders_dict.get("reasoning")
        logger.info(f"{self.name} reasoning: {(self.last_reasoning or '')[:200]}")
        return list(orders_dict.get("orders", []))

    def _build_situation_prompt(self) -> str:
        registry = self.actions.registry
        grid = self.actions.grid

        prompt = f"## SITUATION REPORT - {self.name}, TURN {self.turn_count}\n\n### YOUR UNITS\n"
        own = registry.all_owned_by(self.name)
        if not own:
            prompt += "None.\n"
        for unit in own:
            q, r = registry.tile_of(unit.id)
            info = registry.catalog.get(unit.unit_type)
            reach = info.range if info else 1
            prompt += (
                f"  - ID: {unit.id} | Type: {unit.unit_type} | HP: {unit.current_health} "
                f"| At: ({q}, {r}) | Moves left: {unit.moves_left} | Range: {reach}\n"
            )

        prompt += "\n### ENEMY UNITS\n"
        enemies = [u for u in registry.units.values() if u.owner != self.name]
        if not enemies:
            prompt += "None.\n"
        for unit in enemies:
            q, r = registry.tile_of(unit.id)
            prompt += f"  - ID: {unit.id} | Owner: {unit.owner} | Type: {unit.unit_type} | HP: {unit.current_health} | At: ({q}, {r})\n"

        prompt += "\n### TERRITORY\n"
        for owner, count in sorted(grid.get_stats()["control_distribution"].items()):
            prompt += f"  - {owner}: {count} tiles\n"

        prompt += "\n### TILES YOU CAN CLAIM\n"
        for unit in own:
            options = sorted(
                k for k in self.actions.reachable(unit.id) if grid.get(*k).owner != self.name
            )
            if options:
                prompt += f"  - Unit {unit.id}: {options[:12]}\n"

        prompt += "\n### ORDERS REQUIRED\nIssue one order per unit. Use q/r for moves and target_id for attacks (0 otherwise).\n"
        return prompt

    def execute_orders(self, orders: list[dict]):
        """Carry out validated orders. A bad order is skipped, not fatal."""
        registry = self.actions.registry
        for order in orders:
            unit = registry.find_by_id(order.get("unit_id"))
            if unit is None or unit.owner != self.name:
                logger.warning(f"{self.name}: ignoring order for unit {order.get('unit_id')}")
                continue

            action = order.get("action", "hold")
            if action == "move":
                try:
                    self.actions.move(unit.id, int(order["q"]), int(order["r"]))
                except (ActionError, KeyError, TypeError, ValueError) as e:
                    logger.warning(f"{self.name}: move order rejected: {e}")
            elif action == "attack":
                result = self.actions.attack(unit.id, order.get("target_id"))
                if not result.ok:
                    logger.warning(f"{self.name}: attack order rejected: {result.error}")

    def get_reasoning(self) -> Optional[str]:
        return self.last_reasoning

    def reset(self):
        """Reset agent state for a new game."""
        self.conversation_history = []
        self.turn_count = 0
        self.last_reasoning = None


def create(config: OpponentConfig, actions: GameActions) -> CommanderOpponent:
    return CommanderOpponent(config, actions)
