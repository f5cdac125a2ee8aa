"""CPU seats for UNO: naming, heuristic and turn pacing."""

import asyncio
import logging
import os
import random
from collections import Counter
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from config import config
from constants import UNO_COLORS
from errors import IllegalMove
from games.base import GamePhase, Player
from games.cards import UnoCard
from games.uno import UnoGame


# Set AI_DEBUG=1 to log every CPU decision
AI_DEBUG = os.environ.get("AI_DEBUG", "0") == "1"

ai_logger = logging.getLogger("arcade.ai")
if AI_DEBUG:
    ai_logger.setLevel(logging.DEBUG)
    if not ai_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [AI] %(message)s", datefmt="%H:%M:%S"
        ))
        ai_logger.addHandler(handler)


def ai_log(message: str):
    """Log AI decision info when AI_DEBUG is enabled."""
    if AI_DEBUG:
        ai_logger.debug(message)


# =============================================================================
# CPU Turn Timing
# =============================================================================

def think_time() -> float:
    """Cosmetic pause before a CPU acts, so observers can follow the turn."""
    low = max(0.0, config.timing.cpu_think_min)
    high = max(low, config.timing.cpu_think_max)
    if high <= 0:
        return 0.0
    return random.uniform(low, high)


# =============================================================================
# Profiles
# =============================================================================

@dataclass
class CPUProfile:
    """Display identity for a CPU seat."""
    name: str
    style: str

    def to_dict(self) -> dict:
        return {"name": self.name, "style": self.style}


CPU_PROFILES = [
    CPUProfile(name="Sofia", style="Color Hoarder"),
    CPUProfile(name="Marcus", style="Steady Matcher"),
    CPUProfile(name="Kenji", style="Wild Saver"),
    CPUProfile(name="River", style="Quick Dumper"),
    CPUProfile(name="Maya", style="Stack Builder"),
    CPUProfile(name="Diego", style="Reverse Fan"),
]

# room_id -> names in use
_room_used_profiles: dict[str, set[str]] = {}


def assign_profile(room_id: str) -> CPUProfile:
    """Pick an unused profile for the room; falls back to a numbered CPU."""
    used = _room_used_profiles.setdefault(room_id, set())
    available = [p for p in CPU_PROFILES if p.name not in used]
    if available:
        profile = random.choice(available)
    else:
        profile = CPUProfile(name=f"CPU {len(used) + 1}", style="Balanced")
    used.add(profile.name)
    return profile


def release_profile(name: str, room_id: str) -> None:
    if room_id in _room_used_profiles:
        _room_used_profiles[room_id].discard(name)
        if not _room_used_profiles[room_id]:
            del _room_used_profiles[room_id]


def cleanup_room_profiles(room_id: str) -> None:
    _room_used_profiles.pop(room_id, None)


def reset_all_profiles() -> None:
    _room_used_profiles.clear()


# =============================================================================
# Decisions
# =============================================================================

@dataclass
class UnoDecision:
    """What a CPU seat does this step: play cards, or draw."""
    action: str  # "play" or "draw"
    card_ids: Optional[list[str]] = None
    color: Optional[str] = None


class UnoAI:
    """Heuristic UNO player."""

    @staticmethod
    def favorite_color(hand: list[UnoCard]) -> str:
        """Most-held non-wild color (ties broken by color order)."""
        counts = Counter(c.color for c in hand if not c.is_wild)
        if not counts:
            return UNO_COLORS[0]
        return max(UNO_COLORS, key=lambda color: counts.get(color, 0))

    @staticmethod
    def choose_play(game: UnoGame, player: Player) -> UnoDecision:
        """
        Prefer a non-wild card in the most-held color, then any other
        non-wild card, then a wildcard; otherwise draw.
        """
        playable = game.playable_cards(player)
        if not playable:
            ai_log(f"{player.name}: nothing playable, drawing")
            return UnoDecision(action="draw")

        favorite = UnoAI.favorite_color(player.hand)
        non_wild = [c for c in playable if not c.is_wild]
        preferred = [c for c in non_wild if c.color == favorite]

        if preferred:
            card = preferred[0]
        elif non_wild:
            card = non_wild[0]
        else:
            card = playable[0]

        color = favorite if card.is_wild else None
        ai_log(f"{player.name}: playing {card.color} {card.type} (favorite={favorite})")
        return UnoDecision(action="play", card_ids=[card.id], color=color)


async def process_cpu_turn(
    game: UnoGame,
    cpu_player: Player,
    broadcast_callback: Callable[[], Awaitable[None]],
) -> None:
    """Play one full CPU turn: think, then play or draw (and play a playable draw)."""
    await asyncio.sleep(think_time())

    if game.phase != GamePhase.PLAYING or game.current_player() is not cpu_player:
        return

    try:
        decision = UnoAI.choose_play(game, cpu_player)
        if decision.action == "draw":
            game.draw_card(cpu_player.id)
            # A playable drawn card keeps the turn
            if game.current_player() is cpu_player and game.has_drawn:
                await broadcast_callback()
                await asyncio.sleep(think_time())
                follow_up = UnoAI.choose_play(game, cpu_player)
                if follow_up.action == "play":
                    _call_uno_if_needed(game, cpu_player, len(follow_up.card_ids))
                    game.play_cards(cpu_player.id, follow_up.card_ids, follow_up.color)
                else:
                    game.pass_turn(cpu_player.id)
        else:
            _call_uno_if_needed(game, cpu_player, len(decision.card_ids))
            game.play_cards(cpu_player.id, decision.card_ids, decision.color)
    except IllegalMove as e:
        # The heuristic only picks legal cards; log and move on rather than stall the table
        logging.getLogger(__name__).warning(f"CPU {cpu_player.name} made an illegal move: {e}")
        if game.current_player() is cpu_player and game.phase == GamePhase.PLAYING:
            if game.has_drawn:
                game.pass_turn(cpu_player.id)
            else:
                game.draw_card(cpu_player.id)

    await broadcast_callback()


def _call_uno_if_needed(game: UnoGame, cpu_player: Player, playing: int) -> None:
    if len(cpu_player.hand) - playing == 1:
        game.call_uno(cpu_player.id)
