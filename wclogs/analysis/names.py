"""Name resolution cache for ability and actor IDs."""

import asyncio
import logging
from collections.abc import Iterable

from wclogs.wcl.report import fetch_ability, fetch_actors

logger = logging.getLogger(__name__)

UNKNOWN_ABILITY = "Unknown Ability"
UNKNOWN_SOURCE = "Unknown Source"
ENVIRONMENT = "Environment"
ENVIRONMENT_ACTOR_ID = -1

DEFAULT_LOOKUP_CONCURRENCY = 8


def ability_placeholder(ability_id: int) -> str:
    return f"Ability ID {ability_id}"


def actor_placeholder(actor_id: int) -> str:
    return f"Unknown Actor (ID {actor_id})"


class NameCache:
    """ID -> display name cache for one analysis run.

    Two namespaces, abilities and actors, behind one ``asyncio.Lock`` that
    serialises writes. Reads never suspend between the membership check and
    the return, so on the event loop they always see a complete map.

    Abilities are fetched lazily, one ID per request; failures are cached as
    ``"Ability ID {id}"`` and never raised. Actors are bulk-loaded once with
    ``preload_actors``; an unknown actor yields a placeholder that is *not*
    cached, since a miss after preload means the report data is incomplete.

    A miss is check -> fetch -> insert without holding the lock across the
    fetch, so two concurrent misses for the same ID may both hit the API.
    Both write the same value.
    """

    def __init__(self, wcl, *, concurrency: int = DEFAULT_LOOKUP_CONCURRENCY) -> None:
        self._wcl = wcl
        self._abilities: dict[int, str] = {}
        self._actors: dict[int, str] = {}
        self._player_ids: set[int] = set()
        self._lock = asyncio.Lock()
        self._concurrency = max(1, concurrency)

    # --- abilities ---------------------------------------------------------

    async def resolve_ability(self, ability_id: int) -> str:
        if ability_id == 0:
            return UNKNOWN_ABILITY

        cached = self._abilities.get(ability_id)
        if cached is not None:
            return cached

        name = await self._lookup_ability(ability_id)
        async with self._lock:
            self._abilities[ability_id] = name
        return name

    async def preload_abilities(self, ability_ids: Iterable[int]) -> None:
        """Fetch every uncached ability ID, a bounded number at a time."""
        missing = sorted({
            aid for aid in ability_ids
            if aid != 0 and aid not in self._abilities
        })
        if not missing:
            return

        semaphore = asyncio.Semaphore(self._concurrency)

        async def _load(ability_id: int) -> None:
            async with semaphore:
                name = await self._lookup_ability(ability_id)
            async with self._lock:
                self._abilities[ability_id] = name

        await asyncio.gather(*(_load(aid) for aid in missing))
        logger.debug("Preloaded %d ability names", len(missing))

    def cached_ability(self, ability_id: int) -> str | None:
        return self._abilities.get(ability_id)

    async def _lookup_ability(self, ability_id: int) -> str:
        try:
            ability = await fetch_ability(self._wcl, ability_id)
        except Exception:
            logger.warning(
                "Ability lookup failed for %d, using placeholder",
                ability_id, exc_info=True,
            )
            return ability_placeholder(ability_id)
        if ability is None or not ability.name:
            return ability_placeholder(ability_id)
        return ability.name

    # --- actors ------------------------------------------------------------

    async def preload_actors(self, report_code: str) -> int:
        """Load every actor of the report in one request. Returns the count.

        Failure propagates: without actor names nothing downstream is accurate.
        """
        actors = await fetch_actors(self._wcl, report_code)
        async with self._lock:
            for actor in actors:
                self._actors[actor.id] = actor.name
                if actor.is_player:
                    self._player_ids.add(actor.id)
        logger.info("Loaded %d actors for report %s", len(actors), report_code)
        return len(actors)

    def resolve_actor(self, actor_id: int) -> str:
        if actor_id == ENVIRONMENT_ACTOR_ID:
            return ENVIRONMENT
        name = self._actors.get(actor_id)
        if name is None:
            return actor_placeholder(actor_id)
        return name

    def players(self) -> dict[int, str]:
        return {aid: self._actors[aid] for aid in self._player_ids}

    def find_player(self, name: str) -> int | None:
        """Case-insensitive player lookup; falls back to any actor of that name."""
        wanted = name.casefold()
        fallback = None
        for actor_id, actor_name in self._actors.items():
            if actor_name.casefold() != wanted:
                continue
            if actor_id in self._player_ids:
                return actor_id
            if fallback is None:
                fallback = actor_id
        return fallback

    def suggest_players(self, name: str, limit: int = 3) -> list[str]:
        wanted = name.casefold()
        suggestions = []
        for player_name in sorted(self.players().values(), key=str.casefold):
            candidate = player_name.casefold()
            if wanted in candidate or candidate in wanted:
                suggestions.append(player_name)
                if len(suggestions) >= limit:
                    break
        return suggestions

    # --- helpers -----------------------------------------------------------

    async def format_killing_info(
        self, killer_id: int | None, ability_id: int | None,
    ) -> tuple[str, str]:
        """(ability name, source name) for a killing blow."""
        ability_name = (
            await self.resolve_ability(ability_id)
            if ability_id is not None else UNKNOWN_ABILITY
        )
        source_name = (
            self.resolve_actor(killer_id) if killer_id is not None else UNKNOWN_SOURCE
        )
        return ability_name, source_name

    def stats(self) -> tuple[int, int]:
        return len(self._abilities), len(self._actors)
