"""
Game service for the session join/create/move/play flows.

Each flow resolves identity, writes through the repository, refetches the
affected rows and returns what the caller should broadcast. Repository calls
are blocking sqlite3 work, so they run in worker threads and every database
round trip is a suspension point for the event loop.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from nuverse_server.persistence import (
    GameRepository,
    PlayerCardRecord,
    SessionRecord,
)
from nuverse_shared.cards import CardValidationError, card_from_dict
from nuverse_shared.constants import DISCARD_ZONE
from nuverse_shared.enums import ActionType


logger = logging.getLogger(__name__)

T = TypeVar("T")

NOT_FOUND_OR_NOT_OWNED = "Card not found in this session or not owned by you"


@dataclass
class JoinResult:
    """Outcome of a successful join."""
    session: SessionRecord
    user_id: int
    username: str
    created_session: bool

    @property
    def session_id(self) -> int:
        return self.session.session_id


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_username(username: Any) -> str | None:
    if not isinstance(username, str) or not username.strip():
        return "user_id is required"
    return None


def _validate_session_id(session_id: Any) -> str | None:
    if not _is_int(session_id):
        return "session_id must be an integer"
    return None


class GameService:
    """
    Runs the session flows against the repository.

    Methods return ``(success, message, result)`` tuples for expected
    failures (bad input, unknown session, ownership mismatch). Database
    errors propagate to the caller.
    """

    def __init__(self, repository: GameRepository):
        self._repository = repository

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(func, *args)

    # =========================================================================
    # Join
    # =========================================================================

    async def join_game(
        self,
        session_name: Any,
        username: Any
    ) -> tuple[bool, str, JoinResult | None]:
        """
        Resolve the user and the named session (creating either if needed)
        and record the user as a player of it.

        The snapshot is built separately with ``build_state`` once the
        connection is in the session room.

        Args:
            session_name: Human-readable session name
            username: Caller-chosen identity string

        Returns:
            Tuple of (success, message, JoinResult or None)
        """
        if not isinstance(session_name, str) or not session_name.strip():
            return False, "session_name is required", None
        error = _validate_username(username)
        if error:
            return False, error, None

        user_id = await self._run(self._repository.get_or_create_user, username)
        session, created = await self._run(
            self._repository.get_or_create_session, session_name, user_id
        )
        if created:
            logger.info(
                f"Session '{session_name}' ({session.session_id}) created with GM {username}"
            )

        if await self._run(self._repository.ensure_player_session, user_id, session.session_id):
            logger.debug(f"Recorded {username} ({user_id}) in session {session.session_id}")

        return True, f"Joined session '{session_name}'", JoinResult(
            session=session,
            user_id=user_id,
            username=username,
            created_session=created,
        )

    async def build_state(self, session: SessionRecord) -> dict[str, Any]:
        """Assemble the full snapshot of a session."""
        players = await self._run(self._repository.get_session_players, session.session_id)
        catalog = await self._run(self._repository.get_card_catalog)
        cards = await self._run(self._repository.get_session_cards, session.session_id)
        combat_log = await self._run(self._repository.get_combat_log, session.session_id)

        return {
            "session_id": session.session_id,
            "session_name": session.session_name,
            "gm_user_id": session.gm_user_id,
            "players": [p.to_dict() for p in players],
            "all_card_definitions": [c.to_dict() for c in catalog],
            "cards": [c.to_dict() for c in cards],
            "combat_log": [entry.to_dict() for entry in combat_log],
        }

    # =========================================================================
    # Card Creation
    # =========================================================================

    async def create_card(
        self,
        session_id: Any,
        username: Any,
        card_data: Any
    ) -> tuple[bool, str, PlayerCardRecord | None]:
        """
        Create a card definition and place one copy in the session.

        The new copy starts in the created-card zone, with no slot, inactive.
        The returned record is read back from the database.

        Returns:
            Tuple of (success, message, PlayerCardRecord or None)
        """
        error = _validate_session_id(session_id) or _validate_username(username)
        if error:
            return False, error, None

        try:
            card = card_from_dict(card_data)
        except CardValidationError as e:
            return False, str(e), None

        session = await self._run(self._repository.get_session, session_id)
        if not session:
            return False, f"Session {session_id} not found", None

        user_id = await self._run(self._repository.get_or_create_user, username)
        player_card_id = await self._run(
            self._repository.create_card, user_id, username, session_id, card
        )

        record = await self._run(self._repository.get_player_card, player_card_id)
        if record is None:
            raise RuntimeError(f"Created card instance {player_card_id} could not be read back")

        logger.info(
            f"{username} created {card.card_type.value} card '{card.card_name}' "
            f"(card {record.card_id}, instance {player_card_id}) in session {session_id}"
        )

        return True, "Card created", record

    # =========================================================================
    # Card Move / Play
    # =========================================================================

    async def move_card(
        self,
        session_id: Any,
        username: Any,
        player_card_id: Any,
        to_location: Any,
        to_slot_id: Any = None,
        is_active: Any = False
    ) -> tuple[bool, str, PlayerCardRecord | None]:
        """
        Move a card instance owned by the caller to another zone/slot.

        Returns:
            Tuple of (success, message, refreshed PlayerCardRecord or None)
        """
        error = (
            _validate_session_id(session_id)
            or _validate_username(username)
            or self._validate_player_card_id(player_card_id)
        )
        if error:
            return False, error, None
        if not isinstance(to_location, str) or not to_location:
            return False, "to_location is required", None
        if to_slot_id is not None and not _is_int(to_slot_id):
            return False, "to_slot_id must be an integer or null", None
        if is_active is None:
            is_active = False
        if not isinstance(is_active, bool):
            return False, "is_active must be a boolean", None

        slot_text = f" slot {to_slot_id}" if to_slot_id is not None else ""
        return await self._relocate(
            session_id=session_id,
            username=username,
            player_card_id=player_card_id,
            location=to_location,
            slot_id=to_slot_id,
            is_active=is_active,
            action_type=ActionType.CARD_MOVED,
            description=f"{username} moved card to {to_location}{slot_text}",
        )

    async def play_card(
        self,
        session_id: Any,
        username: Any,
        player_card_id: Any
    ) -> tuple[bool, str, PlayerCardRecord | None]:
        """
        Play a card instance owned by the caller: it goes to the discard
        zone with no slot and becomes inactive.

        Returns:
            Tuple of (success, message, refreshed PlayerCardRecord or None)
        """
        error = (
            _validate_session_id(session_id)
            or _validate_username(username)
            or self._validate_player_card_id(player_card_id)
        )
        if error:
            return False, error, None

        return await self._relocate(
            session_id=session_id,
            username=username,
            player_card_id=player_card_id,
            location=DISCARD_ZONE,
            slot_id=None,
            is_active=False,
            action_type=ActionType.CARD_PLAYED,
            description=f"{username} played a card",
        )

    async def _relocate(
        self,
        session_id: int,
        username: str,
        player_card_id: int,
        location: str,
        slot_id: int | None,
        is_active: bool,
        action_type: ActionType,
        description: str
    ) -> tuple[bool, str, PlayerCardRecord | None]:
        """Shared ownership-checked update, refetch and log for move/play."""
        # Move/play never provision users
        user_id = await self._run(self._repository.get_user_id, username)
        if user_id is None:
            logger.info(f"Rejected {action_type.value} by unknown user {username!r}")
            return False, NOT_FOUND_OR_NOT_OWNED, None

        updated = await self._run(
            self._repository.move_player_card,
            player_card_id,
            user_id,
            session_id,
            location,
            slot_id,
            is_active,
            action_type,
            description,
        )
        if not updated:
            logger.info(
                f"Rejected {action_type.value} of instance {player_card_id} by {username} "
                f"in session {session_id}"
            )
            return False, NOT_FOUND_OR_NOT_OWNED, None

        record = await self._run(self._repository.get_player_card, player_card_id)
        if record is None:
            raise RuntimeError(f"Card instance {player_card_id} vanished after update")

        logger.info(
            f"{username} {action_type.value.lower()}: instance {player_card_id} -> "
            f"{record.location} (slot {record.slot_id}) in session {session_id}"
        )

        return True, action_type.value, record

    @staticmethod
    def _validate_player_card_id(player_card_id: Any) -> str | None:
        if not _is_int(player_card_id):
            return "player_card_id must be an integer"
        return None
