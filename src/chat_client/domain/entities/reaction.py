from __future__ import annotations

from dataclasses import dataclass, field

from chat_client.domain.value_objects.enums import ReactionKind


@dataclass(frozen=True, slots=True)
class Reaction:
    message_id: str
    user_id: str
    reaction: ReactionKind


@dataclass(slots=True)
class MessageReactions:
    """Reactions on one message, at most one per user."""

    message_id: str
    _by_user: dict[str, ReactionKind] = field(default_factory=dict)

    @classmethod
    def from_reactions(cls, message_id: str, reactions: list[Reaction]) -> MessageReactions:
        agg = cls(message_id)
        for r in reactions:
            # later entries win
            agg._by_user[r.user_id] = r.reaction
        return agg

    def of(self, user_id: str) -> ReactionKind | None:
        return self._by_user.get(user_id)

    def toggles_off(self, user_id: str, reaction: ReactionKind) -> bool:
        """True when applying ``reaction`` would remove the user's current one."""
        return self._by_user.get(user_id) == reaction

    def apply(self, user_id: str, reaction: ReactionKind) -> ReactionKind | None:
        """Set or toggle the user's reaction and return the resulting value."""
        if self.toggles_off(user_id, reaction):
            del self._by_user[user_id]
            return None
        self._by_user[user_id] = reaction
        return reaction

    def counts(self) -> dict[ReactionKind, int]:
        out: dict[ReactionKind, int] = {}
        for r in self._by_user.values():
            out[r] = out.get(r, 0) + 1
        return out

    def __len__(self) -> int:
        return len(self._by_user)
