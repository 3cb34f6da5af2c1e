from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from ..domain.models import Role, Turn


class ConversationHistory:
    """Ordered turns of one session, replayed as context on every request.

    History only grows; turns are never removed or rewritten.
    """

    def __init__(self, turns: Optional[Iterable[Turn]] = None) -> None:
        self._turns: List[Turn] = list(turns or [])

    def append(self, turn: Turn) -> Turn:
        self._turns.append(turn)
        return turn

    def extend(self, turns: Iterable[Turn]) -> None:
        # Materialise first so a failing iterable cannot leave half a pair behind.
        batch = list(turns)
        self._turns.extend(batch)

    def all(self) -> List[Turn]:
        return list(self._turns)

    def last_user_turn(self) -> Optional[Turn]:
        for turn in reversed(self._turns):
            if turn.role == "user":
                return turn
        return None

    def count(self, role: Role) -> int:
        return sum(1 for turn in self._turns if turn.role == role)

    def as_messages(self, pending: Sequence[Turn] = ()) -> List[Dict[str, str]]:
        return [{"role": t.role, "content": t.content} for t in [*self._turns, *pending]]

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(list(self._turns))
