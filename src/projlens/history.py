"""Ordered record of the project states reached so far."""

from typing import Iterable, Iterator, List, Optional

from .types import ProjectState


class ProjectStateHistory:
    """Append-only history of project states; the last one is current.

    Nothing in the background process writes to the history yet. Whether
    load-project and transition-to-state should record the state they reach
    is decided by the worker integration, so no mutator is exposed here.
    """

    def __init__(self, states: Optional[Iterable[ProjectState]] = None) -> None:
        self._states: List[ProjectState] = list(states or [])

    @property
    def current(self) -> Optional[ProjectState]:
        """The most recent state, or None if the history is empty."""
        if not self._states:
            return None
        return self._states[-1]

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[ProjectState]:
        return iter(list(self._states))
