"""
Star registry: per-folder sets of starred question identifiers.
"""
import logging
from typing import Callable, List, Optional, Set

from .models import Question
from .storage import PersistentStore, starred_key


def star_id(folder: str, question_index: int) -> str:
    """Identifier of a starred question: '<folder>-<questionIndex>'."""
    return f"{folder}-{question_index}"


class StarRegistry:
    """
    Tracks starred questions per folder.

    The persisted representation is a JSON list; only membership matters.
    """

    def __init__(
        self,
        store: PersistentStore,
        question_source: Optional[Callable[[str], List[Question]]] = None
    ):
        """
        Initialize the registry.

        Args:
            store: Persistent store holding the starred sets
            question_source: Returns a folder's questions in order; used to
                resolve starred ids back into Question records
        """
        self.store = store
        self.question_source = question_source
        self.logger = logging.getLogger(__name__)

    def starred_ids(self, folder: str) -> Set[str]:
        stored = self.store.get(starred_key(folder), [])
        if not isinstance(stored, list):
            self.logger.warning(f"Ignoring malformed starred set for folder '{folder}'")
            return set()
        return set(stored)

    def is_starred(self, folder: str, question_index: int) -> bool:
        return star_id(folder, question_index) in self.starred_ids(folder)

    def toggle_star(self, folder: str, question_index: int) -> bool:
        """
        Star the question if unstarred, unstar it otherwise.

        Args:
            folder: Folder the question belongs to
            question_index: Index of the question

        Returns:
            True if the question is starred after the call

        Raises:
            StoreUnavailable: If the updated set cannot be persisted
        """
        identifier = star_id(folder, question_index)
        starred = self.starred_ids(folder)

        if identifier in starred:
            starred.discard(identifier)
            now_starred = False
        else:
            starred.add(identifier)
            now_starred = True

        self.store.set(starred_key(folder), sorted(starred))
        self.logger.info(
            f"{'Starred' if now_starred else 'Unstarred'} question {identifier}",
            extra={
                'event_type': 'question_star_toggled',
                'folder': folder,
                'question_index': question_index,
                'starred': now_starred
            }
        )
        return now_starred

    def starred_count(self, folder: str) -> int:
        return len(self.starred_ids(folder))

    def clear(self, folder: str) -> bool:
        return self.store.delete(starred_key(folder))

    def get_starred_questions(self, folder: str) -> List[Question]:
        """
        Resolve the folder's starred ids into questions, in folder order.

        Ids pointing past the end of the folder's question list are ignored.
        """
        if self.question_source is None:
            raise RuntimeError("StarRegistry has no question source configured")

        starred = self.starred_ids(folder)
        if not starred:
            return []

        questions = self.question_source(folder) or []
        return [
            question for index, question in enumerate(questions)
            if star_id(folder, index) in starred
        ]
