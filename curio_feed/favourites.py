"""Favourites and view-history operations over the local item store."""

import sqlite3
from datetime import datetime
from typing import Callable

from .database import PersistResult
from .logging_config import create_execution_logger
from .models import CurioItem
from .store import ItemStore, PersistedItem


class FavouritesService:
    """User-state accessor. Only touches the item store, never the network."""

    def __init__(
        self,
        store: ItemStore,
        clock: Callable[[], datetime] = datetime.now,
        execution_id: str | None = None,
    ):
        """Initialize the service.

        Args:
            store: Item store holding the user-owned fields
            clock: Source of "now" for favourite and viewed timestamps
            execution_id: Execution ID for logging context
        """
        self.store = store
        self.clock = clock
        self.logger = create_execution_logger("favourites", execution_id)

    def toggle_favourite(self, item: CurioItem) -> PersistResult:
        result = self.store.toggle_favourite(item, self.clock())
        if result.ok:
            self.logger.log_item_action(item.id, "favourite_toggled")
        else:
            # Best effort: the caller keeps working with its in-memory state
            self.logger.warning(
                f"Favourite toggle not saved: {result.error}", item_id=item.id
            )
        return result

    def is_favourite(self, item_id: str) -> bool:
        try:
            return self.store.is_favourite(item_id)
        except sqlite3.Error as err:
            self.logger.error(
                f"Could not read favourite state: {err}", item_id=item_id, error=str(err)
            )
            return False

    def fetch_favourites(self) -> list[PersistedItem]:
        """All favourites, most recently favourited first."""
        try:
            return self.store.get_favourites()
        except (sqlite3.Error, ValueError) as err:
            self.logger.error(f"Could not load favourites: {err}", error=str(err))
            return []

    def mark_as_viewed(self, item: CurioItem) -> PersistResult:
        result = self.store.mark_viewed(item, self.clock())
        if result.ok:
            self.logger.log_item_action(item.id, "viewed")
        else:
            self.logger.warning(f"Viewed mark not saved: {result.error}", item_id=item.id)
        return result
