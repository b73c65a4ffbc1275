"""Library filter and sort selection, persisted across sessions.

LibraryFilterNotifier owns the user's selection. Every change is mirrored
into the album_sort and album_filters cells in the same transaction, so
visible_library_albums recomputes once per change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable

from provgraph.action import action
from provgraph.config import config_provider
from provgraph.domain.albums import album_filters, album_sort, library_genres, library_year_range
from provgraph.domain.models import AlbumFilters, AlbumSortOption
from provgraph.domain.repositories import PreferencesStore, dependency
from provgraph.notifier import Notifier
from provgraph.provider import NotifierProvider, Provider

logger = logging.getLogger("provgraph.domain.library_filter")

preferences: Provider[PreferencesStore] = dependency("preferences")

_SORT_OPTIONS = list(AlbumSortOption)


@dataclass(frozen=True, slots=True)
class LibraryFilterState:
    sort_option: AlbumSortOption = AlbumSortOption.DATE_ADDED_DESC
    selected_genres: frozenset[str] = field(default_factory=frozenset)
    selected_decades: frozenset[str] = field(default_factory=frozenset)
    selected_location_id: str | None = None
    favorites_only: bool = False

    @property
    def has_active_filters(self) -> bool:
        return bool(
            self.selected_genres
            or self.selected_decades
            or self.selected_location_id is not None
            or self.favorites_only
        )

    @property
    def active_filter_count(self) -> int:
        return sum(
            (
                bool(self.selected_genres),
                bool(self.selected_decades),
                self.selected_location_id is not None,
                self.favorites_only,
            )
        )

    def to_album_filters(self) -> AlbumFilters | None:
        """Repository filter for this selection; None when nothing is selected.

        Decades ("1990", "2000") become one year range spanning all of them.
        """
        if not self.has_active_filters:
            return None
        year_from = year_to = None
        if self.selected_decades:
            decades = [_decade(d) for d in self.selected_decades]
            year_from = min(decades)
            year_to = max(decades) + 9
        return AlbumFilters(
            genres=tuple(sorted(self.selected_genres)) or None,
            year_from=year_from,
            year_to=year_to,
            is_favorite=True if self.favorites_only else None,
            location_id=self.selected_location_id,
        )


def _decade(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def _toggled(values: frozenset[str], item: str) -> frozenset[str]:
    return values - {item} if item in values else values | {item}


class LibraryFilterNotifier(Notifier[LibraryFilterState]):
    """Usage:
    filters = container.notifier(library_filter)
    filters.sync()                      # mirror the persisted sort option
    filters.toggle_genre("Jazz")
    await filters.set_sort_option(AlbumSortOption.YEAR_ASC)
    """

    def build(self, ref) -> LibraryFilterState:
        self._prefs = ref.watch(preferences)
        self._sort_key = ref.watch(config_provider).persisted_sort_key
        index = self._prefs.get_int(self._sort_key)
        if index is not None and 0 <= index < len(_SORT_OPTIONS):
            return LibraryFilterState(sort_option=_SORT_OPTIONS[index])
        return LibraryFilterState()

    @action
    def _apply(self, state: LibraryFilterState) -> None:
        self.state = state
        self.sync()

    @action
    def sync(self) -> None:
        """Write the current selection into album_sort and album_filters."""
        state = self.state
        self.container.set(album_sort, state.sort_option)
        self.container.set(album_filters, state.to_album_filters())

    async def set_sort_option(self, option: AlbumSortOption) -> None:
        self._apply(replace(self.state, sort_option=option))
        await self._prefs.set_int(self._sort_key, _SORT_OPTIONS.index(option))
        logger.debug("Persisted sort option %s", option.value)

    def toggle_genre(self, genre: str) -> None:
        self._apply(replace(self.state, selected_genres=_toggled(self.state.selected_genres, genre)))

    def set_genres(self, genres: Iterable[str]) -> None:
        self._apply(replace(self.state, selected_genres=frozenset(genres)))

    def toggle_decade(self, decade: str) -> None:
        self._apply(
            replace(self.state, selected_decades=_toggled(self.state.selected_decades, decade))
        )

    def set_decades(self, decades: Iterable[str]) -> None:
        self._apply(replace(self.state, selected_decades=frozenset(decades)))

    def set_location(self, location_id: str | None) -> None:
        self._apply(replace(self.state, selected_location_id=location_id))

    def toggle_favorites_only(self) -> None:
        self._apply(replace(self.state, favorites_only=not self.state.favorites_only))

    def set_favorites_only(self, value: bool) -> None:
        self._apply(replace(self.state, favorites_only=value))

    def clear_filters(self) -> None:
        """Drop every filter but keep the sort option."""
        self._apply(LibraryFilterState(sort_option=self.state.sort_option))

    async def reset_all(self) -> None:
        self._apply(LibraryFilterState())
        await self._prefs.remove(self._sort_key)


library_filter: NotifierProvider[LibraryFilterState] = NotifierProvider(
    LibraryFilterNotifier, name="library_filter"
)

has_active_filters: Provider[bool] = Provider(
    lambda ref: ref.watch(library_filter).has_active_filters, name="has_active_filters"
)
active_filter_count: Provider[int] = Provider(
    lambda ref: ref.watch(library_filter).active_filter_count, name="active_filter_count"
)
current_sort_option: Provider[AlbumSortOption] = Provider(
    lambda ref: ref.watch(library_filter).sort_option, name="current_sort_option"
)


def _available_decades(ref) -> list[str]:
    low, high = ref.watch(library_year_range)
    if low is None or high is None:
        return []
    return [str(decade) for decade in range(low // 10 * 10, high // 10 * 10 + 1, 10)]


available_decades: Provider[list[str]] = Provider(_available_decades, name="available_decades")

available_genres: Provider[list[str]] = Provider(
    lambda ref: ref.watch(library_genres), name="available_genres"
)
