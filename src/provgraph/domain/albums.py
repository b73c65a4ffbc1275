"""Music library providers.

library_albums fetches the whole library once; sorting and filtering happen
in visible_library_albums, so changing the sort option never refetches.
"""

from __future__ import annotations

import logging

from provgraph._errors import ValidationFailure
from provgraph.domain.management import Management
from provgraph.domain.models import (
    Album,
    AlbumFilters,
    AlbumSortOption,
    LibraryAlbum,
    YearRange,
)
from provgraph.domain.repositories import AlbumRepository, dependency
from provgraph.provider import FutureProvider, Provider, StateProvider

album_repository: Provider[AlbumRepository] = dependency("album_repository")

current_library_id: StateProvider[str | None] = StateProvider(
    lambda ref: None, name="current_library_id"
)
current_user_id: StateProvider[str | None] = StateProvider(
    lambda ref: None, name="current_user_id"
)
album_sort: StateProvider[AlbumSortOption] = StateProvider(
    lambda ref: AlbumSortOption.ARTIST_ASC, name="album_sort"
)
album_filters: StateProvider[AlbumFilters | None] = StateProvider(
    lambda ref: None, name="album_filters"
)


# ─── Sorting & filtering ────────────────────────────────────────────────


def _artist(la: LibraryAlbum) -> str:
    return la.album.artist.lower() if la.album is not None else ""


def _title(la: LibraryAlbum) -> str:
    return la.album.title.lower() if la.album is not None else ""


def sort_albums(albums: list[LibraryAlbum], option: AlbumSortOption) -> list[LibraryAlbum]:
    """Return albums ordered by option. Albums without a year sort last."""
    if option in (AlbumSortOption.YEAR_ASC, AlbumSortOption.YEAR_DESC):
        dated = [la for la in albums if la.year is not None]
        undated = [la for la in albums if la.year is None]
        dated.sort(key=lambda la: la.year, reverse=option is AlbumSortOption.YEAR_DESC)
        return dated + undated
    if option is AlbumSortOption.ARTIST_ASC:
        return sorted(albums, key=_artist)
    if option is AlbumSortOption.ARTIST_DESC:
        return sorted(albums, key=_artist, reverse=True)
    if option is AlbumSortOption.TITLE_ASC:
        return sorted(albums, key=_title)
    if option is AlbumSortOption.TITLE_DESC:
        return sorted(albums, key=_title, reverse=True)
    if option is AlbumSortOption.DATE_ADDED_ASC:
        return sorted(albums, key=lambda la: la.date_added)
    return sorted(albums, key=lambda la: la.date_added, reverse=True)


def filter_albums(albums: list[LibraryAlbum], filters: AlbumFilters | None) -> list[LibraryAlbum]:
    if filters is None:
        return list(albums)
    return [la for la in albums if filters.matches(la)]


# ─── Fetching providers ─────────────────────────────────────────────────


async def _library_albums(ref) -> list[LibraryAlbum]:
    library_id = ref.watch(current_library_id)
    if library_id is None:
        return []
    repository = ref.watch(album_repository)
    return await repository.get_library_albums(library_id)


library_albums: FutureProvider[list[LibraryAlbum]] = FutureProvider(
    _library_albums, name="library_albums"
)


async def _library_album_count(ref) -> int:
    library_id = ref.watch(current_library_id)
    if library_id is None:
        return 0
    return await ref.watch(album_repository).get_library_album_count(library_id)


library_album_count: FutureProvider[int] = FutureProvider(
    _library_album_count, name="library_album_count"
)


async def _favorite_albums(ref) -> list[LibraryAlbum]:
    library_id = ref.watch(current_library_id)
    if library_id is None:
        return []
    repository = ref.watch(album_repository)
    return await repository.get_library_albums(
        library_id, filters=AlbumFilters(is_favorite=True)
    )


favorite_albums: FutureProvider[list[LibraryAlbum]] = FutureProvider(
    _favorite_albums, name="favorite_albums"
)


async def _album_by_id(ref, album_id: str) -> Album | None:
    return await ref.watch(album_repository).get_album(album_id)


album_by_id = FutureProvider.family(_album_by_id, name="album_by_id")


async def _library_album_by_id(ref, library_album_id: str) -> LibraryAlbum | None:
    return await ref.watch(album_repository).get_library_album(library_album_id)


library_album_by_id = FutureProvider.family(_library_album_by_id, name="library_album_by_id")


async def _album_search(ref, query: str) -> list[Album]:
    if not query.strip():
        return []
    return await ref.watch(album_repository).search_albums(query)


album_search = FutureProvider.family(_album_search, name="album_search")


# ─── Derived views ──────────────────────────────────────────────────────


def _visible_library_albums(ref) -> list[LibraryAlbum]:
    albums = ref.watch(library_albums).value_or([])
    filtered = filter_albums(albums, ref.watch(album_filters))
    return sort_albums(filtered, ref.watch(album_sort))


visible_library_albums: Provider[list[LibraryAlbum]] = Provider(
    _visible_library_albums, name="visible_library_albums"
)


def _library_genres(ref) -> list[str]:
    genres: set[str] = set()
    for la in ref.watch(library_albums).value_or([]):
        if la.album is not None:
            genres.update(la.album.genres)
    return sorted(genres)


library_genres: Provider[list[str]] = Provider(_library_genres, name="library_genres")


def _library_year_range(ref) -> YearRange:
    years = [la.year for la in ref.watch(library_albums).value_or([]) if la.year is not None]
    if not years:
        return YearRange(None, None)
    return YearRange(min(years), max(years))


library_year_range: Provider[YearRange] = Provider(
    _library_year_range, name="library_year_range"
)


# ─── Commands ───────────────────────────────────────────────────────────


class AlbumManagement(Management):
    logger = logging.getLogger("provgraph.domain.albums")

    def __init__(self, container, repository: AlbumRepository) -> None:
        super().__init__(container)
        self._repository = repository

    async def add_album_to_library(self, album: Album) -> LibraryAlbum:
        """Add album to the current library, creating the canonical album if new."""
        library_id = self.container.read(current_library_id)
        user_id = self.container.read(current_user_id)
        if library_id is None or user_id is None:
            raise ValidationFailure("no library or user selected")
        created = False

        async def _add() -> LibraryAlbum:
            nonlocal created
            existing = None
            if album.discogs_id is not None:
                existing = await self._repository.get_album_by_discogs_id(album.discogs_id)
            if existing is None:
                existing = await self._repository.create_album(album)
                created = True
            return await self._repository.add_album_to_library(library_id, existing.id, user_id)

        def _stale(result: LibraryAlbum):
            targets = [library_albums, library_album_count, favorite_albums]
            if created:
                targets.append(album_search)
            return targets

        return await self._mutate(f"add album {album.title!r} to library", _add(), _stale)

    async def remove_album_from_library(self, library_album_id: str) -> None:
        await self._mutate(
            f"remove library album {library_album_id}",
            self._repository.remove_album_from_library(library_album_id),
            [
                library_albums,
                library_album_count,
                favorite_albums,
                library_album_by_id(library_album_id),
            ],
        )

    async def toggle_favorite(self, library_album_id: str) -> LibraryAlbum:
        return await self._mutate(
            f"toggle favorite on {library_album_id}",
            self._repository.toggle_favorite(library_album_id),
            [library_album_by_id(library_album_id), library_albums, favorite_albums],
        )

    async def update_library_album(self, library_album: LibraryAlbum) -> LibraryAlbum:
        return await self._mutate(
            f"update library album {library_album.id}",
            self._repository.update_library_album(library_album),
            [library_album_by_id(library_album.id), library_albums, favorite_albums],
        )


album_management: Provider[AlbumManagement] = Provider(
    lambda ref: AlbumManagement(ref.container, ref.watch(album_repository)),
    name="album_management",
)
