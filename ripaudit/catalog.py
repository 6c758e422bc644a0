"""Media catalog: where tracks to audit come from.

A catalog lists tracks (id, title, artist, categories) and resolves a
track id to a file path. Remote catalogs may raise RateLimitedError; the
orchestrator paces and retries those calls.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

from ripaudit.config import settings
from ripaudit.errors import CatalogError

logger = structlog.get_logger()


@dataclass(frozen=True)
class CatalogTrack:
    track_id: int
    title: str
    artist: str = ""
    duration_s: float | None = None
    categories: tuple[str, ...] = ()

    @property
    def display_name(self) -> str:
        return f"{self.artist} - {self.title}" if self.artist else self.title


@dataclass(frozen=True)
class ResolvedTrack:
    track: CatalogTrack
    file_path: str


@dataclass(frozen=True)
class UnresolvedTrack:
    track: CatalogTrack
    reason: str

    def to_dict(self) -> dict[str, object]:
        return {
            "track_id": self.track.track_id,
            "title": self.track.title,
            "artist": self.track.artist,
            "reason": self.reason,
        }


@runtime_checkable
class TrackCatalog(Protocol):
    """Interface the orchestrator needs from a media catalog."""

    def list_tracks(self, track_ids: Sequence[int] | None = None) -> list[CatalogTrack]:
        """All tracks, or only those with the given ids."""
        ...

    def resolve_path(self, track_id: int) -> str:
        """Filesystem path of a track ("" when the catalog has none)."""
        ...


# ── Adapters ─────────────────────────────────────────────


class InMemoryCatalog:
    """Catalog backed by a list of tracks and an id → path mapping."""

    def __init__(
        self, tracks: Iterable[CatalogTrack], paths: Mapping[int, str] | None = None
    ) -> None:
        self._tracks = list(tracks)
        self._paths = dict(paths or {})

    def list_tracks(self, track_ids: Sequence[int] | None = None) -> list[CatalogTrack]:
        if track_ids is None:
            return list(self._tracks)
        wanted = set(track_ids)
        return [t for t in self._tracks if t.track_id in wanted]

    def resolve_path(self, track_id: int) -> str:
        return self._paths.get(track_id, "")


def _split_artist_title(stem: str) -> tuple[str, str]:
    if " - " in stem:
        artist, title = stem.split(" - ", 1)
        return artist.strip(), title.strip()
    return "", stem


class DirectoryCatalog:
    """Catalog over audio files found under a library directory.

    Ids are assigned in sorted path order. "Artist - Title" file names are
    split into artist and title; the parent folder name is the category.
    """

    def __init__(
        self,
        root: Path | str | None = None,
        extensions: Iterable[str] | None = None,
    ) -> None:
        self.root = Path(root) if root is not None else settings.library_dir
        self.extensions = {e.lower() for e in (extensions or settings.audio_extensions)}
        self._index: dict[int, Path] | None = None

    def _scan(self) -> dict[int, Path]:
        if self._index is None:
            if not self.root.is_dir():
                raise CatalogError("Library directory not found", str(self.root))
            files = sorted(
                p for p in self.root.rglob("*")
                if p.is_file() and p.suffix.lower() in self.extensions
            )
            self._index = {i: p for i, p in enumerate(files, start=1)}
            logger.info("catalog.scanned", root=str(self.root), tracks=len(files))
        return self._index

    def _track(self, track_id: int, path: Path) -> CatalogTrack:
        artist, title = _split_artist_title(path.stem)
        rel_parent = path.parent.relative_to(self.root)
        categories = (rel_parent.parts[0],) if rel_parent.parts else ()
        return CatalogTrack(track_id=track_id, title=title, artist=artist, categories=categories)

    def list_tracks(self, track_ids: Sequence[int] | None = None) -> list[CatalogTrack]:
        index = self._scan()
        ids = sorted(index) if track_ids is None else [i for i in track_ids if i in index]
        return [self._track(i, index[i]) for i in ids]

    def resolve_path(self, track_id: int) -> str:
        index = self._scan()
        if track_id not in index:
            raise CatalogError(f"Unknown track id {track_id}")
        return str(index[track_id])
