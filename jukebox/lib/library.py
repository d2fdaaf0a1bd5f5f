# Remote Jukebox
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Library index: the ordered list of playable tracks under the source root.

Built once at startup from the line-oriented output of ``tree -f -i`` (or
any configured listing command).  The order of that output is the play
order: auto-advance always moves to the next entry.

Also holds the client-facing side of a track: its short path, the base64
transport form the page sends back, and the path grammar a requested path
must match before it is allowed anywhere near the player command.
"""

import base64
import binascii
import logging
import re

from .errors import ProcessError, ScanError, ValidationError

logger = logging.getLogger("jukebox.library")

AUDIO_EXTENSIONS = (".mp3",)
LIST_COMMAND = ["tree", "-f", "-i", "--noreport"]

# Artist folder / "NNNN - album" / "NN - title.ext"
_ARTIST_CHARS = r"A-Za-z\[\\\]^_`А-яЁё0-9\-&() "
_TITLE_CHARS = _ARTIST_CHARS + r",!"


def path_pattern(extensions=AUDIO_EXTENSIONS) -> re.Pattern:
    """Compile the accepted short-path grammar for the given extensions."""
    exts = "|".join(re.escape(e.lstrip(".")) for e in extensions)
    return re.compile(
        rf"[{_ARTIST_CHARS}]+"
        rf"/[0-9]{{4}} - [{_TITLE_CHARS}]+"
        rf"/[0-9]{{2}} - [{_TITLE_CHARS}]+"
        rf"\.(?:{exts})"
    )


def encode_short_path(short_path: str) -> str:
    return base64.b64encode(short_path.encode("utf-8")).decode("ascii")


def decode_short_path(value) -> str:
    """Decode a client file identifier; raises ValidationError."""
    if not isinstance(value, str) or not value:
        raise ValidationError("missing file")
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise ValidationError("suspicious request")


class Track:
    """One playable file.  Immutable once indexed."""

    __slots__ = ("path", "short_path", "artist", "album", "index")

    def __init__(self, path: str, short_path: str, index: int):
        segments = short_path.split("/")[:-1]
        self.path = path
        self.short_path = short_path
        self.artist = segments[0] if segments else ""
        self.album = segments[1] if len(segments) > 1 else ""
        self.index = index

    @property
    def file_id(self) -> str:
        """Transport form of the short path, as sent by the page."""
        return encode_short_path(self.short_path)

    def __repr__(self):
        return f"Track({self.index}, {self.short_path!r})"


class Library:
    """Ordered, read-only sequence of tracks."""

    def __init__(self, root: str, tracks=(), extensions=AUDIO_EXTENSIONS):
        self.root = root
        self.extensions = tuple(extensions)
        self._tracks = list(tracks)
        self._by_short = {t.short_path: t for t in self._tracks}
        self._pattern = path_pattern(self.extensions)

    def __len__(self):
        return len(self._tracks)

    def __iter__(self):
        return iter(self._tracks)

    def __getitem__(self, index) -> Track:
        return self._tracks[index]

    def get(self, short_path: str) -> Track | None:
        return self._by_short.get(short_path)

    def successor(self, track: Track) -> Track | None:
        """Next track in play order, or None after the last one."""
        nxt = track.index + 1
        return self._tracks[nxt] if nxt < len(self._tracks) else None

    def is_acceptable(self, short_path: str) -> bool:
        return self._pattern.fullmatch(short_path) is not None

    def resolve(self, file_id) -> Track:
        """Map a client file identifier to an indexed track.

        Deny by default: the decoded path must match the grammar and be
        part of the index.
        """
        short_path = decode_short_path(file_id)
        if not self.is_acceptable(short_path):
            logger.warning("Suspicious path rejected: %r", short_path)
            raise ValidationError("suspicious request")
        track = self.get(short_path)
        if track is None:
            logger.warning("Unknown track requested: %s", short_path)
            raise ValidationError("unknown track")
        return track


def parse_listing(output: str, root: str, extensions=AUDIO_EXTENSIONS) -> list[Track]:
    """Turn listing output into tracks, keeping the listing order."""
    root = root.rstrip("/") or "/"
    prefix = root if root.endswith("/") else root + "/"
    exts = tuple(e.lower() for e in extensions)
    tracks = []
    seen = set()
    for line in output.splitlines():
        line = line.rstrip()
        if not line.lower().endswith(exts):
            continue
        start = line.find(prefix)
        if start < 0:
            continue
        path = line[start:]
        if path in seen:
            continue
        seen.add(path)
        tracks.append(Track(path, path[len(prefix):], len(tracks)))
    return tracks


async def build_index(root: str, runner, command=None,
                      extensions=AUDIO_EXTENSIONS) -> Library:
    """Scan *root* once and return the library.  Raises ScanError."""
    argv = list(command or LIST_COMMAND) + [root]
    try:
        output = await runner.run(argv)
    except ProcessError as e:
        raise ScanError(f"Cannot list {root}: {e}") from e
    tracks = parse_listing(output, root, extensions)
    logger.info("Indexed %d tracks under %s", len(tracks), root)
    return Library(root, tracks, extensions)
