"""Identifiers of code sources, limited to git repositories at a revision."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from functools import total_ordering
from typing import Iterable
from urllib.parse import SplitResult, parse_qsl, urlsplit, urlunsplit

from nearbuild.errors import BuildError

_SPECIAL_SCHEMES = frozenset({"http", "https", "ws", "wss", "ftp", "file"})
_FORM_SAFE = frozenset(b"*-._")
_MISSING_REV = "WRONG_REV"


def _parse_url(text: str) -> SplitResult:
    """Parse an absolute URL, lightly normalised, or raise ``BuildError``."""
    try:
        parts = urlsplit(text)
    except ValueError as err:
        raise BuildError(f"invalid url `{text}`: {err}") from err
    if not parts.scheme:
        raise BuildError(f"invalid url `{text}`: relative URL without a base")
    scheme = parts.scheme.lower()
    path = parts.path
    if scheme in _SPECIAL_SCHEMES and parts.netloc and not path:
        path = "/"
    return parts._replace(scheme=scheme, path=path)


def _cannot_be_a_base(parts: SplitResult) -> bool:
    return (
        parts.scheme not in _SPECIAL_SCHEMES
        and not parts.netloc
        and not parts.path.startswith("/")
    )


def _form_urlencode(value: str) -> str:
    pieces = []
    for byte in value.encode("utf-8"):
        if (byte < 128 and chr(byte).isalnum()) or byte in _FORM_SAFE:
            pieces.append(chr(byte))
        elif byte == 0x20:
            pieces.append("+")
        else:
            pieces.append(f"%{byte:02X}")
    return "".join(pieces)


@total_ordering
class CanonicalUrl:
    """A normalised URL used only to compare repositories with each other.

    A trailing slash and a ``.git`` suffix are dropped, and GitHub URLs are
    lower-cased and forced to ``https``.
    """

    __slots__ = ("_url",)

    def __init__(self, url: str) -> None:
        text = str(url)
        parts = _parse_url(text)
        if _cannot_be_a_base(parts):
            raise BuildError(
                f"invalid url `{text}`: cannot-be-a-base-URLs are not supported"
            )
        scheme = parts.scheme
        path = parts.path
        if path.endswith("/") and len(path) > 1:
            path = path[:-1]
        if parts.hostname == "github.com":
            scheme = "https"
            path = path.lower()
        if path.endswith(".git"):
            path = path[: -len(".git")]
        self._url = urlunsplit(parts._replace(scheme=scheme, path=path))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CanonicalUrl):
            return NotImplemented
        return self._url == other._url

    def __lt__(self, other: "CanonicalUrl") -> bool:
        if not isinstance(other, CanonicalUrl):
            return NotImplemented
        return self._url < other._url

    def __hash__(self) -> int:
        return hash(self._url)

    def __str__(self) -> str:
        return self._url

    def __repr__(self) -> str:
        return f"CanonicalUrl({self._url!r})"


@dataclass(frozen=True, order=True)
class GitReference:
    """A specific commit of a git repository, given by its full revision hash."""

    rev: str

    @classmethod
    def from_query(cls, query_pairs: Iterable[tuple[str, str]]) -> "GitReference":
        """Take the revision from the ``rev`` pair of a URL query."""
        rev = _MISSING_REV
        for key, value in query_pairs:
            if key == "rev":
                rev = value
        return cls(rev)

    def pretty_ref(self, url_encoded: bool = False) -> str:
        """The reference as a ``rev=...`` query fragment."""
        value = _form_urlencode(self.rev) if url_encoded else self.rev
        return f"rev={value}"


@dataclass(frozen=True, order=True)
class SourceKind:
    """The kind of a source; only git repositories are supported."""

    reference: GitReference

    def protocol(self) -> str:
        return "git"


@total_ordering
@dataclass(frozen=True, eq=False)
class SourceId:
    """A git source: its URL, the revision and an optional precise fragment.

    Two sources are equal when their kinds and canonical URLs are equal; the
    precise fragment is ignored.
    """

    url: str
    canonical_url: CanonicalUrl
    kind: SourceKind
    precise: str | None = None

    @classmethod
    def _new(cls, kind: SourceKind, url: str) -> "SourceId":
        parts = _parse_url(str(url))
        normalised = urlunsplit(parts)
        return cls(normalised, CanonicalUrl(normalised), kind, None)

    @classmethod
    def from_url(cls, string: str) -> "SourceId":
        """Parse a ``git+<url>?rev=<rev>#<precise>`` source string."""
        kind, sep, rest = string.partition("+")
        if not sep:
            raise BuildError(f"invalid source `{string}`")
        if kind != "git":
            raise BuildError(f"unsupported source protocol: {kind}")
        parts = _parse_url(rest)
        reference = GitReference.from_query(parse_qsl(parts.query, keep_blank_values=True))
        precise = parts.fragment if "#" in rest else None
        url = urlunsplit(parts._replace(query="", fragment=""))
        return cls.for_git(url, reference).with_git_precise(precise)

    @classmethod
    def for_git(cls, url: str, reference: GitReference) -> "SourceId":
        """A source for the repository at ``url`` at the given revision."""
        return cls._new(SourceKind(reference), url)

    def with_git_precise(self, fragment: str | None) -> "SourceId":
        """A copy of this source carrying ``fragment`` as its precise part."""
        return dataclasses.replace(self, precise=fragment)

    def as_url(self, encoded: bool = False) -> str:
        """The source written as a URL, e.g. ``git+https://host/repo?rev=...``."""
        text = f"{self.kind.protocol()}+{self.url}?{self.kind.reference.pretty_ref(encoded)}"
        if self.precise is not None:
            text += f"#{self.precise}"
        return text

    def _key(self) -> tuple[SourceKind, CanonicalUrl]:
        return (self.kind, self.canonical_url)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SourceId):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "SourceId") -> bool:
        if not isinstance(other, SourceId):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.as_url()