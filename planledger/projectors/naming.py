"""
Name and path parsing for engineering documents.

File names follow the ``<PRODUCT>_<PART NAME>_<revision>.<ext>`` convention,
e.g. ``SUBTYPE-1_PUMP HOUSING_revA.par``. A trailing ``_<token>`` is only
treated as a revision when it looks like one (``revA``, ``v2b``, ``20250617``).
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

REVISION_RE = re.compile(r"^(?:rev[0-9a-z]+|v[0-9]+[a-z]*|[0-9]{8})$", re.IGNORECASE)

_NATURAL_SPLIT_RE = re.compile(r"(\d+)")


@dataclass(frozen=True)
class ParsedPath:
    """Attributes derived from a root-relative path."""
    path: str
    name: str
    extension: Optional[str]
    revision: Optional[str]
    part_name: Optional[str]
    core_name: Optional[str]
    product_main_type: str
    product_sub_type: Optional[str]
    parent: Optional[str]
    parent_path: Optional[str]
    depth: int
    is_directory: bool = False


def basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def parent_path(path: str) -> Optional[str]:
    """Full path of the containing folder, or None at the root."""
    if "/" not in path:
        return None
    return path.rsplit("/", 1)[0]


def split_name_ext(base: str) -> Tuple[str, Optional[str]]:
    """
    Split a basename at its last dot.

    Returns:
        (name, extension) with the extension lower-cased, or None when the
        basename has no extension
    """
    pos = base.rfind(".")
    if pos == -1:
        return base, None
    ext = base[pos + 1:].lower()
    return base[:pos], ext or None


def extract_revision(name: str) -> Optional[str]:
    """Return the revision token after the last underscore, if it is one."""
    if "_" not in name:
        return None
    token = name.rsplit("_", 1)[1]
    return token if REVISION_RE.match(token) else None


def extract_part_name(name: str) -> str:
    """Strip ``_<revision>`` from a name when a revision is present."""
    revision = extract_revision(name)
    if revision is None:
        return name
    return name[: -(len(revision) + 1)]


def extract_core_name(name: str) -> str:
    """Text after the first underscore of the part name, trimmed."""
    part = extract_part_name(name)
    if "_" not in part:
        return part.strip()
    return part.split("_", 1)[1].strip()


def parse_path(path: str, is_directory: bool = False) -> ParsedPath:
    """
    Derive every projection attribute from a path.

    Args:
        path: Root-relative, forward-slash separated path
        is_directory: Directories keep their full basename and have no
            extension, revision or part name

    Returns:
        ParsedPath
    """
    segments = path.split("/")
    folder = parent_path(path)

    if is_directory:
        name, extension, revision, part_name, core_name = segments[-1], None, None, None, None
    else:
        name, extension = split_name_ext(segments[-1])
        revision = extract_revision(name)
        part_name = extract_part_name(name)
        core_name = extract_core_name(name)

    return ParsedPath(
        path=path,
        name=name,
        extension=extension,
        revision=revision,
        part_name=part_name,
        core_name=core_name,
        product_main_type=segments[0],
        product_sub_type="/".join(segments[1:]) or None,
        parent=basename(folder) if folder else None,
        parent_path=folder,
        depth=path.count("/"),
        is_directory=is_directory,
    )


def is_omitted(path: str, omit_directories: Iterable[str], omit_prefixes: Iterable[str]) -> bool:
    """
    Check whether any segment of a path is excluded.

    A segment is excluded when it equals one of ``omit_directories`` or starts
    with one of ``omit_prefixes`` (both compared case-insensitively).
    """
    omit = {d.lower() for d in omit_directories}
    prefixes = [p.lower() for p in omit_prefixes if p]

    for segment in path.lower().split("/"):
        if segment in omit:
            return True
        if any(segment.startswith(p) for p in prefixes):
            return True
    return False


def revision_sort_key(revision: Optional[str]) -> tuple:
    """
    Natural sort key for revisions; a missing revision sorts lowest.

    Digit runs compare numerically and letters case-insensitively, so
    ``rev10`` sorts after ``rev9`` and ``revB`` after ``reva``.
    """
    if not revision:
        return (0, ())
    parts = []
    for chunk in _NATURAL_SPLIT_RE.split(revision.lower()):
        if not chunk:
            continue
        if chunk.isdigit():
            parts.append((0, int(chunk), ""))
        else:
            parts.append((1, 0, chunk))
    return (1, tuple(parts))
