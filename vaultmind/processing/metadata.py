"""Metadata extraction from Markdown notes."""

import re
from pathlib import PurePosixPath

from vaultmind.models.document import DocumentMeta

FRONTMATTER_PATTERN = re.compile(r"^---\s*\n([\s\S]*?)\n---")
H1_PATTERN = re.compile(r"^# (.+)$", re.MULTILINE)
H2_PATTERN = re.compile(r"^## (.+)$", re.MULTILINE)
H3_PATTERN = re.compile(r"^### (.+)$", re.MULTILINE)
TAG_PATTERN = re.compile(r"#[a-zA-Z][a-zA-Z0-9_/-]*")
URL_PATTERN = re.compile(r"https?://[^\s)]+")
WIKI_LINK_PATTERN = re.compile(r"\[\[([^\]]+)\]\]")
FRONTMATTER_LIST_SEPARATOR = re.compile(r"[,\s]+")


def parse_frontmatter(content: str) -> dict[str, str]:
    """Parse flat ``key: value`` frontmatter.

    Only single-line values are supported; quotes and list brackets are
    stripped, so ``tags: [a, b]`` becomes ``"a, b"``.
    """
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return {}

    frontmatter: dict[str, str] = {}
    for line in match.group(1).split("\n"):
        key, sep, value = line.partition(":")
        if not sep or not key.strip():
            continue
        frontmatter[key.strip()] = re.sub(r"[\"'\[\]]", "", value.strip())
    return frontmatter


def note_basename(path: str) -> str:
    """File name without its extension (``notes/Docker.md`` -> ``Docker``)."""
    return PurePosixPath(path).stem


def extract_metadata(content: str, path: str, mtime: int | None = None) -> DocumentMeta:
    """Extract searchable metadata from a note.

    Args:
        content: Full Markdown text
        path: Vault-relative path of the note
        mtime: Modification time in epoch milliseconds

    Returns:
        Metadata shared by every chunk of the note
    """
    frontmatter = parse_frontmatter(content)

    tags = TAG_PATTERN.findall(content)
    if frontmatter.get("tags"):
        for tag in FRONTMATTER_LIST_SEPARATOR.split(frontmatter["tags"]):
            if tag:
                tags.append(tag if tag.startswith("#") else f"#{tag}")

    links = [link.replace("[", "").replace("]", "") for link in WIKI_LINK_PATTERN.findall(content)]

    return DocumentMeta(
        basename=note_basename(path),
        aliases=frontmatter.get("aliases") or frontmatter.get("alias") or "",
        file_path=path,
        h1=" ".join(H1_PATTERN.findall(content)),
        h2=" ".join(H2_PATTERN.findall(content)),
        h3=" ".join(H3_PATTERN.findall(content)),
        tags=" ".join(dict.fromkeys(tags)),
        urls=" ".join(URL_PATTERN.findall(content)),
        links=" ".join(links),
        mtime=mtime,
        frontmatter=frontmatter,
    )
