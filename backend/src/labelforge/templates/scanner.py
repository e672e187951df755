"""Scanning of label templates for placeholders and script blocks.

A template mixes print markup with:
- placeholders: <Shipment.Receiver.City>, <SortCode>
- script blocks: <script> ... </script> (tags in any case, never nested)
"""

import re
from dataclasses import dataclass

# <Name>, <Object.Property>, <Attributes("Key")>
PLACEHOLDER_PATTERN = re.compile(r'<([A-Za-z][A-Za-z0-9_.()" \t]*)>')

SCRIPT_BLOCK_PATTERN = re.compile(
    r"<script\b[^>]*>(?P<source>.*?)</script\s*>", re.IGNORECASE | re.DOTALL
)

DEFAULT_SCRIPT_ROOTS = ("Shipment", "Parcel")


@dataclass(frozen=True)
class ScriptBlock:
    """A script block found in a template.

    Attributes:
        source: Raw script text between the tags
        start: Offset of the opening tag in the template
        end: Offset just past the closing tag
        index: Position of the block among all blocks (0-based)
    """

    source: str
    start: int
    end: int
    index: int


def _is_reserved(name: str) -> bool:
    """Script tags and check directives are not placeholders."""
    lowered = name.lower()
    return (
        lowered in ("script", "/script", "/check")
        or lowered.startswith("check")
    )


def extract_placeholders(template: str) -> list[str]:
    """Return the distinct placeholder names in a template, sorted."""
    names = {
        match.group(1)
        for match in PLACEHOLDER_PATTERN.finditer(template)
        if not _is_reserved(match.group(1))
    }
    return sorted(names)


def extract_script_blocks(template: str) -> list[ScriptBlock]:
    """Return the script blocks of a template in document order."""
    return [
        ScriptBlock(
            source=match.group("source"),
            start=match.start(),
            end=match.end(),
            index=index,
        )
        for index, match in enumerate(SCRIPT_BLOCK_PATTERN.finditer(template))
    ]


def _script_reference_pattern(roots: tuple[str, ...]) -> re.Pattern:
    alternatives = "|".join(re.escape(root) for root in roots)
    return re.compile(
        rf"(?<![A-Za-z0-9_.])(?:{alternatives})(?:\.[A-Za-z_][A-Za-z0-9_]*)+(?P<call>\s*\()?",
        re.IGNORECASE,
    )


def extract_script_variables(
    blocks: list[ScriptBlock],
    roots: tuple[str, ...] = DEFAULT_SCRIPT_ROOTS,
) -> list[str]:
    """Return the distinct context paths the script blocks reference, sorted.

    Only paths rooted at one of `roots` are collected. A trailing method call
    is stripped: `Shipment.cr_time_db.ToString("dd")` yields
    `Shipment.cr_time_db`.
    """
    pattern = _script_reference_pattern(roots)
    references = set()

    for block in blocks:
        for match in pattern.finditer(block.source):
            path = match.group(0)
            if match.group("call"):
                path = path[:match.start("call") - match.start()]
                path = path.rpartition(".")[0]
            if "." in path:
                references.add(path)

    return sorted(references)
