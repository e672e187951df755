"""Assembly of final label markup from a template and script results."""

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from labelforge.scripting.errors import ErrorKind
from labelforge.scripting.evaluator import ScriptResult
from labelforge.templates.scanner import extract_script_blocks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockFailure:
    """A script block that failed and was removed from the markup.

    Attributes:
        index: Position of the block in the template (0-based)
        message: The error message
        kind: AUTHORING for script mistakes, INTERNAL for engine defects
    """

    index: int
    message: str
    kind: ErrorKind = ErrorKind.AUTHORING

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "message": self.message,
            "kind": self.kind.value,
        }


@dataclass
class AssembledTemplate:
    """Final markup plus the failures recorded while building it."""

    text: str
    failures: list[BlockFailure] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)


def substitute_placeholders(text: str, values: Mapping[str, str]) -> str:
    """Replace <name> with its value for every name with a non-empty value.

    Only exact bracketed occurrences are replaced; placeholders without a
    value stay in the text. All names are replaced in one pass, so a value
    containing another placeholder is inserted as is.
    """
    replacements = {
        name: str(value) for name, value in values.items() if value is not None and value != ""
    }
    if not replacements:
        return text

    names = sorted(replacements, key=len, reverse=True)
    pattern = re.compile("<(" + "|".join(re.escape(name) for name in names) + ")>")
    return pattern.sub(lambda match: replacements[match.group(1)], text)


def assemble(
    template: str,
    block_results: Sequence[ScriptResult],
    placeholder_values: Mapping[str, str] | None = None,
) -> AssembledTemplate:
    """Build final markup.

    Each script block is replaced by its output when it succeeded and
    removed when it failed; then placeholders are substituted.

    Args:
        template: The template text
        block_results: One result per script block, in document order
        placeholder_values: Operator-supplied placeholder values

    Raises:
        ValueError: If the number of results does not match the blocks
    """
    blocks = extract_script_blocks(template)
    if len(blocks) != len(block_results):
        raise ValueError(
            f"Template has {len(blocks)} script blocks but "
            f"{len(block_results)} results were given"
        )

    pieces = []
    failures = []
    cursor = 0

    for block, result in zip(blocks, block_results):
        pieces.append(template[cursor:block.start])
        if result.success:
            pieces.append(result.output)
        else:
            failure = BlockFailure(
                index=block.index,
                message=result.error or "Script failed",
                kind=result.error_kind or ErrorKind.AUTHORING,
            )
            logger.warning(
                "Script block %d removed (%s error): %s",
                block.index + 1,
                failure.kind.value,
                failure.message,
            )
            failures.append(failure)
        cursor = block.end

    pieces.append(template[cursor:])
    text = substitute_placeholders("".join(pieces), placeholder_values or {})

    return AssembledTemplate(text=text, failures=failures)
