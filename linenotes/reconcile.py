"""
Reconciler - apply extracted document text onto canonical annotations.

Update-only: an annotation whose key has a matching extracted pair gets the
pair's text when it differs (exact comparison, no normalization). Nothing is
added or removed. Extracted keys with no canonical annotation are reported
in `unmatched` and otherwise ignored.

Duplicate keys are matched by occurrence: the n-th canonical annotation with
key K takes the n-th extracted pair with key K. The renderer keeps ties in
canonical order, so rendering and re-extracting is always a no-op.

General annotations share one key and are rendered as consecutive blocks of
a single section. With several general annotations the section text is
split back on blank lines; when the block count no longer matches, the
general annotations are left untouched and a warning is reported.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .extract import ExtractedPair
from .keys import identity_key, key_for
from .models import GENERAL_LINE, GENERAL_PATH, Annotation

logger = logging.getLogger(__name__)


GENERAL_KEY = identity_key(GENERAL_PATH, GENERAL_LINE, GENERAL_LINE)

GENERAL_BLOCK_SEPARATOR = "\n\n"

_BLANK_RUN_RE = re.compile(r"\n(?:[ \t]*\n)+")

PairLike = Union[ExtractedPair, Tuple[str, str]]


@dataclass(frozen=True)
class ReconcileResult:
    """
    Attributes:
        updated: Full canonical list, edited annotations replaced in place
        changed: True when at least one text differs
        updated_keys: Keys whose text changed, in canonical order
        unmatched: Extracted keys with no canonical annotation
        warnings: Edits that could not be applied
    """

    updated: List[Annotation]
    changed: bool
    updated_keys: List[str] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _pair_items(extracted: Iterable[PairLike]) -> Iterable[Tuple[str, str]]:
    for pair in extracted:
        if isinstance(pair, ExtractedPair):
            yield pair.key, pair.text
        else:
            key, text = pair
            yield key, text


def _index_pairs(extracted: Iterable[PairLike]) -> Dict[str, List[str]]:
    index: Dict[str, List[str]] = {}
    for key, text in _pair_items(extracted):
        index.setdefault(key, []).append(text)
    return index


def map_general_section(general: Sequence[Annotation], texts: Sequence[str]) -> Optional[List[str]]:
    """
    Split the document's general section back into one text per general annotation.

    Returns the current texts when the section is unchanged, and None when
    the section no longer has one blank-line separated block per annotation.
    """
    current = [annotation.text for annotation in general]
    section = GENERAL_BLOCK_SEPARATOR.join(texts)
    if section == GENERAL_BLOCK_SEPARATOR.join(current):
        return current
    if len(general) == 1:
        return [section]

    blocks = _BLANK_RUN_RE.split(section)
    if len(blocks) != len(general):
        return None
    return blocks


def _general_texts(
    general: List[Annotation], texts: List[str], warnings: List[str]
) -> List[str]:
    """Target text for each general annotation, current text when ambiguous."""
    mapped = map_general_section(general, texts)
    if mapped is None:
        warnings.append(
            f"General section does not split into {len(general)} block(s), one per "
            f"general annotation; general annotations left unchanged"
        )
        return [annotation.text for annotation in general]
    return mapped


def reconcile(
    canonical: Sequence[Annotation], extracted: Iterable[PairLike]
) -> ReconcileResult:
    """
    Merge extracted (key, text) pairs into the canonical annotations.

    Args:
        canonical: Annotations freshly decoded from the store
        extracted: ExtractedPair objects or plain (key, text) tuples

    Returns:
        ReconcileResult; changed is False when nothing differs
    """
    index = _index_pairs(extracted)
    warnings: List[str] = []
    targets: Dict[int, str] = {}

    general_positions = [i for i, a in enumerate(canonical) if a.is_general]
    if general_positions and GENERAL_KEY in index:
        general = [canonical[i] for i in general_positions]
        for position, text in zip(
            general_positions, _general_texts(general, index[GENERAL_KEY], warnings)
        ):
            targets[position] = text

    seen: Dict[str, int] = {}
    for position, annotation in enumerate(canonical):
        if annotation.is_general:
            continue
        key = key_for(annotation)
        texts = index.get(key)
        if not texts:
            continue
        occurrence = seen.get(key, 0)
        seen[key] = occurrence + 1
        if occurrence < len(texts):
            targets[position] = texts[occurrence]

    updated: List[Annotation] = []
    updated_keys: List[str] = []
    for position, annotation in enumerate(canonical):
        text = targets.get(position)
        if text is not None and text != annotation.text:
            updated.append(annotation.with_text(text))
            updated_keys.append(key_for(annotation))
        else:
            updated.append(annotation)

    canonical_keys = {key_for(annotation) for annotation in canonical}
    unmatched = [key for key in index if key not in canonical_keys]

    for message in warnings:
        logger.warning(message)
    if unmatched:
        logger.info(f"Ignoring {len(unmatched)} document key(s) not in the store: {', '.join(unmatched)}")

    return ReconcileResult(
        updated=updated,
        changed=bool(updated_keys),
        updated_keys=updated_keys,
        unmatched=unmatched,
        warnings=warnings,
    )
