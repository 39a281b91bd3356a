"""Turns wildcard search patterns into short tokens for fuzzy inventory matching.

    extract(["*Visual Studio Code*", "*VSCode*"])
    # -> ['Visual', 'Studio', 'Code', 'Visual Studio Code', 'VSCode']
"""

import logging
import re
from typing import Iterable, List

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 3

STOP_WORDS = frozenset({
    # Articles / prepositions
    'a', 'an', 'the', 'and', 'for', 'with', 'from', 'of', 'to', 'in', 'on', 'by',
    # Generic suffixes that match half of any inventory
    'exe', 'app', 'application', 'software', 'program', 'tool', 'utility', 'setup', 'installer',
})

_WILDCARD_RE = re.compile(r'[*?\[\]]')
_SEPARATOR_RE = re.compile(r'[\s\-_.]+')
# lower->Upper ("VSCode" -> "VS|Code") and UPPER run -> Capitalized word ("IPScanner" -> "IP|Scanner")
_CAMEL_BOUNDARY_RE = re.compile(r'(?<=[a-z])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])')


def _is_useful(token: str) -> bool:
    return len(token) >= MIN_TOKEN_LENGTH and not token.isdigit() and token.lower() not in STOP_WORDS


def _split_words(phrase: str) -> List[str]:
    return [part for part in _SEPARATOR_RE.split(phrase) if part]


def _tokens_for_pattern(pattern: str) -> List[str]:
    cleaned = _WILDCARD_RE.sub('', pattern).strip()
    if not cleaned:
        return []

    words = [w for w in _split_words(cleaned) if _is_useful(w)]
    tokens = list(words)
    if words:
        full_phrase = ' '.join(words)
        if len(full_phrase) >= MIN_TOKEN_LENGTH and full_phrase not in tokens:
            tokens.append(full_phrase)
    else:
        # A pattern never contributes zero tokens
        tokens.append(cleaned)

    camel_pieces = _split_words(_CAMEL_BOUNDARY_RE.sub(' ', cleaned))
    tokens.extend(piece for piece in camel_pieces if _is_useful(piece))
    return tokens


def extract(patterns: Iterable[str]) -> List[str]:
    """Returns the deduplicated candidate tokens for `patterns`, in first-seen order.

    Never raises: on an internal error the result is empty, which the pipeline
    reads as "no inventory fallback for this application".
    """
    try:
        seen = set()
        result: List[str] = []
        for pattern in patterns or ():
            if not isinstance(pattern, str):
                logger.debug(f"Skipping non-string search pattern: {pattern!r}")
                continue
            for token in _tokens_for_pattern(pattern):
                if token not in seen:
                    seen.add(token)
                    result.append(token)
        logger.debug(f"Extracted tokens {result} from patterns {patterns}")
        return result
    except Exception as e:
        logger.warning(f"Token extraction failed for patterns {patterns!r}: {e}", exc_info=True)
        return []
