"""ASCII folding of usernames for loose client-side matching."""

import logging
import unicodedata

logger = logging.getLogger(__name__)


def normalize_username(username: str) -> str:
    """Fold a username to its ASCII subset after NFKD decomposition.

    A letter with a diacritic decomposes into the base letter plus a combining
    mark; the mark is outside ASCII and is dropped, so "Ångström" becomes
    "Angstrom". Characters with no ASCII decomposition disappear entirely.

    Args:
        username: Raw username as found on disk

    Returns:
        The folded username, or "" if the input cannot be decomposed
    """
    try:
        decomposed = unicodedata.normalize("NFKD", username)
    except (TypeError, ValueError) as e:
        logger.debug("Unable to normalize username %r: %s", username, e)
        return ""
    return "".join(ch for ch in decomposed if ord(ch) < 0x80)
