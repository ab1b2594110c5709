from __future__ import annotations

import re
import unicodedata

_EXTENSION = re.compile(r"\.[a-z0-9]{1,5}$")
_SEPARATORS = re.compile(r"[_-]")


def normalize(name: str) -> str:
    """Lowercase ``name`` and drop all whitespace."""

    normalized = unicodedata.normalize("NFKC", name).strip().lower()
    return "".join(normalized.split())


def normalize_filename(filename: str) -> str:
    """Turn ``CORSAIR_ONE-i600.JPG`` into ``corsair one i600``.

    Used for both uploaded filenames and brief asset references.
    """

    lowered = unicodedata.normalize("NFKC", filename).strip().lower()
    lowered = _EXTENSION.sub("", lowered)
    return _SEPARATORS.sub(" ", lowered)
