"""
Path Resolver: maps a relative specifier to a key of the file table.

Pure lookup: no filesystem or network access. Bare (package) specifiers
never resolve, so external packages stay out of the graph.
"""

import posixpath
from typing import Collection, List, Optional

# Order matters: first hit wins.
SCRIPT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")
INDEX_FILE = "index"


def candidate_keys(specifier: str, importer: str) -> List[str]:
    """All keys tried for `specifier` imported from `importer`, in order."""
    if not specifier.startswith("."):
        return []

    joined = posixpath.normpath(posixpath.join(posixpath.dirname(importer), specifier))
    candidates = [joined]

    # Dotted basenames (page.client, date.utils) still get the fallbacks
    if not joined.endswith(SCRIPT_EXTENSIONS):
        candidates.extend(joined + ext for ext in SCRIPT_EXTENSIONS)
        candidates.extend(f"{joined}/{INDEX_FILE}{ext}" for ext in SCRIPT_EXTENSIONS)

    return candidates


def resolve_import(specifier: str, importer: str, known: Collection[str]) -> Optional[str]:
    for key in candidate_keys(specifier, importer):
        if key in known:
            return key
    return None
