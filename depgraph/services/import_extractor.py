"""
Import Extractor: pulls module specifiers out of JS/TS source text.

Recognized shapes, scanned independently and in this order:
    import x from "./a"   import "./a"   export { y } from "./a"
    require("./a")
    import("./a")

Only string literals are captured. Template literals, concatenation and
variables are not recognized; nothing here raises on odd input.
"""

import re
from typing import Iterator, List

STATIC_IMPORT = re.compile(
    r"""\b(?:import|export)\s+(?:(?:[\w*${},\s]|//[^\n]*\n|/\*[\s\S]*?\*/)+?\s+from\s+)?(["'])([^"'\n]*)\1"""
)
REQUIRE_CALL = re.compile(r"""\brequire\s*\(\s*(["'])([^"'\n]*)\1\s*\)""")
DYNAMIC_IMPORT = re.compile(r"""\bimport\s*\(\s*(["'])([^"'\n]*)\1\s*\)""")

IMPORT_PATTERNS = (STATIC_IMPORT, REQUIRE_CALL, DYNAMIC_IMPORT)


def iter_imports(content: str) -> Iterator[str]:
    """Lazily yield raw specifiers. Each pattern gets a fresh finditer."""
    if not content:
        return
    for pattern in IMPORT_PATTERNS:
        for match in pattern.finditer(content):
            specifier = match.group(2)
            if specifier:
                yield specifier


def extract_imports(content: str) -> List[str]:
    return list(iter_imports(content))
