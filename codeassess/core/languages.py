"""Language registry mapping user-facing names to execution backend runtimes."""

from __future__ import annotations

from types import MappingProxyType
from typing import List, Mapping

from pydantic import BaseModel, ConfigDict

from .errors import UnsupportedLanguage


class LanguageSpec(BaseModel):
    """Resolved backend identifier + version for a language name."""

    model_config = ConfigDict(frozen=True)

    name: str
    backend_id: str
    backend_version: str


_PYTHON = LanguageSpec(name="python", backend_id="python", backend_version="3.10.0")
_JAVASCRIPT = LanguageSpec(name="javascript", backend_id="javascript", backend_version="18.15.0")
_TYPESCRIPT = LanguageSpec(name="typescript", backend_id="typescript", backend_version="5.0.3")
_JAVA = LanguageSpec(name="java", backend_id="java", backend_version="15.0.2")
_CPP = LanguageSpec(name="c++", backend_id="c++", backend_version="10.2.0")
_C = LanguageSpec(name="c", backend_id="c", backend_version="10.2.0")
_GO = LanguageSpec(name="go", backend_id="go", backend_version="1.16.2")
_RUST = LanguageSpec(name="rust", backend_id="rust", backend_version="1.68.2")

LANGUAGES: Mapping[str, LanguageSpec] = MappingProxyType(
    {
        "javascript": _JAVASCRIPT,
        "python": _PYTHON,
        "java": _JAVA,
        "c++": _CPP,
        "cpp": _CPP,
        "c": _C,
        "go": _GO,
        "rust": _RUST,
        "typescript": _TYPESCRIPT,
    }
)

_JAVASCRIPT_TEMPLATE = "function solution(input) {\n  // Write your code here\n}"

STARTER_TEMPLATES: Mapping[str, str] = MappingProxyType(
    {
        "javascript": _JAVASCRIPT_TEMPLATE,
        "python": "def solution(input):\n    # Write your code here\n    pass",
        "java": (
            "public class Solution {\n"
            "    public static void main(String[] args) {\n"
            "        // Write your code here\n"
            "    }\n"
            "}"
        ),
        "c++": (
            "#include <iostream>\n"
            "using namespace std;\n\n"
            "int main() {\n"
            "    // Write your code here\n"
            "    return 0;\n"
            "}"
        ),
    }
)


def _normalize(name: str | None) -> str:
    return (name or "").strip().lower()


def resolve_language(name: str) -> LanguageSpec:
    """Return the LanguageSpec for ``name`` (case-insensitive) or raise UnsupportedLanguage."""

    spec = LANGUAGES.get(_normalize(name))
    if spec is None:
        raise UnsupportedLanguage(name)
    return spec


def is_supported(name: str | None) -> bool:
    return _normalize(name) in LANGUAGES


def supported_languages() -> List[LanguageSpec]:
    """Distinct specs in registry order (aliases collapse onto their canonical entry)."""

    seen: dict[str, LanguageSpec] = {}
    for spec in LANGUAGES.values():
        seen.setdefault(spec.name, spec)
    return list(seen.values())


def starter_template(name: str | None) -> str:
    """Canned starter skeleton; unknown languages get the JavaScript one."""

    key = _normalize(name)
    spec = LANGUAGES.get(key)
    if spec is not None:
        key = spec.name
    return STARTER_TEMPLATES.get(key, _JAVASCRIPT_TEMPLATE)


__all__ = [
    "LANGUAGES",
    "LanguageSpec",
    "STARTER_TEMPLATES",
    "is_supported",
    "resolve_language",
    "starter_template",
    "supported_languages",
]
