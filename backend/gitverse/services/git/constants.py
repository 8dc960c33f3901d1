"""Fixed product policy used by git extraction and language aggregation."""

import re

DEFAULT_BRANCH_FALLBACK = "main"

PROTECTED_BRANCHES = frozenset({"main", "master", "develop", "production"})

# Marker git prints in --numstat output for binary files
BINARY_NUMSTAT_MARKER = "-"

# Commit log framing: ASCII record/unit separators never occur in commit text
RECORD_START = "\x1e"
BODY_END = "\x1f"
FIELD_SEPARATOR = "|"

# Generated, vendored and lockfile paths excluded from the file tree
IGNORED_PATH_PATTERNS = [
    re.compile(pattern)
    for pattern in (
        r"(^|/)node_modules/",
        r"(^|/)\.git/",
        r"(^|/)dist/",
        r"(^|/)build/",
        r"(^|/)out/",
        r"(^|/)\.next/",
        r"(^|/)coverage/",
        r"(^|/)\.cache/",
        r"(^|/)\.temp/",
        r"(^|/)\.tmp/",
        r"(^|/)package-lock\.json$",
        r"(^|/)yarn\.lock$",
        r"(^|/)pnpm-lock\.yaml$",
        r"\.lock$",
        r"\.log$",
        r"\.min\.js$",
        r"\.min\.css$",
        r"\.map$",
        r"\.bundle\.js$",
    )
]

# Average characters per line used to estimate lines of undecodable files
ESTIMATED_BYTES_PER_LINE = 80

EXTENSION_LANGUAGES = {
    # JavaScript/TypeScript
    "js": "JavaScript",
    "jsx": "JavaScript",
    "mjs": "JavaScript",
    "cjs": "JavaScript",
    "ts": "TypeScript",
    "tsx": "TypeScript",
    # Python
    "py": "Python",
    "pyw": "Python",
    "pyx": "Python",
    # JVM
    "java": "Java",
    "kt": "Kotlin",
    "kts": "Kotlin",
    "scala": "Scala",
    "sc": "Scala",
    # C family
    "c": "C",
    "h": "C",
    "cpp": "C++",
    "cc": "C++",
    "cxx": "C++",
    "hpp": "C++",
    "hxx": "C++",
    "cs": "C#",
    # Others
    "go": "Go",
    "rs": "Rust",
    "rb": "Ruby",
    "php": "PHP",
    "swift": "Swift",
    "r": "R",
    "sh": "Shell",
    "bash": "Shell",
    "zsh": "Shell",
    "sql": "SQL",
    "vue": "Vue",
    "svelte": "Svelte",
    # Web
    "html": "HTML",
    "htm": "HTML",
    "css": "CSS",
    "scss": "SCSS",
    "sass": "Sass",
    "less": "Less",
    # Data/config
    "json": "JSON",
    "xml": "XML",
    "yaml": "YAML",
    "yml": "YAML",
    "toml": "TOML",
    "ini": "INI",
    "csv": "CSV",
    # Markup
    "md": "Markdown",
    "markdown": "Markdown",
    "rst": "reStructuredText",
}

# Config, data and markup formats left out of the persisted language breakdown
NON_CODE_LANGUAGES = frozenset(
    {"JSON", "YAML", "Markdown", "TOML", "CSV", "XML", "INI", "reStructuredText"}
)


def is_ignored_path(path: str) -> bool:
    return any(pattern.search(path) for pattern in IGNORED_PATH_PATTERNS)


def language_for_extension(extension: str | None) -> str | None:
    """Map ".py" / "py" / ".PY" to a language name, or None when unknown."""
    if not extension:
        return None
    return EXTENSION_LANGUAGES.get(extension.lower().lstrip("."))
