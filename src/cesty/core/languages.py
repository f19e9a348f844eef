import tempfile
from pathlib import Path

_LANGUAGE_ALIASES = {
    "c": "c",
    "c89": "c",
    "c99": "c",
    "c11": "c",
    "c17": "c",
    "c23": "c",
}

_EXTENSION_LANGUAGE_MAP = {
    ".c": "c",
    ".h": "c",
}

_LANGUAGE_DEFAULT_EXTENSIONS = {
    "c": ".c",
}

_SUPPORTED_LANGUAGES = set(_LANGUAGE_DEFAULT_EXTENSIONS)


def normalize_language(language: str) -> str:
    normalized = language.strip().lower()
    resolved = _LANGUAGE_ALIASES.get(normalized, normalized)
    if resolved not in _SUPPORTED_LANGUAGES:
        raise ValueError(f"Unsupported language '{language}'. Supported: {sorted(_SUPPORTED_LANGUAGES)}")
    return resolved


def detect_language_from_path(file_path: Path) -> str:
    suffix = file_path.suffix.lower()
    if suffix in _EXTENSION_LANGUAGE_MAP:
        return _EXTENSION_LANGUAGE_MAP[suffix]
    raise ValueError(f"Unsupported file extension: {suffix}")


def is_c_source(file_path: Path) -> bool:
    return file_path.suffix.lower() in _EXTENSION_LANGUAGE_MAP


def write_temp_code_file(source: str, language: str = "c", stem: str = "snippet") -> Path:
    suffix = _LANGUAGE_DEFAULT_EXTENSIONS.get(normalize_language(language), ".c")
    with tempfile.NamedTemporaryFile(delete=False, prefix=f"{stem}_", suffix=suffix) as temp_file:
        temp_file.write(source.encode("utf-8"))
        temp_file.flush()
        return Path(temp_file.name)
