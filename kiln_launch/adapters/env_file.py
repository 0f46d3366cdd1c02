"""Minimal ``.env`` reader with forgiving typed accessors."""

from __future__ import annotations

from pathlib import Path


def parse_env_file(path: str) -> dict[str, str]:
    env_path = Path(path)
    if not env_path.exists():
        return {}

    env: dict[str, str] = {}
    for line in env_path.read_text(encoding="utf-8").splitlines():
        text = line.strip()
        if not text or text.startswith("#"):
            continue
        if text.startswith("export "):
            text = text[7:].strip()
        if "=" not in text:
            continue
        key, value = text.split("=", 1)
        key = key.strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]
        if key:
            env[key] = value
    return env


def env_str(env: dict[str, str], key: str, default: str) -> str:
    return env.get(key, default).strip() or default


def env_int(env: dict[str, str], key: str, default: int, minimum: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value < minimum:
        return default
    return value


def env_list(env: dict[str, str], key: str) -> tuple[str, ...]:
    """Comma separated, lower-cased, blanks dropped, order kept."""
    raw = env.get(key, "")
    items: list[str] = []
    for part in raw.split(","):
        item = part.strip().lower()
        if item and item not in items:
            items.append(item)
    return tuple(items)


def env_int_mapping(env: dict[str, str], key: str, minimum: int) -> dict[str, int]:
    """Parse ``a=1,b=2``; entries that do not parse or fall below ``minimum`` are skipped."""
    mapping: dict[str, int] = {}
    for item in env_list(env, key):
        if "=" not in item:
            continue
        name, raw_value = item.split("=", 1)
        name = name.strip()
        try:
            value = int(raw_value.strip())
        except ValueError:
            continue
        if name and value >= minimum:
            mapping[name] = value
    return mapping
