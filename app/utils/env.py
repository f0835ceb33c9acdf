"""Minimal .env loader so local runs pick up BOOKING_* settings."""

from __future__ import annotations

import os
from pathlib import Path


def default_env_path() -> Path:
  """Return the .env path at the repository root."""
  return Path(__file__).resolve().parents[2] / ".env"


def _unquote(value: str) -> str:
  if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
    return value[1:-1]
  # Unquoted values may carry a trailing comment.
  hash_index = value.find(" #")
  if hash_index != -1:
    return value[:hash_index].rstrip()
  return value


def load_env_file(path: Path, *, override: bool = False) -> list[str]:
  """Load KEY=value lines into os.environ and return the keys that were set."""
  if not path.is_file():
    return []

  loaded: list[str] = []
  for raw_line in path.read_text(encoding="utf-8").splitlines():
    line = raw_line.strip()
    if not line or line.startswith("#"):
      continue
    line = line.removeprefix("export ").lstrip()
    key, separator, value = line.partition("=")
    key = key.strip()
    if not separator or not key:
      continue
    if not override and key in os.environ:
      continue
    os.environ[key] = _unquote(value.strip())
    loaded.append(key)

  return loaded
