"""Reader settings, optionally loaded from a YAML file."""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel

from api_doc_reader.models import Parameter, Tag

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "API"
DEFAULT_VERSION = "1.0"


class ReaderSettings(BaseModel):
    """Defaults that bias every read before any type is processed."""

    title: str = DEFAULT_TITLE
    version: str = DEFAULT_VERSION
    base_path: str = ""
    read_hidden: bool = False
    consumes: list[str] = []
    produces: list[str] = []
    tags: list[Tag] = []
    parameters: list[Parameter] = []


def load_settings(file_path: Path | None) -> ReaderSettings:
    """Load settings from a YAML file; no file means default settings."""
    if file_path is None:
        return ReaderSettings()
    data = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
    logger.debug("Loaded settings from %s", file_path)
    return ReaderSettings(**data)
