# ============================================================================
# scenario_engine/schema_cache.py - Process-scoped JSON Schema memoization
# ============================================================================
from pathlib import Path
from typing import Any, Dict, Optional, Union
import json
import logging

from scenario_engine.schemas import scenario_json_schema

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_PATH = Path("schemas") / "hddl-scenario.schema.json"


class SchemaCache:
    """
    Loads the scenario JSON Schema once and keeps it for the life of the
    instance. A schema file edited after the first load is not picked up.

    A failed read is not memoized, so the next load() retries. Without a
    file the schema generated from the typed models is used instead.
    """

    def __init__(self, path: Optional[Union[str, Path]] = DEFAULT_SCHEMA_PATH):
        self.path = Path(path) if path else None
        self._schema: Optional[Dict[str, Any]] = None
        self.source: Optional[str] = None
        self.load_count = 0

    @property
    def loaded(self) -> bool:
        return self._schema is not None

    def load(self) -> Dict[str, Any]:
        """
        Return the memoized schema, reading it on first use.

        Raises:
            OSError: If the schema file exists but cannot be read
            json.JSONDecodeError: If the schema file is not valid JSON
        """
        if self._schema is not None:
            return self._schema

        if self.path is not None and self.path.exists():
            with open(self.path, "r", encoding="utf-8") as f:
                schema = json.load(f)
            self.source = str(self.path)
        else:
            logger.info(f"Schema file {self.path} not found, using schema generated from models")
            schema = scenario_json_schema()
            self.source = "models"

        self._schema = schema
        self.load_count += 1
        return schema

    def clear(self) -> None:
        """Drop the memoized schema (tests only)"""
        self._schema = None
        self.source = None
