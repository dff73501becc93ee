from __future__ import annotations

import json
from importlib import resources
from typing import Any, Dict


def load_prompt(name: str) -> str:
    prompt_file = resources.files("linecraft.prompts") / name
    return prompt_file.read_text(encoding="utf-8")


def load_schema(name: str) -> Dict[str, Any]:
    schema_file = resources.files("linecraft.schemas") / name
    return json.loads(schema_file.read_text(encoding="utf-8"))
