"""Definitions shared by the REST code."""
from typing import Any, Dict


JSON = Dict[str, Any]
