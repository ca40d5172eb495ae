"""
Batch record reader

Reads indicator records from CSV (header row, one indicator per row) or
JSON (an array, a single object, or {"indicators": [...]}).
Keys are expected to be wire attribute names such as fileHashValue.
"""
from typing import Any, Dict, List
import csv
import json
import logging


logger = logging.getLogger(__name__)


def read_records(path: str) -> List[Dict[str, Any]]:
    """
    Read indicator records from a CSV or JSON file

    Empty CSV cells are dropped so that unset columns stay unsupplied.

    Args:
        path: File path; .csv is read as CSV, anything else as JSON

    Returns:
        List of records in file order

    Raises:
        ValueError: If the JSON document has an unexpected shape
    """
    if path.lower().endswith(".csv"):
        with open(path, newline="", encoding="utf-8-sig") as f:
            records = [
                {key.strip(): value for key, value in row.items() if key and value not in (None, "")}
                for row in csv.DictReader(f)
            ]
    else:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        records = records_from_json(data)

    logger.info(f"Read {len(records)} indicator records from {path}")
    return records


def records_from_json(data: Any) -> List[Dict[str, Any]]:
    """
    Normalize a decoded JSON document into a list of records

    Raises:
        ValueError: If the document is not an object or a list of objects
    """
    if isinstance(data, dict):
        data = data["indicators"] if "indicators" in data else [data]
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError("Expected a JSON object or a list of JSON objects")
    return data
