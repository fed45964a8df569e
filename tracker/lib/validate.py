"""
JSON Schema checks for the offsets table and the client store.

Both documents are checked where they cross the process boundary: the
offsets table when configuration loads, the store on every read and again
before every write. Invalid data is never coerced.
"""

import json
from functools import lru_cache
from pathlib import Path

import jsonschema
from jsonschema.exceptions import best_match

from tracker.lib.errors import TrackerError

SCHEMAS_DIR = Path(__file__).parent.parent / "schemas"

OFFSETS = "offsets"
STORE = "store"


class ValidationError(TrackerError):
    """A document does not match its schema."""

    def __init__(self, schema_name: str, message: str, path: str = None):
        self.schema_name = schema_name
        self.path = path
        super().__init__(f"[{schema_name}] {message}" + (f" at {path}" if path else ""))


@lru_cache(maxsize=None)
def _validator(schema_name: str) -> jsonschema.Draft7Validator:
    schema_path = SCHEMAS_DIR / f"{schema_name}.schema.json"
    if not schema_path.exists():
        raise ValidationError(schema_name, f"Schema file not found: {schema_path}")
    schema = json.loads(schema_path.read_text())
    jsonschema.Draft7Validator.check_schema(schema)
    return jsonschema.Draft7Validator(schema)


def _location(error: jsonschema.ValidationError) -> str:
    return ".".join(str(p) for p in error.absolute_path) or "(root)"


def validate(data, schema_name: str) -> None:
    """
    Check data against a bundled schema ("offsets" or "store").

    Only the most relevant violation is reported.

    Raises:
        ValidationError: If the data does not match
    """
    error = best_match(_validator(schema_name).iter_errors(data))
    if error is not None:
        raise ValidationError(schema_name, error.message, _location(error))


def read_document(filepath: Path, schema_name: str) -> dict:
    """
    Read a JSON document from disk and check it.

    Raises:
        ValidationError: If the file is missing, not JSON, or fails the schema
    """
    try:
        data = json.loads(Path(filepath).read_text())
    except FileNotFoundError:
        raise ValidationError(schema_name, f"File not found: {filepath}") from None
    except json.JSONDecodeError as e:
        raise ValidationError(schema_name, f"Invalid JSON in {filepath}: {e}") from None

    validate(data, schema_name)
    return data


def check_before_write(data: dict, schema_name: str, filepath: Path) -> None:
    """Refuse to write a document that would not load back."""
    try:
        validate(data, schema_name)
    except ValidationError as e:
        raise ValidationError(schema_name, f"Refusing to write {filepath}: {e}") from None
