import json

import jsonschema


class RecordValidator:
    """Checks decoded log records against the warehouse JSON schema."""

    def __init__(self, schema_path):
        with open(schema_path, "r") as f:
            schema = json.load(f)
        self._validator = jsonschema.Draft202012Validator(schema)

    def validate(self, record):
        """Validate a decoded log record.

        Returns:
            tuple: (is_valid: bool, errors: list[str])
        """
        errors = [error.message for error in self._validator.iter_errors(record)]
        return not errors, errors
