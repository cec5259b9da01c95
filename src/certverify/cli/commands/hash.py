"""Hash subcommand -- canonical content hash of a certificate record.

A full certificate record (one carrying ``certificateHash``) is reduced
to its content fields before hashing and is checked against its own
stored digest unless ``--expect`` overrides it.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import yaml

from certverify.core.crypto import compute_hash, hash_matches
from certverify.directory.records import certificate_from_dict

EXIT_MATCH = 0
EXIT_ERROR = 1
EXIT_MISMATCH = 2


def _load_record(path: Path) -> dict:
    with path.open(encoding="utf-8") as f:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if not isinstance(data, dict):
        msg = f"{path} does not contain a JSON/YAML object"
        raise ValueError(msg)
    return data


def run_hash(args) -> int:
    path = Path(args.file)
    try:
        record = _load_record(path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        sys.stderr.write(f"Cannot read record: {exc}\n")
        return EXIT_ERROR

    expected = args.expect
    stored = record.get("certificateHash") or record.get("certificate_hash")
    if stored:
        try:
            certificate = certificate_from_dict(record)
        except (KeyError, TypeError, ValueError) as exc:
            sys.stderr.write(f"Incomplete certificate record: {exc}\n")
            return EXIT_ERROR
        record = certificate.content_fields()
        expected = expected or stored

    sys.stdout.write(compute_hash(record) + "\n")
    if expected is None:
        return EXIT_MATCH
    if hash_matches(record, expected):
        sys.stdout.write("Hash matches\n")
        return EXIT_MATCH
    sys.stdout.write("Hash MISMATCH\n")
    return EXIT_MISMATCH
