"""Verify subcommand -- run one verification and print the verdict."""

from __future__ import annotations

import logging
import sys

from certverify.api.serializers import serialize_result
from certverify.cli.commands._common import open_database, write_json
from certverify.core.errors import CertVerifyError
from certverify.services.verification import VerifierContext

log = logging.getLogger(__name__)

EXIT_VALID = 0
EXIT_ERROR = 1
EXIT_INVALID = 2


def run_verify(config, args) -> int:
    """Exit 0 when valid, 2 when invalid, 1 when verification could not run."""
    from certverify.app.context import Container  # noqa: PLC0415

    container = Container(config.settings, open_database(config))
    try:
        result = container.engine.verify(
            certificate_id=args.certificate_id,
            verification_code=args.verification_code,
            context=VerifierContext(info="certverify-cli"),
        )
    except CertVerifyError as exc:
        sys.stderr.write(f"Verification failed: {getattr(exc, 'detail', exc)}\n")
        return EXIT_ERROR
    finally:
        container.audit.shutdown(wait=True)

    write_json(serialize_result(result))
    return EXIT_VALID if result.valid else EXIT_INVALID
