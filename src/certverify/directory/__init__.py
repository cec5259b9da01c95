"""Certificate and university directories.

Exports the abstract interfaces and the loader that picks an
implementation from :class:`~certverify.config.settings.DirectorySettings`.
"""

from certverify.directory.base import CertificateDirectory, UniversityDirectory
from certverify.directory.registry import load_directories

__all__ = [
    "CertificateDirectory",
    "UniversityDirectory",
    "load_directories",
]
