"""Allow ``python -m certverify``."""

from certverify.cli.main import main

main()
