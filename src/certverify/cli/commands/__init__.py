"""certverify CLI subcommands."""
