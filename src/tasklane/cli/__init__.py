"""Console entrypoint: composition root, slash commands and the REPL."""
