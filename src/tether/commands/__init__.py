"""Click subcommands for the tether CLI."""
