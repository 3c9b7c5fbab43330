"""Allow ``python -m commitment_timer``."""
from commitment_timer.cli.main import cli

if __name__ == "__main__":
    cli()
