"""Entrypoint to run a task query from the command line."""
from task_chat.cli import main as cli_main


def main() -> None:
    cli_main()


if __name__ == "__main__":
    main()
