"""Simple CLI for querying tasks in an Obsidian vault."""
from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

from task_chat.config import get_settings
from task_chat.llm_client import default_language_model
from task_chat.pipeline import run_query
from task_chat.result_renderer import render_json, render_result
from task_chat.task_reader import read_tasks


async def run_cli(
    text: str,
    *,
    mode: str = "simple",
    vault: Path | None = None,
    today: date | None = None,
    as_json: bool = False,
) -> str:
    settings = get_settings()
    vault_dir = vault or settings.obsidian_vault_dir
    if vault_dir is None:
        raise SystemExit("No vault given: pass --vault or set OBSIDIAN_VAULT_DIR")
    config = settings.search
    tasks = read_tasks(Path(vault_dir), config.status_categories)
    model = default_language_model(settings) if mode != "simple" else None
    result = await run_query(text, mode, tasks, config=config, model=model, today=today)
    if as_json:
        return render_json(result)
    return render_result(result, config.status_categories)


def main() -> None:
    parser = argparse.ArgumentParser(description="Search and rank tasks from an Obsidian vault")
    parser.add_argument("text", help="Query text")
    parser.add_argument("--mode", choices=["simple", "smart", "chat"], default="simple", help="Query mode")
    parser.add_argument("--vault", type=Path, help="Override Obsidian vault path")
    parser.add_argument("--today", type=date.fromisoformat, help="Evaluate due dates relative to this day (YYYY-MM-DD)")
    parser.add_argument("--json", action="store_true", dest="as_json", help="Print the result as JSON")
    args = parser.parse_args()

    output = asyncio.run(
        run_cli(args.text, mode=args.mode, vault=args.vault, today=args.today, as_json=args.as_json)
    )
    sys.stdout.write(output if output.endswith("\n") else output + "\n")


if __name__ == "__main__":
    main()
