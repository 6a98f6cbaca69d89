"""Main entry point for the WebPilot browser agent."""

import asyncio
import argparse
import re
import sys
from typing import Optional

from rich.markup import escape
from rich.prompt import Prompt
from rich.table import Table

from webpilot.core import (
    AgentOrchestrator,
    AgentOutcome,
    BrowserController,
    LLMAgent,
    OutcomeStatus,
    TOOL_DEFINITIONS,
)
from webpilot.utils import log, config, console

AFFIRMATIVE = re.compile(r"^(y|yes|да|д)$", re.IGNORECASE)


def is_affirmative(answer: str) -> bool:
    return bool(AFFIRMATIVE.match((answer or "").strip()))


async def ask_confirmation(description: str) -> bool:
    """Ask the user in the terminal before a destructive action runs."""
    answer = await asyncio.to_thread(
        Prompt.ask,
        f"\n[bold red]Security:[/bold red] the agent wants to do [bold]\"{escape(description)}\"[/bold]. Allow? (yes/no)",
        console=console,
    )
    return is_affirmative(answer)


async def run_task(
    task: str,
    start_url: Optional[str] = None,
    max_iterations: Optional[int] = None,
    headless: bool = False,
    llm_provider: Optional[str] = None,
    confirm: bool = True
) -> AgentOutcome:
    """
    Run the agent on a single task.

    Args:
        task: Natural language task
        start_url: Optional URL to open before the first step
        max_iterations: Iteration ceiling (defaults to the configured one)
        headless: Run browser in headless mode
        llm_provider: LLM provider to use
        confirm: Ask before destructive clicks
    """
    oracle = LLMAgent(provider=llm_provider)
    browser_settings = config.browser
    if headless:
        browser_settings = browser_settings.model_copy(update={"headless": True})

    console.print(f"\n[bold]Task:[/bold] {escape(task)}")
    console.print(f"[bold]LLM:[/bold] {oracle.provider} ({oracle.model})\n")

    async with BrowserController(browser_settings) as browser:
        if start_url:
            await browser.navigate(start_url)
        orchestrator = AgentOrchestrator(
            browser,
            oracle,
            confirm=ask_confirmation if confirm else None,
        )
        return await orchestrator.run(task, max_iterations=max_iterations)


def show_outcome(outcome: AgentOutcome):
    """Print the terminal state of a run."""
    if outcome.status is OutcomeStatus.COMPLETED:
        console.print(f"\n[bold green]--- Result ---[/bold green]\n{escape(outcome.result or 'Task completed.')}")
    elif outcome.status is OutcomeStatus.NEEDS_INPUT:
        console.print(f"\n[bold yellow]--- Agent asks ---[/bold yellow]\n{escape(outcome.user_question or '')}")
        console.print("[dim]Run the agent again with your answer in the task, or finish in the browser.[/dim]")
    else:
        console.print(f"\n[red]Stopped ({outcome.status.value}):[/red] {escape(outcome.error or 'Unknown error')}")
    console.print(f"[dim]Iterations: {outcome.iterations}[/dim]")


def list_tools():
    """List the tools the agent can use."""
    table = Table(title="Available Tools", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("Arguments", style="magenta")
    table.add_column("Description", style="green")

    for tool in TOOL_DEFINITIONS:
        function = tool["function"]
        required = set(function["parameters"].get("required", []))
        arguments = ", ".join(
            name if name in required else f"{name}?"
            for name in function["parameters"]["properties"]
        )
        table.add_row(function["name"], arguments, function["description"])

    console.print(table)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="WebPilot - autonomous browser agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ask for the task interactively
  webpilot

  # Run a task directly
  webpilot --task "Find the weather in Paris" --start-url https://www.google.com

  # Use Anthropic, no confirmation prompts
  webpilot --task "Unsubscribe me from the newsletter" --llm-provider anthropic --no-confirm
        """
    )

    parser.add_argument("--task", type=str, help="Task in natural language")
    parser.add_argument("--start-url", type=str, help="Starting URL")
    parser.add_argument("--max-iterations", type=int, help="Maximum iterations")
    parser.add_argument("--headless", action="store_true", help="Run in headless mode")
    parser.add_argument("--llm-provider", type=str, choices=["openai", "anthropic"], help="LLM provider")
    parser.add_argument("--no-confirm", action="store_true", help="Do not ask before destructive actions")
    parser.add_argument("--list-tools", action="store_true", help="List the agent's tools")

    args = parser.parse_args()

    if args.list_tools:
        list_tools()
        return

    provider = args.llm_provider or config.agent.llm_provider
    if not config.get_api_key(provider):
        console.print(f"[red]Error: {provider.upper()}_API_KEY not set in environment[/red]")
        sys.exit(1)

    try:
        task = args.task or Prompt.ask("Enter task for the agent (or Ctrl+C to exit)", console=console)
        task = (task or "").strip()
        if not task:
            console.print("[yellow]No task entered. Exiting.[/yellow]")
            return

        outcome = asyncio.run(run_task(
            task,
            start_url=args.start_url,
            max_iterations=args.max_iterations,
            headless=args.headless,
            llm_provider=provider,
            confirm=not args.no_confirm
        ))
        show_outcome(outcome)
        if not outcome.done:
            sys.exit(1)

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[red]Error: {e}[/red]")
        log.exception("Fatal error")
        sys.exit(1)


if __name__ == "__main__":
    main()
