import json
from pathlib import Path

import click

from grove import __version__
from grove.workspaces.errors import GroveError

HELP_TEXT = """\
Git worktree workspaces for parallel agent work
===============================================

Commands:
  grove create <name> [base]   Create a workspace in .worktrees/<name> on branch <name>
                               base defaults to the current branch (HEAD)

  grove list                   List workspaces with status and stale detection

  grove merge [name]           Merge a workspace into its base branch
                               Auto-detects from the current dir if no name given
                               Shows the pending commits; holds a merge lock

  grove cleanup [name]         Remove a workspace (asks for confirmation)
                               Auto-detects from the current dir if no name given

  grove switch <name>          Print the path of an existing workspace
                               (use `eval "$(grove shell-init)"` for a `wtc` cd helper)

  grove guard                  Pre-edit hook: asks before editing the main repo
                               while workspaces exist (reads the request on stdin)

What create makes:
  .worktrees/<name>/                  The workspace (a git worktree)
  .worktrees/<name>/.worktree.json    Metadata (branch, base, created, status)
  .worktrees/<name>/CLAUDE.md         Appended isolation context for agents
  .worktrees/<name>/.claude/          Symlinked hooks/skills, copied settings
  .worktrees/<name>/.claude/hookify.worktree-boundary.local.md
                                      Boundary rule (warns on edits outside the workspace)

Main repo integration:
  .gitignore   .worktrees/ is added if not already ignored
  CLAUDE.md    The workspace table between
               <!-- WORKTREE-MAP-START --> and <!-- WORKTREE-MAP-END -->
               is regenerated after every change (skipped if the markers are absent)

Configuration: GROVE_* environment variables (see GroveSettings).
"""

SHELL_INIT = """\
wtc() {
  local dir
  dir="$(grove switch "$1")" && cd "$dir" && git branch --show-current
}
"""


class ClickInteraction:
    """Interaction backed by click prompts; ``assume_yes`` answers every prompt affirmatively."""

    def __init__(self, *, assume_yes: bool = False, err: bool = False) -> None:
        self.assume_yes = assume_yes
        self.err = err

    def echo(self, message: str = "") -> None:
        click.echo(message, err=self.err)

    def confirm(self, prompt: str, *, default: bool = False) -> bool:
        if self.assume_yes:
            click.echo(f"{prompt} [yes]", err=self.err)
            return True
        return click.confirm(prompt, default=default, err=self.err)


class GroveGroup(click.Group):
    """Turns domain errors into click errors: message on stderr, exit code 1."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except GroveError as exc:
            raise click.ClickException(str(exc)) from exc


def _manager(interaction: ClickInteraction):
    from grove.workspaces.context import RepoContext
    from grove.workspaces.git import Git
    from grove.workspaces.managers import WorkspaceManager
    from grove.workspaces.settings import get_settings

    git = Git()
    ctx = RepoContext.discover(Path.cwd(), get_settings(), git)
    return WorkspaceManager(ctx, interaction, git=git)


@click.group(cls=GroveGroup)
@click.version_option(version=__version__, prog_name="grove")
def main() -> None:
    """grove - isolated git worktree workspaces for concurrent agents."""
    from grove.workspaces.log import setup_logging
    from grove.workspaces.settings import get_settings

    setup_logging(get_settings().log_level)


@main.command()
@click.argument("name")
@click.argument("base", required=False)
def create(name: str, base: str | None) -> None:
    """Create workspace NAME on a new (or existing) branch NAME, from BASE."""
    result = _manager(ClickInteraction()).create(name, base)
    click.echo()
    click.echo(f"Workspace '{result.name}' ready at: {result.path}")
    click.echo(f"Enter it with: cd {result.path}")


@main.command(name="list")
def list_() -> None:
    """List workspaces with branch, base, last commit, and status."""
    manager = _manager(ClickInteraction())
    listings = manager.list()

    row = "{:<25} {:<20} {:<15} {:<20} {}"
    click.echo()
    click.echo(row.format("NAME", "BRANCH", "BASE", "LAST COMMIT", "STATUS"))
    click.echo(row.format("----", "------", "----", "-----------", "------"))
    for item in listings:
        base = item.record.base_branch if item.record else "-"
        click.echo(
            row.format(item.name, item.branch or "-", base, item.last_commit_relative or "-", item.state.value)
        )
    if not listings:
        click.echo("(no managed workspaces)")

    click.echo()
    click.echo("Git worktree list:")
    click.echo(manager.worktree_overview())
    click.echo()


@main.command()
@click.argument("name", required=False)
@click.option("--yes", "-y", "assume_yes", is_flag=True, default=False, help="Answer yes to every prompt.")
def merge(name: str | None, assume_yes: bool) -> None:
    """Merge workspace NAME (default: the current one) into its base branch."""
    from grove.workspaces.models import Outcome

    result = _manager(ClickInteraction(assume_yes=assume_yes)).merge(name)
    if result.outcome is Outcome.ABORTED:
        click.echo("Aborted.")
        return
    click.echo()
    click.echo(f"Done. Branch '{result.base_branch}' is checked out in the main repo.")


@main.command()
@click.argument("name", required=False)
@click.option("--yes", "-y", "assume_yes", is_flag=True, default=False, help="Answer yes to every prompt.")
def cleanup(name: str | None, assume_yes: bool) -> None:
    """Remove workspace NAME (default: the current one) without merging."""
    from grove.workspaces.models import Outcome

    result = _manager(ClickInteraction(assume_yes=assume_yes)).cleanup(name)
    if result.outcome is Outcome.ABORTED:
        click.echo("Aborted.")


@main.command()
@click.argument("name")
def switch(name: str) -> None:
    """Print the path of workspace NAME (stdout only carries the path)."""
    path = _manager(ClickInteraction(err=True)).switch(name)
    click.echo(str(path))


@main.command()
def guard() -> None:
    """Pre-edit hook: read a request on stdin, print a decision only when asking."""
    from grove.guard.hook import evaluate
    from grove.workspaces.settings import get_settings

    payload = click.get_text_stream("stdin").read()
    decision = evaluate(payload, Path.cwd(), get_settings())
    if decision is not None:
        click.echo(json.dumps(decision))


@main.command(name="shell-init")
def shell_init() -> None:
    """Print shell helpers (source with: eval "$(grove shell-init)")."""
    click.echo(SHELL_INIT, nl=False)


@main.command(name="help")
def help_() -> None:
    """Show an overview of grove's commands and files."""
    click.echo(HELP_TEXT, nl=False)


if __name__ == "__main__":
    main()
