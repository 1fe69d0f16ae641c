from __future__ import annotations

from collections.abc import Sequence
from contextlib import contextmanager
from pathlib import Path

import click

from . import __version__
from .config import FORMATTERS
from .errors import BlockNotFound, BlockrepoError, Cancelled

COMMAND_GROUPS = (
    ("Project", ("init",)),
    ("Blocks", ("update",)),
    ("Registry", ("check",)),
    ("Account", ("auth",)),
)
HELP_COL_MAX = 30
HELP_COL_SPACING = 2


class OrderedGroup(click.Group):
    """Group that lists commands in sections instead of alphabetically."""

    def __init__(
        self,
        *args,
        command_groups: Sequence[tuple[str, Sequence[str]]] | None = None,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._command_groups = [
            (title, list(commands)) for title, commands in (command_groups or [])
        ]

    def list_commands(self, ctx: click.Context) -> list[str]:
        ordered = [
            name
            for _, commands in self._command_groups
            for name in commands
            if name in self.commands
        ]
        return ordered + [n for n in super().list_commands(ctx) if n not in ordered]

    def format_commands(
        self, ctx: click.Context, formatter: click.HelpFormatter
    ) -> None:
        for title, names in self._command_groups:
            rows = []
            for name in names:
                cmd = self.get_command(ctx, name)
                if cmd is None or cmd.hidden:
                    continue
                rows.append((name, cmd.get_short_help_str(limit=formatter.width)))
            if not rows:
                continue
            formatter.write("\n")
            formatter.write(click.style(title.upper(), bold=True) + "\n")
            formatter.indent()
            formatter.write_dl(rows, col_max=HELP_COL_MAX, col_spacing=HELP_COL_SPACING)
            formatter.dedent()


@contextmanager
def command_errors():
    try:
        yield
    except Cancelled as exc:
        click.echo(str(exc), err=True)
        raise click.exceptions.Exit(1) from exc
    except BlockrepoError as exc:
        raise click.ClickException(str(exc)) from exc


def _store(ctx: click.Context):
    store = ctx.obj.get("store")
    if store is None:
        from .persisted import FileSecretStore

        store = ctx.obj["store"] = FileSecretStore()
    return store


@click.group(
    cls=OrderedGroup,
    command_groups=COMMAND_GROUPS,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--verbose", is_flag=True, help="Include debug logs on stderr.")
@click.version_option(__version__, prog_name="blockrepo")
@click.pass_context
def cli(ctx, verbose):
    """
    blockrepo - install and update code blocks from registries
    """
    from .runtime import reset_verbose_logging, set_verbose_logging

    ctx.ensure_object(dict)
    token = set_verbose_logging(verbose)
    ctx.call_on_close(lambda: reset_verbose_logging(token))


@cli.command("init")
@click.argument("registries", nargs=-1, type=str)
@click.option(
    "--path",
    "default_path",
    type=str,
    default=None,
    help="Default path to install the blocks to. [default: ./src/blocks]",
)
@click.option(
    "--watermark/--no-watermark",
    default=True,
    help="Add a watermark to each file when adding it to your project.",
)
@click.option("--tests", is_flag=True, help="Include tests with the blocks.")
@click.option(
    "--formatter",
    type=click.Choice(FORMATTERS),
    default=None,
    help="Formatter to use when adding or updating blocks.",
)
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation prompt.")
@click.option(
    "--cwd",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    help="The current working directory.",
)
@click.pass_context
def init_cmd(ctx, registries, default_path, watermark, tests, formatter, yes, cwd):
    """
    Initialize your project with a configuration file.
    """
    from .config import (
        DEFAULT_BLOCKS_PATH,
        PROJECT_CONFIG_NAME,
        ProjectConfig,
        get_project_config,
        write_project_config,
    )
    from .manifest import fetch_blocks
    from .providers import for_each_get_provider_state

    with command_errors():
        existing = None
        if (Path(cwd) / PROJECT_CONFIG_NAME).exists():
            existing = get_project_config(cwd)
            if not yes:
                try:
                    overwrite = click.confirm(
                        f"{PROJECT_CONFIG_NAME} already exists. Update it?", default=True
                    )
                except click.Abort as exc:
                    raise Cancelled() from exc
                if not overwrite:
                    raise Cancelled()

        paths = dict(existing.paths) if existing else {}
        if default_path is not None and not default_path.strip():
            raise click.BadParameter("Please provide a value", param_hint="--path")
        if default_path is not None or "*" not in paths:
            paths["*"] = default_path or DEFAULT_BLOCKS_PATH

        repos = list(existing.repos) if existing else []
        for registry in registries:
            if registry not in repos:
                repos.append(registry)

        if repos:
            store = _store(ctx)
            states = for_each_get_provider_state(repos, store=store)
            blocks_map = fetch_blocks(states, store=store)
            for state in states:
                prefix = state.url.rstrip("/") + "/"
                count = sum(1 for key in blocks_map if key.startswith(prefix))
                click.echo(f"Found {count} blocks in {click.style(state.url, fg='cyan')}")

        config = ProjectConfig(
            paths=paths,
            repos=repos,
            include_tests=tests or (existing.include_tests if existing else False),
            watermark=watermark,
            formatter=formatter or (existing.formatter if existing else None),
        )
        written = write_project_config(config, cwd)

    click.echo(f"Wrote {written.name}")
    click.echo(click.style("All done!", fg="green"))


def _select_blocks(installed, no: bool) -> list[str]:
    listed = [item for item in installed if item.block.listed]
    if not listed:
        raise click.ClickException("None of the installed blocks can be updated directly.")
    for index, item in enumerate(listed, start=1):
        click.echo(f"  {index}. {click.style(item.block.category, fg='cyan')}/{item.block.name}")
    try:
        answer = click.prompt(
            f"Which blocks would you like to {'diff' if no else 'update'}? "
            "(comma-separated numbers)",
            type=str,
        )
    except click.Abort as exc:
        raise Cancelled() from exc

    selected: list[str] = []
    for part in answer.split(","):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit() or not 1 <= int(part) <= len(listed):
            raise click.BadParameter(f"{part!r} is not one of the listed blocks")
        selected.append(listed[int(part) - 1].full_specifier)
    if not selected:
        raise click.BadParameter("Select at least one block")
    return selected


@cli.command("update")
@click.argument("blocks", nargs=-1, type=str)
@click.option("--all", "update_all", is_flag=True, help="Update all installed blocks.")
@click.option("-E", "--expand", is_flag=True, help="Expand the diff so you see everything.")
@click.option(
    "--max-unchanged",
    type=click.IntRange(min=0),
    default=3,
    show_default=True,
    help="Maximum unchanged lines shown around changes.",
)
@click.option("-n", "--no", "no", is_flag=True, help="Show diffs without updating any blocks.")
@click.option("--repo", type=str, default=None, help="Repository to download the blocks from.")
@click.option(
    "-A", "--allow", is_flag=True, help="Allow downloading code from the provided --repo."
)
@click.option("-y", "--yes", is_flag=True, help="Accept every change without prompting.")
@click.option("--model", type=str, default=None, help="Model used for AI rewrites.")
@click.option(
    "--cwd",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    help="The current working directory.",
)
@click.pass_context
def update_cmd(ctx, blocks, update_all, expand, max_unchanged, no, repo, allow, yes, model, cwd):
    """
    Update installed blocks to their latest upstream version.
    """
    from .config import get_project_config
    from .manifest import fetch_blocks, get_installed, resolve_tree
    from .providers import for_each_get_provider_state
    from .update import (
        AnthropicRewriter,
        AutoDecisionProvider,
        Decision,
        PackageManagerInstaller,
        TerminalDecisionProvider,
        get_formatter,
        update_blocks,
    )
    from .update.pipeline import REJECTED, UNCHANGED, WRITTEN

    if yes and no:
        raise click.BadParameter("use -y or -n, not both")

    with command_errors():
        config = get_project_config(cwd)
        repos = [repo] if repo else list(config.repos)
        if not repos:
            raise click.ClickException(
                "There are no repos configured. Add one to `repos` or pass --repo."
            )

        if repo and not allow:
            try:
                allowed = click.confirm(
                    f"Allow blockrepo to download code from {click.style(repo, fg='cyan')}?",
                    default=True,
                )
            except click.Abort as exc:
                raise Cancelled() from exc
            if not allowed:
                raise Cancelled()

        store = _store(ctx)
        states = for_each_get_provider_state(repos, store=store)
        blocks_map = fetch_blocks(states, store=store)
        installed = get_installed(blocks_map, config.paths, cwd)
        if not installed:
            raise click.ClickException("You haven't installed any blocks yet.")

        if update_all:
            requested = [item.full_specifier for item in installed]
        elif blocks:
            requested = list(blocks)
        else:
            requested = _select_blocks(installed, no)

        ordered = resolve_tree(requested, blocks_map, states)
        if not ordered:
            raise BlockNotFound(", ".join(requested))

        if yes:
            decider = AutoDecisionProvider(Decision.ACCEPT, install=True)
        elif no:
            decider = AutoDecisionProvider(
                Decision.REJECT,
                show_diff=True,
                expand=expand,
                max_unchanged=max_unchanged,
            )
        else:
            decider = TerminalDecisionProvider(expand=expand, max_unchanged=max_unchanged)

        result = update_blocks(
            ordered,
            config=config,
            cwd=cwd,
            decider=decider,
            rewriter=AnthropicRewriter(model=model),
            formatter=get_formatter(config.formatter, cwd),
            installer=PackageManagerInstaller(),
            store=store,
        )

    click.echo(
        f"{result.count(WRITTEN)} written, {result.count(REJECTED)} rejected, "
        f"{result.count(UNCHANGED)} unchanged"
    )
    if result.installed:
        packages = [*result.dependencies, *result.dev_dependencies]
        click.echo(f"Installed {click.style(', '.join(packages), fg='cyan')}")
    elif result.dependencies or result.dev_dependencies:
        packages = [*result.dependencies, *result.dev_dependencies]
        click.echo(f"Install these dependencies yourself: {', '.join(packages)}")
    click.echo(click.style("All done!", fg="green"))


@cli.command("check")
@click.argument("manifest_path", required=False, type=click.Path(path_type=Path))
@click.option(
    "--cwd",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    help="The current working directory.",
)
def check_cmd(manifest_path, cwd):
    """
    Check a registry manifest against the configured rules.
    """
    from .config import get_registry_config
    from .errors import ManifestInvalid, ManifestNotFound
    from .manifest import parse_manifest
    from .rules import run_rules

    with command_errors():
        config = get_registry_config(cwd)
        path = manifest_path or Path(cwd) / config.manifest
        if not path.is_absolute():
            path = Path(cwd) / path
        if not path.exists():
            raise ManifestNotFound("Could not find a manifest", url=str(path))
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ManifestInvalid("not valid UTF-8 text", source=str(path)) from exc
        except OSError as exc:
            raise ManifestInvalid(f"could not be read ({exc})", source=str(path)) from exc
        manifest = parse_manifest(text, source=str(path))
        result = run_rules(manifest, config)

    for violation in result.warnings:
        click.echo(f"{click.style('WARN', fg='yellow')}  {violation}")
    for violation in result.errors:
        click.echo(f"{click.style('ERROR', fg='red')} {violation}")

    if not result.ok:
        count = len(result.errors)
        click.echo(
            click.style(f"Completed checks with {count} error{'' if count == 1 else 's'}.", fg="red"),
            err=True,
        )
        raise click.exceptions.Exit(1)

    if result.warnings:
        count = len(result.warnings)
        click.echo(
            click.style(
                f"Completed checks with {count} warning{'' if count == 1 else 's'}.", fg="yellow"
            )
        )
    else:
        click.echo(click.style("Completed checks without errors.", fg="green"))


def _auth_provider_names() -> list[str]:
    from .providers import AUTH_PROVIDERS

    return [provider.name for provider in AUTH_PROVIDERS]


@cli.command("auth")
@click.option(
    "--provider",
    type=click.Choice(_auth_provider_names()),
    default=None,
    help="The provider this token belongs to.",
)
@click.option("--token", type=str, default=None, help="The token to store.")
@click.option("--logout", is_flag=True, help="Erase stored tokens for each provider.")
@click.pass_context
def auth_cmd(ctx, provider, token, logout):
    """
    Store a token for access to private repositories.
    """
    from .persisted import token_key

    store = _store(ctx)
    names = _auth_provider_names()

    with command_errors():
        if logout:
            for name in [provider] if provider else names:
                key = token_key(name)
                if store.get(key) is None:
                    click.echo(click.style(f"Already logged out of {name}.", fg="bright_black"))
                    continue
                try:
                    remove = click.confirm(f"Remove {name} token?", default=True)
                except click.Abort as exc:
                    raise Cancelled() from exc
                if remove:
                    store.delete(key)
            click.echo(click.style("All done!", fg="green"))
            return

        try:
            if provider is None:
                provider = click.prompt(
                    "Which provider is this token for?",
                    type=click.Choice(names),
                    default=names[0],
                )
            if token is None:
                token = click.prompt("Paste your token", hide_input=True)
        except click.Abort as exc:
            raise Cancelled() from exc

        if not token.strip():
            raise click.BadParameter("Please provide a token", param_hint="--token")
        store.set(token_key(provider), token.strip())

    click.echo(click.style("All done!", fg="green"))


def main():
    cli()


if __name__ == "__main__":
    main()
