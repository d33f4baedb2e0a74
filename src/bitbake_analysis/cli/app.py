import logging

import typer
from rich.logging import RichHandler

from bitbake_analysis.cli.recipe import diagnostics, embedded, regions, symbols, tree, word
from bitbake_analysis.cli.watch import watch
from bitbake_analysis.config import Settings

app = typer.Typer(
    name="bitbake-analysis",
    help="BitBake analysis CLI: syntax errors, declarations and embedded shell/Python documents.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    level = "DEBUG" if verbose else Settings.from_env().log_level
    logging.basicConfig(level=level, format="%(message)s", handlers=[RichHandler(show_path=False)], force=True)


app.command("diagnostics")(diagnostics)
app.command("symbols")(symbols)
app.command("word")(word)
app.command("tree")(tree)
app.command("regions")(regions)
app.command("embedded")(embedded)
app.command("watch")(watch)


def main() -> None:
    app()
