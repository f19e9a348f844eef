import typer

from cesty.cli.extract import env, extract, harness

app = typer.Typer(
    name="cesty",
    help="cesty CLI: discover annotated C tests and render their environments.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.command("extract")(extract)
app.command("env")(env)
app.command("harness")(harness)


def main() -> None:
    app()
