import logging
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from requestgen.codegen.codegen import Codegen, GenerationResult
from requestgen.config import GenerateConfig, get_config
from requestgen.exceptions import RequestgenError

console = Console()
app = typer.Typer(
    name='requestgen',
    help='Generate request builders from annotated request types',
    no_args_is_help=True,
)


def _setup_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format='%(message)s',
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _run_target(config: GenerateConfig) -> GenerationResult:
    with Progress(
        SpinnerColumn(),
        TextColumn('[progress.description]{task.description}'),
        console=console,
        transient=config.stdout,
    ) as progress:
        task = progress.add_task(
            f'Generating {", ".join(config.types)} from {config.source}...', total=None
        )
        result = Codegen(config).generate()
        progress.update(task, description=f'Code generation completed for {config.source}!')

    if config.stdout and result.source is not None:
        typer.echo(result.source, nl=False)
    elif result.output is not None:
        console.print('[dim]Generated file:[/dim]')
        console.print(f'  - {result.output}')

    for selector, error in result.errors.items():
        console.print(f'[red]Error:[/red] {selector}: {escape(str(error))}')
    return result


@app.command()
def generate(
    source: Annotated[
        str, typer.Argument(help='Python file or package directory with the declarations')
    ],
    types: Annotated[
        list[str],
        typer.Option(
            '--type', '-t', help='Request type to generate, repeatable or comma separated'
        ),
    ],
    method: Annotated[str, typer.Option(help='HTTP method of the request')] = 'GET',
    url: Annotated[str | None, typer.Option(help='URL path template, slugs as ":key"')] = None,
    dynamic_path: Annotated[
        bool, typer.Option('--dynamic-path', help='Build the URL with get_dynamic_path()')
    ] = False,
    response_type: Annotated[
        str, typer.Option(help='Type the response body is decoded to')
    ] = 'Any',
    response_data_type: Annotated[
        str | None, typer.Option(help='Type of the response data field')
    ] = None,
    response_data_field: Annotated[
        str | None, typer.Option(help='Response field returned by do()')
    ] = None,
    module: Annotated[
        str | None, typer.Option(help='Dotted module name of a single source file')
    ] = None,
    output: Annotated[str | None, typer.Option('--output', '-o', help='Output file')] = None,
    stdout: Annotated[bool, typer.Option('--stdout', help='Print the generated code')] = False,
    workers: Annotated[int, typer.Option(help='Types generated concurrently')] = 1,
    debug: Annotated[bool, typer.Option('--debug', help='Enable debug logging')] = False,
) -> None:
    """Generate request builders for the given types.

    Examples:
        requestgen generate ./example/api --type PlaceOrderRequest --method POST --url /api/v1/orders
        requestgen generate ./api/orders.py -t QueryOrderRequest,CancelOrderRequest --stdout
    """
    _setup_logging(debug)

    names = [name.strip() for value in types for name in value.split(',') if name.strip()]
    try:
        config = GenerateConfig(
            source=source,
            types=names,
            module=module,
            method=method,
            url=url,
            dynamic_path=dynamic_path,
            response_type=response_type,
            response_data_type=response_data_type,
            response_data_field=response_data_field,
            output=output,
            stdout=stdout,
            workers=workers,
        )
        result = _run_target(config)
    except (RequestgenError, ValidationError) as e:
        console.print(f'[red]Error:[/red] {escape(str(e))}')
        raise typer.Exit(1)

    if not result.ok:
        raise typer.Exit(1)


@app.command()
def run(
    config: Annotated[
        str | None,
        typer.Option('--config', '-c', help='Path to configuration file (YAML)'),
    ] = None,
    debug: Annotated[bool, typer.Option('--debug', help='Enable debug logging')] = False,
) -> None:
    """Generate every target of a configuration file.

    If no config file is specified, requestgen.yaml, requestgen.yml or the
    [tool.requestgen] table of pyproject.toml in the current directory is used.

    Examples:
        requestgen run
        requestgen run --config my-config.yaml
    """
    _setup_logging(debug)

    failed = False
    try:
        settings = get_config(config)
        for target in settings.targets:
            result = _run_target(target)
            failed = failed or not result.ok
    except (RequestgenError, ValidationError) as e:
        console.print(f'[red]Error:[/red] {escape(str(e))}')
        raise typer.Exit(1)

    if failed:
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show the version of requestgen."""
    from requestgen import __version__

    console.print(f'requestgen version: {__version__}')


if __name__ == '__main__':
    app()
