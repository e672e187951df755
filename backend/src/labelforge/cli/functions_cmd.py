"""Functions CLI command: list the built-in script functions."""

import click

from labelforge.scripting import FunctionCategory, FunctionRegistry


@click.command()
def functions():
    """List built-in functions and methods by category."""
    for category in FunctionCategory:
        definitions = FunctionRegistry.list_by_category(category)
        if not definitions:
            continue

        click.echo(click.style(category.value.capitalize(), bold=True))
        for func_def in sorted(definitions, key=lambda f: f.name.lower()):
            params = ", ".join(
                p.name if p.required else f"[{p.name}]" for p in func_def.parameters
            )
            prefix = "." if category == FunctionCategory.METHOD else ""
            click.echo(f"  {prefix}{func_def.name}({params})  {func_def.description}")
