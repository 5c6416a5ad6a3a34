# type: ignore
from invoke import task


@task
def venv(ctx):
    """Create .venv with the package and its test and dev extras."""
    ctx.run("uv venv")
    ctx.run("uv pip install -e '.[test,dev]'")


@task
def lint(ctx):
    """
    Static checks for the package sources.
    """
    ctx.run("ruff check src tests", pty=True)
    ctx.run("ruff format --check src", pty=True)
    ctx.run("mypy src", pty=True)


@task
def test(ctx):
    """
    Run tests with coverage information.
    """
    ctx.run("pytest --cov=espprov --cov-report=term-missing", pty=True)


@task(help={"scenario": "Simulated peer behaviour (ok, unreachable, no-join, ...)"})
def simulate(ctx, scenario="ok"):
    """Provision the first simulated device end to end."""
    ctx.run(
        "espprov provision 24:0A:C4:12:34:56 --ssid workshop --password hunter22 "
        f"--broker-host 10.0.0.5 --scenario {scenario}",
        pty=True,
        warn=True,
    )


@task
def build_package(ctx):
    """
    Build sdist and wheel into dist/.
    """
    ctx.run("rm -rf dist")
    ctx.run("uv build")
