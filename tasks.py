# type: ignore
import os

from invoke import task


@task
def venv(ctx):
    """Create the development environment (uv sync with the test extra)."""
    ctx.run("uv sync --extra test")


@task
def lint(ctx):
    """Static checks: ruff lint + format check, mypy on the package."""
    ctx.run("ruff check src tests", pty=True)
    ctx.run("ruff format --check src tests", pty=True)
    ctx.run("mypy src", pty=True)


@task
def test(ctx):
    """Run tests with coverage information."""
    ctx.run("pytest --cov=src --cov-report=term-missing", pty=True)


@task
def mock(ctx, port=8090, name="Working"):
    """Serve a fake speaker on localhost for manual runs."""
    ctx.run(f"stzone mock --port {port} --name '{name}'", pty=True)


@task
def build_package(ctx):
    """Build sdist and wheel into dist/."""
    ctx.run("rm -rf dist")
    ctx.run("uv build")


@task
def release(ctx):
    """Build and publish to PyPI."""
    token = os.getenv("PYPI_TOKEN")
    if not token:
        raise ValueError("PYPI_TOKEN environment variable is not set")

    ctx.run("invoke build-package")
    ctx.run(f"uv publish --token {token}")
