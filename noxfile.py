import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]

# psycopg2 builds a C extension; a cached wheel may target another interpreter.
_C_EXT_PACKAGES = ["psycopg2"]


def _install(session: nox.Session) -> None:
    session.run("poetry", "install", "--with", "test", "--all-extras", external=True)
    session.run("pip", "install", "--force-reinstall", "--no-cache-dir", *_C_EXT_PACKAGES)


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Full suite: domain, application, HTTP and BDD."""
    _install(session)
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
def settlement(session: nox.Session) -> None:
    """Aggregate and command-handler tests against the fake collaborators."""
    _install(session)
    session.run("pytest", "-m", "domain or application", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
def api(session: nox.Session) -> None:
    """HTTP integration and checkout scenarios."""
    _install(session)
    session.run("pytest", "tests/ordering/integration/", "tests/ordering/bdd/", *session.posargs)
