import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]

# Test layers, each runnable on its own: session name -> pytest marker
_LAYERS = {
    "domain": "domain",
    "application": "application",
    "api": "integration",
    "features": "bdd",
}


def _install(session: nox.Session) -> None:
    session.run("poetry", "install", "--with", "test", external=True)
    # psycopg2-binary ships a compiled extension per interpreter
    session.run("pip", "install", "--force-reinstall", "--no-cache-dir", "psycopg2-binary")


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Full picking suite."""
    _install(session)
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
@nox.parametrize("layer", list(_LAYERS))
def layer(session: nox.Session, layer: str) -> None:
    """One test layer, selected by marker."""
    _install(session)
    session.run("pytest", "-m", _LAYERS[layer], *session.posargs)
