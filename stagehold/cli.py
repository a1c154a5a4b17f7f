"""Command-line interface for managing and publishing artifact stores.

Examples
--------
Stage a jar, check it against the Central requirements and publish it::

    stagehold create --template release
    stagehold add release-00001 demo-1.0.jar --coordinate org.example:demo:1.0
    stagehold validate release-00001 --publisher deploy
    stagehold publish release-00001 --publisher deploy --dry-run
"""

from __future__ import annotations

import logging
import sys
import typing as typ
from pathlib import Path

import cyclopts
from cyclopts import Parameter

from . import lifecycle
from .config import DRY_RUN, SessionConfig, load_session
from .errors import LockingError, StoreError, ValidationFailedError
from .model import Artifact
from .publisher import PUBLISHERS, create_publisher
from .store import ArtifactStoreManager
from .validation import render_result

__all__ = ["LOG_FORMAT", "app", "configure_logging", "main"]

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

app = cyclopts.App(help="Stage, validate and publish artifact stores.")

BaseDir = typ.Annotated[
    Path | None, Parameter(help="Directory holding the stores (STAGEHOLD_HOME).")
]
Settings = typ.Annotated[
    Path | None, Parameter(help="Settings file; defaults to <basedir>/settings.toml.")
]
Verbose = typ.Annotated[bool, Parameter(help="Log debug output to stderr.")]


def configure_logging(verbose: bool = False) -> None:
    """Send library logging to stderr; ``verbose`` enables debug output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )


def _session(
    basedir: Path | None, settings: Path | None, verbose: bool
) -> SessionConfig:
    configure_logging(verbose)
    return load_session(basedir, settings)


def _fail(exc: BaseException) -> typ.NoReturn:
    print(f"error: {exc}", file=sys.stderr)
    raise SystemExit(1) from exc


@app.command(name="list")
def list_stores(
    *, basedir: BaseDir = None, settings: Settings = None, verbose: Verbose = False
) -> None:
    """List existing stores; stores held exclusively elsewhere show as in use."""
    try:
        manager = ArtifactStoreManager.from_config(_session(basedir, settings, verbose))
        for name in manager.list_names():
            try:
                store = manager.select(name)
            except LockingError:
                print(f"{name}  (in use)")
                continue
            with store:
                print(
                    f"{store.name}  {store.repository_mode.value}  {store.state}  "
                    f"{len(store.artifacts())} artifact(s)"
                )
    except (FileNotFoundError, StoreError) as exc:
        _fail(exc)


@app.command
def templates(
    *, basedir: BaseDir = None, settings: Settings = None, verbose: Verbose = False
) -> None:
    """List the templates new stores can be created from."""
    try:
        manager = ArtifactStoreManager.from_config(_session(basedir, settings, verbose))
    except (FileNotFoundError, StoreError) as exc:
        _fail(exc)
    default = manager.default_template().name
    for template in manager.list_templates():
        marker = " (default)" if template.name == default else ""
        redeploy = ", redeploy allowed" if template.allow_redeploy else ""
        print(f"{template.name}: {template.repository_mode.value}{redeploy}{marker}")


@app.command
def create(
    *,
    template: str | None = None,
    prefix: str | None = None,
    basedir: BaseDir = None,
    settings: Settings = None,
    verbose: Verbose = False,
) -> None:
    """Create a new store and print its name.

    Parameters
    ----------
    template:
        Template name; the default template when omitted.
    prefix:
        Name prefix replacing the template's own.
    """
    try:
        manager = ArtifactStoreManager.from_config(_session(basedir, settings, verbose))
        chosen = manager.template(template) if template else manager.default_template()
        if prefix:
            chosen = chosen.with_prefix(prefix)
        with manager.create(chosen) as store:
            name = store.name
    except (FileNotFoundError, StoreError) as exc:
        _fail(exc)
    print(name)


@app.command
def add(
    store: str,
    file: Path,
    *,
    coordinate: typ.Annotated[
        str, Parameter(help="g:a[:ext[:classifier]]:v", required=True)
    ],
    basedir: BaseDir = None,
    settings: Settings = None,
    verbose: Verbose = False,
) -> None:
    """Add ``file`` to ``store`` under ``coordinate``."""
    try:
        artifact = Artifact.parse(coordinate)
    except ValueError as exc:
        _fail(exc)
    try:
        if not file.is_file():
            message = f"No such file: {file}"
            raise FileNotFoundError(message)
        manager = ArtifactStoreManager.from_config(_session(basedir, settings, verbose))
        with manager.select(store, exclusive=True) as target:
            target.put({artifact: file})
    except (FileNotFoundError, StoreError) as exc:
        _fail(exc)
    print(f"Added {artifact.id} to {store}", file=sys.stderr)


@app.command
def status(
    store: str,
    *,
    basedir: BaseDir = None,
    settings: Settings = None,
    verbose: Verbose = False,
) -> None:
    """Show the attributes and content of ``store``."""
    try:
        manager = ArtifactStoreManager.from_config(_session(basedir, settings, verbose))
        with manager.select(store) as selected:
            print(f"Store:     {selected.name}")
            print(f"Template:  {selected.template.name} (prefix {selected.prefix})")
            print(f"Created:   {selected.created.isoformat()}")
            print(f"Mode:      {selected.repository_mode.value}")
            print(f"Redeploy:  {'allowed' if selected.allow_redeploy else 'refused'}")
            print(f"State:     {selected.state}")
            print(f"Checksums: {', '.join(selected.checksum_algorithms)}")
            artifacts = selected.artifacts()
            print(f"Artifacts: {len(artifacts)}")
            for artifact in artifacts:
                print(f"  {artifact.id}")
    except (FileNotFoundError, StoreError) as exc:
        _fail(exc)


@app.command
def validate(
    store: str,
    *,
    publisher: str | None = None,
    basedir: BaseDir = None,
    settings: Settings = None,
    verbose: Verbose = False,
) -> None:
    """Validate ``store`` against the requirements of ``publisher``."""
    try:
        config = _session(basedir, settings, verbose)
        manager = ArtifactStoreManager.from_config(config)
        chosen = create_publisher(config, publisher)
        result = lifecycle.prepare(manager, store, chosen)
    except ValidationFailedError as exc:
        print(render_result(exc.result))
        _fail(exc)
    except (FileNotFoundError, StoreError) as exc:
        _fail(exc)
    if result is None:
        print(f"Publisher {chosen.name} enforces no requirements; {store} unchecked")
    else:
        print(render_result(result))


@app.command
def publish(
    store: str,
    *,
    publisher: str | None = None,
    dry_run: bool = False,
    basedir: BaseDir = None,
    settings: Settings = None,
    verbose: Verbose = False,
) -> None:
    """Validate ``store`` and publish it with ``publisher``.

    Parameters
    ----------
    dry_run:
        Validate and resolve the target without uploading anything.
    """
    try:
        config = _session(basedir, settings, verbose)
        if dry_run:
            config = config.with_overrides({DRY_RUN: "true"})
        manager = ArtifactStoreManager.from_config(config)
        chosen = create_publisher(config, publisher)
        report = lifecycle.perform(manager, store, chosen)
    except ValidationFailedError as exc:
        print(render_result(exc.result))
        _fail(exc)
    except (FileNotFoundError, StoreError) as exc:
        _fail(exc)
    print(report.summary())


@app.command
def drop(
    store: str,
    *,
    basedir: BaseDir = None,
    settings: Settings = None,
    verbose: Verbose = False,
) -> None:
    """Delete ``store`` and everything in it."""
    try:
        manager = ArtifactStoreManager.from_config(_session(basedir, settings, verbose))
        dropped = manager.drop(store)
    except (FileNotFoundError, StoreError) as exc:
        _fail(exc)
    print(f"Dropped {store}" if dropped else f"[dry-run] Would drop {store}")


@app.command
def merge(
    source: str,
    target: str,
    *,
    keep: typ.Annotated[
        bool, Parameter(help="Keep the source store instead of dropping it.")
    ] = False,
    basedir: BaseDir = None,
    settings: Settings = None,
    verbose: Verbose = False,
) -> None:
    """Copy every artifact of ``source`` into ``target``, then drop ``source``."""
    try:
        manager = ArtifactStoreManager.from_config(_session(basedir, settings, verbose))
        with manager.select(source) as from_store:
            with manager.select(target, exclusive=True) as to_store:
                merged = manager.merge(from_store, to_store)
        if not keep:
            manager.drop(source)
    except (FileNotFoundError, StoreError) as exc:
        _fail(exc)
    print(f"Merged {len(merged)} artifact(s) from {source} into {target}")


@app.command(name="merge-all")
def merge_all(
    *, basedir: BaseDir = None, settings: Settings = None, verbose: Verbose = False
) -> None:
    """Merge every store into one and print its name."""
    try:
        manager = ArtifactStoreManager.from_config(_session(basedir, settings, verbose))
        name = manager.merge_all()
    except (FileNotFoundError, StoreError) as exc:
        _fail(exc)
    print(name)


@app.command
def renumber(
    *, basedir: BaseDir = None, settings: Settings = None, verbose: Verbose = False
) -> None:
    """Rename stores so each prefix counts from 00001 without gaps."""
    try:
        manager = ArtifactStoreManager.from_config(_session(basedir, settings, verbose))
        renamed = manager.renumber()
    except (FileNotFoundError, StoreError) as exc:
        _fail(exc)
    for old, new in renamed.items():
        print(f"{old} -> {new}")


@app.command(name="export")
def export_store(
    store: str,
    directory: Path,
    *,
    basedir: BaseDir = None,
    settings: Settings = None,
    verbose: Verbose = False,
) -> None:
    """Write ``store`` as a zip bundle into ``directory``."""
    try:
        manager = ArtifactStoreManager.from_config(_session(basedir, settings, verbose))
        with manager.select(store) as selected:
            bundle = manager.export_to(selected, directory)
    except (FileNotFoundError, StoreError) as exc:
        _fail(exc)
    print(bundle)


@app.command(name="import")
def import_store(
    bundle: Path,
    *,
    basedir: BaseDir = None,
    settings: Settings = None,
    verbose: Verbose = False,
) -> None:
    """Create a new store from a zip bundle and print its name."""
    try:
        manager = ArtifactStoreManager.from_config(_session(basedir, settings, verbose))
        if not bundle.is_file():
            message = f"No such bundle: {bundle}"
            raise FileNotFoundError(message)
        with manager.import_from(bundle) as store:
            name = store.name
    except (FileNotFoundError, StoreError) as exc:
        _fail(exc)
    print(name)


@app.command
def publishers() -> None:
    """List the registered publishers."""
    for name in sorted(PUBLISHERS):
        print(name)


def main(tokens: typ.Sequence[str] | None = None) -> None:
    """Console script entry point."""
    app(tokens)


if __name__ == "__main__":
    main()
