"""CLI utilities for inspecting and checking the versioned store."""

# purpose: give administrators schema bootstrap, integrity scans and history dumps outside the application
# status: active
# depends_on: backend.responsibilities.database, backend.responsibilities.models

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
import typer
from sqlalchemy.orm import Session, aliased

from .. import audit, models
from ..database import Base, SessionLocal, engine
from ..errors import NotFound, ValidationError
from ..kinds import KINDS
from ..monitoring import configure_logging, init_error_reporting
from ..services import revisions

app = typer.Typer(help="Versioned store maintenance commands")


@app.callback()
def main(log_level: str = typer.Option("WARNING", help="Log level for the store loggers")) -> None:
    configure_logging(level=log_level)
    init_error_reporting()


def find_violations(db: Session) -> list[str]:
    """Return one message per structural violation found across every kind."""

    findings: list[str] = []
    for name, descriptor in KINDS.items():
        model = descriptor.model
        duplicated = (
            db.query(model.entry, sa.func.count(model.version))
            .filter(model.status == models.VersionStatus.CURRENT.value)
            .group_by(model.entry)
            .having(sa.func.count(model.version) > 1)
            .all()
        )
        for entry, count in duplicated:
            findings.append(f"{name}: entry {entry} has {count} current versions")

        first = aliased(model)
        orphaned = (
            db.query(model.version, model.entry)
            .outerjoin(first, first.version == model.entry)
            .filter(first.version.is_(None))
            .all()
        )
        for version, entry in orphaned:
            findings.append(f"{name}: version {version} points at missing entry {entry}")

        inverted = (
            db.query(model.version)
            .filter(model.end_date.isnot(None), model.end_date < model.start_date)
            .all()
        )
        for (version,) in inverted:
            findings.append(f"{name}: version {version} ends before it starts")
    return findings


@app.command("init-db")
def init_db() -> None:
    """Create every table on the configured database."""

    Base.metadata.create_all(bind=engine)
    typer.echo("schema ready")


@app.command()
def verify() -> None:
    """Scan for broken invariants; exit 1 when any is found."""

    db = SessionLocal()
    try:
        findings = find_violations(db)
    finally:
        db.close()
    for finding in findings:
        typer.echo(finding)
    if findings:
        raise typer.Exit(code=1)
    typer.echo("no violations found")


@app.command()
def history(kind: str, entry: int) -> None:
    """Print every version of an entry, newest first."""

    db = SessionLocal()
    try:
        records = revisions.history(db, kind, entry)
    except (NotFound, ValidationError) as exc:
        raise typer.BadParameter(str(exc)) from exc
    finally:
        db.close()
    for record in records:
        window = f"{record.start_date.isoformat()}..{record.end_date.isoformat() if record.end_date else ''}"
        typer.echo(f"{record.version}\t{record.status}\t{window}\t{record.attributes}")


@app.command("audit-report")
def audit_report(
    start: datetime = typer.Option(..., help="Window start (UTC)"),
    end: datetime = typer.Option(..., help="Window end (UTC)"),
    actor: Optional[int] = typer.Option(None, help="Restrict to one actor"),
) -> None:
    """Print mutation counts per operation within a time window."""

    db = SessionLocal()
    try:
        rows = audit.generate_report(db, start, end, actor)
    finally:
        db.close()
    for row in rows:
        typer.echo(f"{row['operation']}\t{row['count']}")


if __name__ == "__main__":
    app()
