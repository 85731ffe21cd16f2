"""Photo commands: upload to blob storage, list and delete."""

import mimetypes
from pathlib import Path
from typing import Optional

import typer

from familytree.db import get_connection, init_db
from familytree.db import photos as photo_store
from familytree.storage import B2BlobStore, UploadItem, upload_batch
from familytree.storage.uploads import delete_photo, parse_person_ids
from treecli.context import reports_errors

photo_app = typer.Typer(help="Upload and manage tagged photos.")


def _read_item(path: Path) -> UploadItem:
    content_type, _ = mimetypes.guess_type(path.name)
    return UploadItem(
        filename=path.name,
        content_type=content_type or "application/octet-stream",
        data=path.read_bytes(),
    )


@photo_app.command("upload")
@reports_errors
def photo_upload(
    files: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Image files."),
    people: Optional[str] = typer.Option(None, "--people", help="Comma-separated person ids."),
    caption: Optional[str] = typer.Option(None, "--caption"),
    location: Optional[str] = typer.Option(None, "--location"),
    date_taken: Optional[str] = typer.Option(None, "--date-taken"),
    comments: Optional[str] = typer.Option(None, "--comments"),
) -> None:
    """Upload one or more images and tag the given people in each."""
    items = [_read_item(path) for path in files]
    metadata = {
        "caption": caption,
        "location": location,
        "date_taken": date_taken,
        "comments": comments,
    }
    store = B2BlobStore()
    conn = get_connection()
    init_db(conn)
    try:
        result = upload_batch(conn, store, items, parse_person_ids(people), metadata)
    finally:
        conn.close()
        store.close()

    for photo in result.photos:
        typer.echo(f"✅ {photo.file_name} [{photo.id}]")
    for error in result.errors:
        typer.echo(f"❌ {error['error']}")
    typer.echo(f"\nUploaded {result.success_count}, failed {result.fail_count}.")
    if not result.photos:
        raise typer.Exit(code=1)


@photo_app.command("list")
@reports_errors
def photo_list(
    person_id: Optional[str] = typer.Option(None, "--person", help="Only photos of this person."),
) -> None:
    """List photos, newest first."""
    conn = get_connection()
    init_db(conn)
    try:
        if person_id:
            photos = photo_store.photos_for_person(conn, person_id)
        else:
            photos = photo_store.list_photos(conn)
    finally:
        conn.close()

    if not photos:
        typer.echo("No photos found.")
        return
    for p in photos:
        names = ", ".join(person["name"] for person in p.people) or "nobody tagged"
        caption = f" {p.caption!r}" if p.caption else ""
        typer.echo(f"  {p.id}{caption}  ({names})")


@photo_app.command("delete")
@reports_errors
def photo_delete(
    photo_id: str = typer.Argument(..., help="Photo UUID."),
) -> None:
    """Delete a photo record and its stored file."""
    store = B2BlobStore()
    conn = get_connection()
    init_db(conn)
    try:
        blob_deleted = delete_photo(conn, store, photo_id)
    finally:
        conn.close()
        store.close()
    typer.echo(f"🗑️  Deleted photo {photo_id}")
    if not blob_deleted:
        typer.echo("⚠️  The stored file could not be removed.")
