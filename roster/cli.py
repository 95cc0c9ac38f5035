"""
CLI interface for the member directory.

Usage:
    roster add Ada Lovelace --email ada@example.org -t Youth
    roster list --status Active --tag Youth
    roster note <id> "Called about the retreat"
    roster metrics
"""

import json
import os
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .api import Directory
from .errors import WriteResult
from .logging_config import configure_quiet_mode, enable_debug_mode
from .types import Member, MemberStatus, Note


# Configure quiet mode by default
# Set ROSTER_VERBOSE=1 to enable debug mode via environment
if os.environ.get("ROSTER_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"roster {version('roster')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_store_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _store_callback(value: Optional[Path]):
    global _store_override
    if value is not None:
        _store_override = value


def _get_store_override() -> Optional[Path]:
    return _store_override


app = typer.Typer(
    name="roster",
    help="Local member directory.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="ROSTER_STORE_PATH",
        help="Path to the store directory",
        callback=_store_callback,
        is_eager=True,
    )] = None,
):
    """Local member directory."""


# -----------------------------------------------------------------------------
# Common Options
# -----------------------------------------------------------------------------

StatusOption = Annotated[
    Optional[MemberStatus],
    typer.Option("--status", help="Only members with this status"),
]

TagOption = Annotated[
    Optional[str],
    typer.Option("--tag", "-t", help="Only members carrying this tag"),
]


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _get_directory() -> Directory:
    """Open the directory, handling errors gracefully."""
    import atexit

    try:
        d = Directory(_get_store_override())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    atexit.register(d.close)
    return d


def _format_member_line(member: Member) -> str:
    name = member.full_name or "(no name)"
    line = f"{member.id}  {name:<28} {member.status.value:<9}"
    if member.tags:
        line += "  " + ", ".join(member.tags)
    return line


def _format_member_detail(member: Member, notes: list[Note]) -> str:
    lines = [
        f"id:       {member.id}",
        f"name:     {member.full_name}",
        f"status:   {member.status.value}",
        f"email:    {member.email or ''}",
        f"phone:    {member.phone or ''}",
        f"tags:     {', '.join(member.tags)}",
    ]
    if member.birthday_month or member.birthday_day:
        month = member.birthday_month or "?"
        day = member.birthday_day or "?"
        lines.append(f"birthday: {month}/{day}")
    lines.append(f"joined:   {member.joined_at[:10]}")
    if notes:
        lines.append("notes:")
        for note in notes:
            lines.append(f"  [{note.created_at[:16]}] {note.content}")
    return "\n".join(lines)


def _report(result: WriteResult, what: str) -> None:
    """Echo the outcome of a write; exit 1 if the target was not found."""
    if not result.found:
        typer.echo(f"Not found: {what}", err=True)
        raise typer.Exit(1)
    if result.error is not None:
        typer.echo(f"Warning: {result.error} (change kept for this session)", err=True)


def _echo_json(data) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


# -----------------------------------------------------------------------------
# Members
# -----------------------------------------------------------------------------

@app.command()
def add(
    first_name: Annotated[str, typer.Argument(help="First name")],
    last_name: Annotated[str, typer.Argument(help="Last name")] = "",
    email: Annotated[Optional[str], typer.Option("--email", "-e")] = None,
    phone: Annotated[Optional[str], typer.Option("--phone", "-p")] = None,
    status: Annotated[Optional[MemberStatus], typer.Option("--status")] = None,
    tags: Annotated[Optional[list[str]], typer.Option(
        "--tag", "-t", help="Tag to attach (repeatable)",
    )] = None,
    birthday_month: Annotated[Optional[int], typer.Option(
        "--birthday-month", min=1, max=12,
    )] = None,
    birthday_day: Annotated[Optional[int], typer.Option(
        "--birthday-day", min=1, max=31,
    )] = None,
):
    """Add a member and print its id."""
    d = _get_directory()
    try:
        id = d.add_member(
            first_name,
            last_name,
            email=email,
            phone=phone,
            status=status,
            tags=tags or [],
            birthday_month=birthday_month,
            birthday_day=birthday_day,
        )
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    _report(d.last_result, id)
    typer.echo(id)


@app.command("list")
def list_members(
    status: StatusOption = None,
    tag: TagOption = None,
    search: Annotated[Optional[str], typer.Option(
        "--search", "-q", help="Case-insensitive name search",
    )] = None,
):
    """List members, first name ascending."""
    d = _get_directory()
    members = d.filter_members(status=status, tag=tag, search_text=search)
    if _get_json_output():
        _echo_json([m.to_dict() for m in members])
        return
    for member in members:
        typer.echo(_format_member_line(member))


@app.command()
def get(
    id: Annotated[str, typer.Argument(help="Member id")],
):
    """Show one member with its notes."""
    d = _get_directory()
    member = d.get_member(id)
    if member is None:
        typer.echo(f"Not found: {id}", err=True)
        raise typer.Exit(1)
    notes = d.get_notes(id)
    if _get_json_output():
        data = member.to_dict()
        data["notes"] = [n.to_dict() for n in notes]
        _echo_json(data)
        return
    typer.echo(_format_member_detail(member, notes))


@app.command()
def update(
    id: Annotated[str, typer.Argument(help="Member id")],
    first_name: Annotated[Optional[str], typer.Option("--first")] = None,
    last_name: Annotated[Optional[str], typer.Option("--last")] = None,
    email: Annotated[Optional[str], typer.Option(
        "--email", "-e", help="New email (empty string clears it)",
    )] = None,
    phone: Annotated[Optional[str], typer.Option(
        "--phone", "-p", help="New phone (empty string clears it)",
    )] = None,
    birthday_month: Annotated[Optional[int], typer.Option(
        "--birthday-month", min=1, max=12,
    )] = None,
    birthday_day: Annotated[Optional[int], typer.Option(
        "--birthday-day", min=1, max=31,
    )] = None,
):
    """Change a member's contact details."""
    fields = {
        "first_name": first_name,
        "last_name": last_name,
        "email": email,
        "phone": phone,
        "birthday_month": birthday_month,
        "birthday_day": birthday_day,
    }
    fields = {k: v for k, v in fields.items() if v is not None}
    if not fields:
        typer.echo("Nothing to update", err=True)
        raise typer.Exit(1)
    d = _get_directory()
    _report(d.update_member(id, **fields), id)
    typer.echo(_format_member_line(d.get_member(id)))


@app.command()
def status(
    id: Annotated[str, typer.Argument(help="Member id")],
    new_status: Annotated[MemberStatus, typer.Argument(metavar="STATUS")],
):
    """Set a member's status."""
    d = _get_directory()
    _report(d.set_status(id, new_status), id)
    typer.echo(_format_member_line(d.get_member(id)))


@app.command("del")
def del_cmd(
    id: Annotated[list[str], typer.Argument(help="Member id(s) to delete")],
):
    """Delete members and all of their notes."""
    d = _get_directory()
    had_errors = False
    for one_id in id:
        member = d.get_member(one_id)
        result = d.delete_member(one_id)
        if not result.found:
            typer.echo(f"Not found: {one_id}", err=True)
            had_errors = True
            continue
        if result.error is not None:
            typer.echo(f"Warning: {result.error}", err=True)
        typer.echo(f"Deleted {_format_member_line(member)}")
    if had_errors:
        raise typer.Exit(1)


# -----------------------------------------------------------------------------
# Tags
# -----------------------------------------------------------------------------

@app.command()
def tag(
    id: Annotated[str, typer.Argument(help="Member id")],
    tag_name: Annotated[str, typer.Argument(metavar="TAG")],
):
    """Attach a tag to a member."""
    d = _get_directory()
    try:
        result = d.add_tag(id, tag_name)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    _report(result, id)
    typer.echo(_format_member_line(d.get_member(id)))


@app.command()
def untag(
    id: Annotated[str, typer.Argument(help="Member id")],
    tag_name: Annotated[str, typer.Argument(metavar="TAG")],
):
    """Detach a tag from a member."""
    d = _get_directory()
    _report(d.remove_tag(id, tag_name), id)
    typer.echo(_format_member_line(d.get_member(id)))


@app.command()
def tags(
    show_defaults: Annotated[bool, typer.Option(
        "--defaults", help="Also list the built-in default tags",
    )] = False,
    counts: Annotated[bool, typer.Option(
        "--counts", "-c", help="Show how many members carry each tag",
    )] = False,
):
    """List the custom tag vocabulary."""
    d = _get_directory()
    names = d.get_tags()
    if show_defaults:
        names = names + d.default_tags
    if _get_json_output():
        if counts:
            _echo_json({t: d.count_members_with_tag(t) for t in names})
        else:
            _echo_json(names)
        return
    for name in names:
        if counts:
            typer.echo(f"{name}  ({d.count_members_with_tag(name)})")
        else:
            typer.echo(name)


@app.command("tags-add")
def tags_add(
    tag_name: Annotated[str, typer.Argument(metavar="TAG")],
):
    """Add a tag to the global tag list."""
    d = _get_directory()
    try:
        result = d.add_global_tag(tag_name)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    _report(result, tag_name)
    typer.echo(f"Added {tag_name.strip()}")


@app.command("tags-rm")
def tags_rm(
    tag_name: Annotated[str, typer.Argument(metavar="TAG")],
):
    """Remove a tag from the global list and from every member."""
    d = _get_directory()
    affected = d.count_members_with_tag(tag_name)
    _report(d.remove_global_tag(tag_name), tag_name)
    typer.echo(f"Removed {tag_name} ({affected} member(s) updated)")


# -----------------------------------------------------------------------------
# Notes
# -----------------------------------------------------------------------------

@app.command()
def note(
    id: Annotated[str, typer.Argument(help="Member id")],
    content: Annotated[str, typer.Argument(help="Note text")],
):
    """Add a note to a member."""
    d = _get_directory()
    added = d.add_note(id, content)
    if added is None:
        typer.echo(f"Not found: {id}", err=True)
        raise typer.Exit(1)
    typer.echo(f"[{added.created_at[:16]}] {added.content}")


@app.command()
def notes(
    id: Annotated[str, typer.Argument(help="Member id")],
):
    """List a member's notes, newest first."""
    d = _get_directory()
    if d.get_member(id) is None:
        typer.echo(f"Not found: {id}", err=True)
        raise typer.Exit(1)
    items = d.get_notes(id)
    if _get_json_output():
        _echo_json([n.to_dict() for n in items])
        return
    for item in items:
        typer.echo(f"[{item.created_at[:16]}] {item.content}")


# -----------------------------------------------------------------------------
# Views
# -----------------------------------------------------------------------------

@app.command()
def metrics():
    """Repair invalid statuses and show member counts per status."""
    d = _get_directory()
    counts = d.refresh_metrics()
    if _get_json_output():
        _echo_json({s.value: n for s, n in counts.items()})
        return
    for s, n in counts.items():
        typer.echo(f"{s.value:<9} {n}")
    typer.echo(f"{'Total':<9} {sum(counts.values())}")


@app.command()
def emails(
    status: StatusOption = None,
    tag: TagOption = None,
):
    """Email addresses of matching members."""
    d = _get_directory()
    addresses = d.filtered_emails(status=status, tag=tag)
    if _get_json_output():
        _echo_json(addresses)
        return
    for address in addresses:
        typer.echo(address)


@app.command()
def phones(
    status: StatusOption = None,
    tag: TagOption = None,
):
    """Phone numbers of matching members."""
    d = _get_directory()
    numbers = d.filtered_phone_numbers(status=status, tag=tag)
    if _get_json_output():
        _echo_json(numbers)
        return
    for number in numbers:
        typer.echo(number)


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="roster CLI", store_path=_get_store_override())
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
