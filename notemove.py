#!/usr/bin/env -S uv run
# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "rich>=14.0.0",
#     "typer>=0.16.0",
#     "pydantic>=2.11.7",
#     "pyyaml>=6.0.2",
#     "watchdog>=6.0.0"
# ]
# ///
"""
NoteMove - Rule-based note relocation CLI
Moves Markdown notes between vault folders based on their front matter
properties and tags, or to a folder picked by hand.
"""

import os
import json
import errno
import logging
import tempfile
import threading
import time
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, List, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import Prompt
from rich.table import Table
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

app = typer.Typer(help="NoteMove - Move notes to folders by their metadata")
settings_app = typer.Typer(help="Edit mapping rules and picker defaults")
exclude_app = typer.Typer(help="Folders hidden from the folder picker")
property_app = typer.Typer(help="Property value to folder mappings")
tag_app = typer.Typer(help="Tag to folder mappings")
settings_app.add_typer(exclude_app, name="exclude")
settings_app.add_typer(property_app, name="property")
settings_app.add_typer(tag_app, name="tag")
app.add_typer(settings_app, name="settings")

console = Console()
logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".notemove"
ACTIVE_NOTE_ENV = "NOTEMOVE_ACTIVE_NOTE"


# Configuration
class Config(BaseModel):
    """Mapping rules and picker defaults for one vault.

    Instances are immutable snapshots. Editing produces a new snapshot which
    the SettingsStore persists and swaps in.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    default_folder: str = Field(
        default="",
        alias="defaultFolder",
        description="Folder pre-selected in the picker for manual moves.",
    )
    excluded_folders: List[str] = Field(
        default_factory=list,
        alias="excludedFolders",
        description="Folder path prefixes hidden from the picker.",
    )
    metadata_key: str = Field(
        default="moveto",
        alias="metadataKey",
        validation_alias=AliasChoices("metadataKey", "yamlProperty", "metadata_key"),
        description="Front matter key consulted by property rules.",
    )
    property_folder_map: Dict[str, str] = Field(
        default_factory=dict,
        alias="propertyFolderMap",
        description="Property value to destination folder.",
    )
    tag_folder_map: Dict[str, str] = Field(
        default_factory=dict,
        alias="tagFolderMap",
        description="Tag to destination folder.",
    )


class SettingsStore:
    """Loads and saves the NoteMove configuration kept inside a vault."""

    def __init__(self, vault_root: Path):
        self.config_dir = Path(vault_root) / CONFIG_DIR_NAME
        self.config_file = self.config_dir / "config.json"
        self.config = Config()

    def ensure_config_dir(self):
        """Create the .notemove directory if it doesn't exist."""
        self.config_dir.mkdir(parents=True, exist_ok=True)

        # Keep settings out of vaults that are git repositories
        gitignore_file = self.config_dir / ".gitignore"
        if not gitignore_file.exists():
            gitignore_file.write_text("*\n!.gitignore\n")

    def load(self) -> Config:
        """Load the persisted configuration merged over the defaults."""
        config = Config()
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
                config = Config.model_validate(data or {})
            except (OSError, ValueError) as e:
                logger.debug("Could not load %s: %s", self.config_file, e)
                console.print(f"⚠️  Error loading config: {e}", markup=False)
                console.print("Using default configuration.")

        self.config = config
        return config

    def save(self, config: Config) -> Config:
        """Persist the full configuration and make it the current snapshot."""
        self.ensure_config_dir()
        payload = config.model_dump_json(by_alias=True, indent=2)

        fd, temp_name = tempfile.mkstemp(dir=self.config_dir, prefix=".config-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(temp_name, self.config_file)
        except OSError:
            Path(temp_name).unlink(missing_ok=True)
            raise

        self.config = config
        logger.debug("Saved configuration to %s", self.config_file)
        return config

    def update(self, **changes: Any) -> Config:
        """Save a copy of the current snapshot with ``changes`` applied."""
        return self.save(self.config.model_copy(update=changes))

    def get_config_info(self) -> dict:
        """Get information about the configuration location."""
        return {
            "config_dir": self.config_dir,
            "config_file": self.config_file,
            "config_exists": self.config_file.exists(),
        }


# Settings editing. Every helper returns a new container.
def add_excluded_folder(folders: List[str], folder: str) -> List[str]:
    return [*folders, folder]


def replace_excluded_folder(folders: List[str], index: int, folder: str) -> List[str]:
    if not 0 <= index < len(folders):
        raise IndexError(f"No excluded folder at position {index + 1}")
    updated = list(folders)
    updated[index] = folder
    return updated


def remove_excluded_folder(folders: List[str], index: int) -> List[str]:
    if not 0 <= index < len(folders):
        raise IndexError(f"No excluded folder at position {index + 1}")
    return folders[:index] + folders[index + 1:]


def set_mapping(mapping: Dict[str, str], key: str, folder: str) -> Dict[str, str]:
    updated = dict(mapping)
    updated[key] = folder
    return updated


def rename_mapping_key(mapping: Dict[str, str], old_key: str, new_key: str) -> Dict[str, str]:
    """Move the entry at ``old_key`` to ``new_key``.

    An existing entry at ``new_key`` is overwritten (last write wins).
    """
    if old_key not in mapping:
        raise KeyError(old_key)
    updated = dict(mapping)
    folder = updated.pop(old_key)
    updated[new_key] = folder
    return updated


def remove_mapping(mapping: Dict[str, str], key: str) -> Dict[str, str]:
    if key not in mapping:
        raise KeyError(key)
    return {k: v for k, v in mapping.items() if k != key}


# Notes and rule evaluation
class Note(BaseModel):
    """A Markdown file identified by its vault-relative POSIX path."""

    model_config = ConfigDict(frozen=True)

    path: str

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def folder_path(self) -> str:
        parent = PurePosixPath(self.path).parent.as_posix()
        return "" if parent == "." else parent


class RuleMatch(BaseModel):
    """The rule that selected a destination folder."""

    model_config = ConfigDict(frozen=True)

    kind: str  # "property" or "tag"
    value: str
    folder: str


def has_folder(folder: Optional[str]) -> bool:
    """Whether ``folder`` names something other than the vault root."""
    return bool(folder and folder.strip().strip("/"))


def join_destination(folder: str, name: str) -> str:
    """Build the vault-relative path of ``name`` inside ``folder``."""
    folder = folder.strip("/")
    return f"{folder}/{name}" if folder else name


def normalize_tags(tags: Any) -> List[str]:
    """Return the front matter ``tags`` value as an ordered list of strings."""
    if tags is None:
        return []
    if isinstance(tags, str):
        return [tags]
    if isinstance(tags, (list, tuple)):
        return [str(tag) for tag in tags if tag is not None]
    return [str(tags)]


def _property_value(value: Any) -> Optional[str]:
    # bool is an int subclass; YAML true/false never selects a folder
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


def describe_match(metadata: Optional[Dict[str, Any]], config: Config) -> Optional[RuleMatch]:
    """Find the first rule that applies to a note's metadata.

    The property rule is tried first, then tags in the order they appear in
    the note. Entries mapped to an empty folder are skipped.
    """
    if not metadata:
        return None

    value = _property_value(metadata.get(config.metadata_key))
    if value is not None:
        folder = config.property_folder_map.get(value)
        if has_folder(folder):
            return RuleMatch(kind="property", value=value, folder=folder)

    for tag in normalize_tags(metadata.get("tags")):
        folder = config.tag_folder_map.get(tag)
        if has_folder(folder):
            return RuleMatch(kind="tag", value=tag, folder=folder)

    return None


def resolve_destination(metadata: Optional[Dict[str, Any]], config: Config) -> Optional[str]:
    """Map a note's metadata to its destination folder, or None."""
    match = describe_match(metadata, config)
    return match.folder if match else None


def list_selectable_folders(all_folders: List[str], excluded_folders: List[str]) -> List[str]:
    """Drop every folder whose path starts with an excluded prefix."""
    return [
        folder
        for folder in all_folders
        if not any(folder.startswith(excluded) for excluded in excluded_folders)
    ]


def parse_front_matter(text: str) -> Optional[Dict[str, Any]]:
    """Return the YAML front matter of a note as a dict, or None."""
    lines = text.lstrip("\ufeff").splitlines()
    if not lines or lines[0].rstrip() != "---":
        return None

    for index in range(1, len(lines)):
        if lines[index].rstrip() == "---":
            block = "\n".join(lines[1:index])
            break
    else:
        return None

    # BaseLoader keeps every scalar as written: "2024-01-01" and "yes" stay strings
    try:
        data = yaml.load(block, Loader=yaml.BaseLoader)
    except yaml.YAMLError as e:
        logger.debug("Ignoring invalid front matter: %s", e)
        return None
    return data if isinstance(data, dict) else None


# Errors
class NoteMoveError(Exception):
    """Base class for failures reported to the user as a notice."""


class NoActiveNote(NoteMoveError):
    def __init__(self):
        super().__init__("No active note")


class NoDestinationSelected(NoteMoveError):
    def __init__(self):
        super().__init__("No folder selected")


class RenameFailed(NoteMoveError):
    """The vault refused to move a note. ``reason`` is shown verbatim."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


# Vault access
_NO_HARD_LINKS = {errno.EPERM, errno.ENOTSUP, errno.EOPNOTSUPP, errno.EMLINK, errno.ENOSYS}


class Vault:
    """A directory of Markdown notes."""

    def __init__(self, root: Path):
        self.root = Path(root).expanduser().resolve()
        self._watcher: Optional["MetadataWatcher"] = None

    @staticmethod
    def is_hidden(relative_path: str) -> bool:
        return any(part.startswith(".") for part in PurePosixPath(relative_path).parts)

    def get_note(self, path) -> Optional[Note]:
        """Look up a note by absolute path or by path relative to the vault or cwd."""
        candidate = Path(path).expanduser()
        candidates = [candidate] if candidate.is_absolute() else [self.root / candidate, Path.cwd() / candidate]

        for candidate in candidates:
            resolved = candidate.resolve()
            if resolved.is_file() and resolved.is_relative_to(self.root):
                return Note(path=resolved.relative_to(self.root).as_posix())
        return None

    def rename(self, note: Note, new_path: str) -> Note:
        """Move ``note`` to the vault-relative ``new_path``, creating folders as needed."""
        source = self.root / note.path
        target = (self.root / new_path).resolve()

        if not target.is_relative_to(self.root) or target == self.root:
            raise RenameFailed(f"Destination is outside the vault: {new_path}")
        if not source.is_file():
            raise RenameFailed(f"File not found: {note.path}")
        if target.exists():
            raise RenameFailed(f"Destination file already exists: {new_path}")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self._move_without_replacing(source, target)
        except FileExistsError:
            raise RenameFailed(f"Destination file already exists: {new_path}") from None
        except OSError as e:
            raise RenameFailed(str(e)) from e

        moved = Note(path=target.relative_to(self.root).as_posix())
        logger.debug("Renamed %s to %s", note.path, moved.path)
        return moved

    @staticmethod
    def _move_without_replacing(source: Path, target: Path):
        # link() refuses an existing target; rename() would silently replace it
        try:
            os.link(source, target)
        except OSError as e:
            if e.errno not in _NO_HARD_LINKS:
                raise
            logger.debug("No hard links for %s (%s), renaming instead", target, e)
            source.rename(target)
            return

        try:
            source.unlink()
        except OSError:
            target.unlink(missing_ok=True)
            raise

    def list_folders(self) -> List[str]:
        """List every non-hidden folder below the root, parents before children."""
        folders: List[str] = []
        self._collect_folders(self.root, folders)
        return folders

    def _collect_folders(self, directory: Path, folders: List[str]):
        try:
            children = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.debug("Skipping unreadable folder %s: %s", directory, e)
            return

        for child in children:
            if child.name.startswith(".") or child.is_symlink() or not child.is_dir():
                continue
            folders.append(child.relative_to(self.root).as_posix())
            self._collect_folders(child, folders)

    def get_metadata(self, note: Note) -> Optional[Dict[str, Any]]:
        """Parse the note's front matter."""
        try:
            text = (self.root / note.path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Cannot read %s: %s", note.path, e)
            return None
        return parse_front_matter(text)

    def subscribe_metadata_changed(self, handler: Callable[[Note], None]) -> Callable[[], None]:
        """Call ``handler`` with each note whose metadata changes. Returns an unsubscribe callable."""
        if self._watcher is None:
            self._watcher = MetadataWatcher(self)
        return self._watcher.subscribe(handler)

    def start_watching(self):
        if self._watcher is None:
            self._watcher = MetadataWatcher(self)
        self._watcher.start()

    def stop_watching(self):
        if self._watcher is not None:
            self._watcher.stop()


_UNSEEN = object()


class MetadataWatcher(FileSystemEventHandler):
    """Turns filesystem events below a vault into metadata-change notifications.

    Handlers run on the observer thread, one event at a time, in arrival
    order. A note is only reported when its parsed front matter differs from
    what was last seen at that path, or for the same file under another name.
    """

    def __init__(self, vault: Vault):
        super().__init__()
        self.vault = vault
        self._handlers: List[Callable[[Note], None]] = []
        self._last_seen: Dict[str, Any] = {}
        self._seen_by_file: Dict[tuple, Any] = {}
        self._observer = None

    def subscribe(self, handler: Callable[[Note], None]) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def start(self):
        self._observer = Observer()
        self._observer.schedule(self, str(self.vault.root), recursive=True)
        self._observer.start()
        logger.debug("Watching %s", self.vault.root)

    def stop(self):
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            logger.debug("Stopped watching %s", self.vault.root)

    def on_created(self, event):
        if not event.is_directory:
            self.notify(event.src_path)

    def on_modified(self, event):
        if not event.is_directory:
            self.notify(event.src_path)

    def on_moved(self, event):
        if event.is_directory:
            return
        # A plain rename keeps its metadata, so it should not look like a change
        previous = self._last_seen.pop(self._relative(event.src_path), _UNSEEN)
        destination = self._relative(event.dest_path)
        if previous is not _UNSEEN and destination is not None:
            self._last_seen[destination] = previous
        self.notify(event.dest_path)

    def _relative(self, path) -> Optional[str]:
        resolved = Path(os.fsdecode(path)).resolve()
        if not resolved.is_relative_to(self.vault.root):
            return None
        return resolved.relative_to(self.vault.root).as_posix()

    @staticmethod
    def _file_identity(path: Path) -> Optional[tuple]:
        try:
            stat = path.stat()
        except OSError:
            return None
        return stat.st_dev, stat.st_ino

    def notify(self, path):
        """Report the note at ``path`` if its metadata changed since last seen."""
        path = Path(os.fsdecode(path))
        if path.suffix.lower() != ".md":
            return
        note = self.vault.get_note(path)
        if note is None or self.vault.is_hidden(note.path):
            return

        metadata = self.vault.get_metadata(note)
        identity = self._file_identity(path)
        # A move done as link-then-unlink arrives as a new file with the same inode
        unchanged = self._last_seen.get(note.path, _UNSEEN) == metadata or (
            identity is not None and self._seen_by_file.get(identity, _UNSEEN) == metadata
        )
        self._last_seen[note.path] = metadata
        if identity is not None:
            self._seen_by_file[identity] = metadata
        if unchanged:
            logger.debug("Metadata unchanged for %s", note.path)
            return

        for handler in list(self._handlers):
            try:
                handler(note)
            except Exception:
                logger.exception("Metadata change handler failed for %s", note.path)


# User-facing surfaces
class Notifier:
    """Shows short user-facing notices."""

    def __init__(self, console: Console):
        self.console = console

    def show(self, message: str):
        self.console.print(message, markup=False, highlight=False)


class FolderPicker:
    """Single-choice folder selection on the terminal."""

    def __init__(self, console: Console):
        self.console = console

    def pick(self, default_folder: str, excluded_folders: List[str], all_folders: List[str]) -> Optional[str]:
        """Ask for a destination folder. Returns None when the user dismisses the prompt."""
        folders = list_selectable_folders(all_folders, excluded_folders)
        if not folders:
            self.console.print("No folders available to move to.")
            return None

        table = Table(title="Select destination folder")
        table.add_column("#", style="magenta", justify="right")
        table.add_column("Folder", style="cyan")
        for index, folder in enumerate(folders, start=1):
            table.add_row(str(index), folder, style="bold green" if folder == default_folder else None)
        self.console.print(table)

        default = str(folders.index(default_folder) + 1) if default_folder in folders else None

        while True:
            try:
                answer = Prompt.ask(
                    "Folder number or path (q to cancel)",
                    console=self.console,
                    default=default,
                    show_default=default is not None,
                )
            except (KeyboardInterrupt, EOFError):
                return None

            if answer is None:
                return None
            answer = answer.strip()
            if answer in folders:
                return answer
            if not answer or answer.lower() in ("q", "quit"):
                return None
            if answer.isdecimal() and 1 <= int(answer) <= len(folders):
                return folders[int(answer) - 1]
            self.console.print(f"❌ Invalid choice: {answer}", markup=False)


# Moving notes
class MoveOutcome(str, Enum):
    NO_ACTIVE_NOTE = "no_active_note"
    NO_DESTINATION = "no_destination"
    UNCHANGED = "unchanged"
    BUSY = "busy"
    MOVED = "moved"
    FAILED = "failed"


class MoveResult(BaseModel):
    """How a single move attempt ended."""

    outcome: MoveOutcome
    note: Optional[Note] = None
    destination: Optional[str] = None
    reason: Optional[str] = None


class MoveCoordinator:
    """Runs one move attempt at a time per note, manually or from rules."""

    def __init__(self, vault: Vault, config: Config, notifier: Notifier, picker: Optional[FolderPicker] = None):
        self.vault = vault
        self.config = config
        self.notifier = notifier
        self.picker = picker
        self._in_flight: set = set()
        self._lock = threading.Lock()

    def _claim(self, note: Note) -> bool:
        with self._lock:
            if note.path in self._in_flight:
                return False
            self._in_flight.add(note.path)
            return True

    def _release(self, note: Note):
        with self._lock:
            self._in_flight.discard(note.path)

    def move_manually(self, note: Optional[Note], destination: Optional[str] = None) -> MoveResult:
        """Move ``note`` to ``destination``, asking the picker when none is given."""
        if note is not None and not self._claim(note):
            logger.debug("Move already in progress for %s", note.path)
            self.notifier.show(f"❌ {note.name} is already being moved")
            return MoveResult(outcome=MoveOutcome.BUSY, note=note)

        try:
            if note is None:
                raise NoActiveNote()
            if destination is None:
                destination = self._pick_destination()
            if not has_folder(destination):
                raise NoDestinationSelected()

            if destination.strip("/") == note.folder_path:
                self.notifier.show(f"{note.name} is already in {note.folder_path}")
                return MoveResult(outcome=MoveOutcome.UNCHANGED, note=note, destination=destination)
            return self._rename(note, destination)
        except NoActiveNote as error:
            self.notifier.show(f"❌ {error}")
            return MoveResult(outcome=MoveOutcome.NO_ACTIVE_NOTE)
        except NoDestinationSelected as error:
            self.notifier.show(f"❌ {error}")
            return MoveResult(outcome=MoveOutcome.NO_DESTINATION, note=note)
        finally:
            if note is not None:
                self._release(note)

    def move_automatically(self, note: Note) -> MoveResult:
        """Move ``note`` to the folder its metadata maps to, if any."""
        if not self._claim(note):
            logger.debug("Move already in progress for %s", note.path)
            return MoveResult(outcome=MoveOutcome.BUSY, note=note)

        try:
            match = describe_match(self.vault.get_metadata(note), self.config)
            if match is None:
                logger.debug("No rule matches %s", note.path)
                return MoveResult(outcome=MoveOutcome.NO_DESTINATION, note=note)
            if match.folder.strip("/") == note.folder_path:
                return MoveResult(outcome=MoveOutcome.UNCHANGED, note=note, destination=match.folder)

            if match.kind == "property":
                rule = f"{self.config.metadata_key}={match.value}"
            else:
                rule = f"tag {match.value}"
            return self._rename(note, match.folder, rule)
        finally:
            self._release(note)

    def _pick_destination(self) -> str:
        if self.picker is None:
            raise NoDestinationSelected()
        folder = self.picker.pick(self.config.default_folder, self.config.excluded_folders, self.vault.list_folders())
        if folder is None:
            raise NoDestinationSelected()
        return folder

    def _rename(self, note: Note, folder: str, rule: Optional[str] = None) -> MoveResult:
        new_path = join_destination(folder, note.name)
        via = f" by {rule}" if rule else ""
        try:
            moved = self.vault.rename(note, new_path)
        except RenameFailed as error:
            self.notifier.show(f"❌ Failed to move {note.name}{via}: {error.reason}")
            return MoveResult(outcome=MoveOutcome.FAILED, note=note, destination=folder, reason=error.reason)

        self.notifier.show(f"✓ Moved {note.name}{via} to {moved.path}")
        return MoveResult(outcome=MoveOutcome.MOVED, note=moved, destination=folder)


# CLI helpers
def _open_vault(ctx: typer.Context) -> Vault:
    root = Path(ctx.obj["vault"]).expanduser()
    if not root.is_dir():
        console.print(f"❌ Vault not found: {root}", markup=False)
        raise typer.Exit(1)
    return Vault(root)


def _open_store(ctx: typer.Context) -> SettingsStore:
    store = SettingsStore(_open_vault(ctx).root)
    store.load()
    return store


def _require_note(vault: Vault, path: str) -> Note:
    note = vault.get_note(path)
    if note is None:
        console.print(f"❌ Note not found: {path}", markup=False)
        raise typer.Exit(1)
    return note


def render_excluded_folders(config: Config):
    table = Table(title="Excluded Folders")
    table.add_column("#", style="magenta", justify="right")
    table.add_column("Prefix", style="cyan")
    for index, folder in enumerate(config.excluded_folders, start=1):
        table.add_row(str(index), folder)
    console.print(table)


def render_mapping(title: str, key_label: str, mapping: Dict[str, str]):
    table = Table(title=title)
    table.add_column(key_label, style="cyan")
    table.add_column("Folder", style="green")
    for key, folder in mapping.items():
        table.add_row(key, folder)
    console.print(table)


def render_property_map(config: Config):
    render_mapping(f"Property Mappings ({config.metadata_key})", "Value", config.property_folder_map)


def render_tag_map(config: Config):
    render_mapping("Tag Mappings", "Tag", config.tag_folder_map)


# CLI Commands
@app.callback()
def main(
    ctx: typer.Context,
    vault: Path = typer.Option(
        Path("."), "--vault", "-V", envvar="NOTEMOVE_VAULT", help="Vault root directory"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """NoteMove - Move notes to folders by their metadata."""
    ctx.obj = {"vault": vault}
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


@app.command()
def move(
    ctx: typer.Context,
    note: Optional[str] = typer.Argument(None, help="Note to move (defaults to the active note)"),
    to: Optional[str] = typer.Option(None, "--to", "-t", help="Destination folder, skips the picker"),
):
    """Move a note to a folder chosen from the picker."""
    vault = _open_vault(ctx)
    store = SettingsStore(vault.root)
    config = store.load()

    target = note or os.environ.get(ACTIVE_NOTE_ENV)
    active = _require_note(vault, target) if target else None

    coordinator = MoveCoordinator(vault, config, Notifier(console), FolderPicker(console))
    result = coordinator.move_manually(active, destination=to)
    if result.outcome not in (MoveOutcome.MOVED, MoveOutcome.UNCHANGED):
        raise typer.Exit(1)


@app.command()
def auto(
    ctx: typer.Context,
    note: str = typer.Argument(..., help="Note to move by its metadata"),
):
    """Apply the mapping rules to a single note."""
    vault = _open_vault(ctx)
    store = SettingsStore(vault.root)
    config = store.load()

    coordinator = MoveCoordinator(vault, config, Notifier(console))
    result = coordinator.move_automatically(_require_note(vault, note))
    if result.outcome is MoveOutcome.FAILED:
        raise typer.Exit(1)


@app.command()
def check(
    ctx: typer.Context,
    note: str = typer.Argument(..., help="Note to check"),
):
    """Show which rule would move a note, without moving it."""
    vault = _open_vault(ctx)
    config = SettingsStore(vault.root).load()
    found = _require_note(vault, note)

    match = describe_match(vault.get_metadata(found), config)
    if match is None:
        console.print(f"No rule matches {found.path}", markup=False)
        return

    table = Table(title=f"Rule Match: {found.name}")
    table.add_column("Rule", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_column("Destination", style="green")
    rule = config.metadata_key if match.kind == "property" else "tag"
    table.add_row(rule, match.value, join_destination(match.folder, found.name))
    console.print(table)


@app.command()
def watch(ctx: typer.Context):
    """Move notes automatically whenever their metadata changes."""
    vault = _open_vault(ctx)
    store = SettingsStore(vault.root)
    coordinator = MoveCoordinator(vault, store.load(), Notifier(console))

    def on_metadata_changed(note: Note):
        coordinator.config = store.load()
        coordinator.move_automatically(note)

    unsubscribe = vault.subscribe_metadata_changed(on_metadata_changed)
    vault.start_watching()
    console.print(f"👀 Watching {vault.root} … Ctrl+C to stop.", markup=False)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        unsubscribe()
        vault.stop_watching()
    console.print("✓ Stopped watching")


@app.command()
def folders(ctx: typer.Context):
    """List the folders offered by the picker."""
    vault = _open_vault(ctx)
    config = SettingsStore(vault.root).load()

    selectable = list_selectable_folders(vault.list_folders(), config.excluded_folders)
    if not selectable:
        console.print("No folders available")
        return

    table = Table(title="Selectable Folders")
    table.add_column("Folder", style="cyan")
    for folder in selectable:
        table.add_row(folder, style="bold green" if folder == config.default_folder else None)
    console.print(table)


@app.command()
def version():
    """Show NoteMove version information."""
    console.print("📨 NoteMove v1.0.0")
    console.print("Rule-based note relocation")


# Settings commands
@settings_app.command("show")
def settings_show(ctx: typer.Context):
    """Show the current settings."""
    store = _open_store(ctx)
    config = store.config
    info = store.get_config_info()

    table = Table(title="NoteMove Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Config File", str(info["config_file"]))
    table.add_row("Config Exists", "✓" if info["config_exists"] else "✗")
    table.add_row("Default Folder", config.default_folder)
    table.add_row("Metadata Key", config.metadata_key)
    console.print(table)

    render_excluded_folders(config)
    render_property_map(config)
    render_tag_map(config)


@settings_app.command("default-folder")
def settings_default_folder(ctx: typer.Context, value: str = typer.Argument(..., help="Folder to pre-select")):
    """Set the folder pre-selected by the picker."""
    store = _open_store(ctx)
    config = store.update(default_folder=value.strip())
    console.print(f"✓ Default folder set to: {config.default_folder}", markup=False)


@settings_app.command("metadata-key")
def settings_metadata_key(ctx: typer.Context, value: str = typer.Argument(..., help="Front matter key")):
    """Set the front matter key used by property rules."""
    store = _open_store(ctx)
    config = store.update(metadata_key=value.strip())
    console.print(f"✓ Metadata key set to: {config.metadata_key}", markup=False)
    render_property_map(config)


@exclude_app.command("add")
def exclude_add(ctx: typer.Context, folder: str = typer.Argument(..., help="Folder path prefix")):
    """Hide folders starting with FOLDER from the picker."""
    store = _open_store(ctx)
    config = store.update(excluded_folders=add_excluded_folder(store.config.excluded_folders, folder))
    render_excluded_folders(config)


@exclude_app.command("set")
def exclude_set(
    ctx: typer.Context,
    index: int = typer.Argument(..., help="Position shown by 'settings show'"),
    folder: str = typer.Argument(..., help="New folder path prefix"),
):
    """Replace an excluded folder."""
    store = _open_store(ctx)
    try:
        excluded = replace_excluded_folder(store.config.excluded_folders, index - 1, folder)
    except IndexError as e:
        console.print(f"❌ {e}")
        raise typer.Exit(1)
    render_excluded_folders(store.update(excluded_folders=excluded))


@exclude_app.command("remove")
def exclude_remove(
    ctx: typer.Context,
    index: int = typer.Argument(..., help="Position shown by 'settings show'"),
):
    """Stop hiding an excluded folder."""
    store = _open_store(ctx)
    try:
        excluded = remove_excluded_folder(store.config.excluded_folders, index - 1)
    except IndexError as e:
        console.print(f"❌ {e}")
        raise typer.Exit(1)
    render_excluded_folders(store.update(excluded_folders=excluded))


def _edit_mapping(ctx: typer.Context, field: str, edit: Callable[[Dict[str, str]], Dict[str, str]]) -> Config:
    store = _open_store(ctx)
    try:
        mapping = edit(getattr(store.config, field))
    except KeyError as e:
        console.print(f"❌ No mapping for {e}", markup=False)
        raise typer.Exit(1)
    return store.update(**{field: mapping})


@property_app.command("add")
def property_add(
    ctx: typer.Context,
    value: str = typer.Argument(..., help="Property value"),
    folder: str = typer.Argument(..., help="Destination folder"),
):
    """Move notes whose property equals VALUE to FOLDER."""
    render_property_map(_edit_mapping(ctx, "property_folder_map", lambda m: set_mapping(m, value, folder)))


@property_app.command("rename")
def property_rename(
    ctx: typer.Context,
    old: str = typer.Argument(..., help="Current property value"),
    new: str = typer.Argument(..., help="New property value"),
):
    """Change the property value of a mapping. Replaces any mapping for NEW."""
    render_property_map(_edit_mapping(ctx, "property_folder_map", lambda m: rename_mapping_key(m, old, new)))


@property_app.command("folder")
def property_folder(
    ctx: typer.Context,
    value: str = typer.Argument(..., help="Property value"),
    folder: str = typer.Argument(..., help="New destination folder"),
):
    """Change the destination folder of a property mapping."""

    def edit(mapping: Dict[str, str]) -> Dict[str, str]:
        if value not in mapping:
            raise KeyError(value)
        return set_mapping(mapping, value, folder)

    render_property_map(_edit_mapping(ctx, "property_folder_map", edit))


@property_app.command("remove")
def property_remove(ctx: typer.Context, value: str = typer.Argument(..., help="Property value")):
    """Delete a property mapping."""
    render_property_map(_edit_mapping(ctx, "property_folder_map", lambda m: remove_mapping(m, value)))


@tag_app.command("add")
def tag_add(
    ctx: typer.Context,
    tag: str = typer.Argument(..., help="Tag"),
    folder: str = typer.Argument(..., help="Destination folder"),
):
    """Move notes tagged TAG to FOLDER."""
    render_tag_map(_edit_mapping(ctx, "tag_folder_map", lambda m: set_mapping(m, tag, folder)))


@tag_app.command("rename")
def tag_rename(
    ctx: typer.Context,
    old: str = typer.Argument(..., help="Current tag"),
    new: str = typer.Argument(..., help="New tag"),
):
    """Change the tag of a mapping. Replaces any mapping for NEW."""
    render_tag_map(_edit_mapping(ctx, "tag_folder_map", lambda m: rename_mapping_key(m, old, new)))


@tag_app.command("folder")
def tag_folder(
    ctx: typer.Context,
    tag: str = typer.Argument(..., help="Tag"),
    folder: str = typer.Argument(..., help="New destination folder"),
):
    """Change the destination folder of a tag mapping."""

    def edit(mapping: Dict[str, str]) -> Dict[str, str]:
        if tag not in mapping:
            raise KeyError(tag)
        return set_mapping(mapping, tag, folder)

    render_tag_map(_edit_mapping(ctx, "tag_folder_map", edit))


@tag_app.command("remove")
def tag_remove(ctx: typer.Context, tag: str = typer.Argument(..., help="Tag")):
    """Delete a tag mapping."""
    render_tag_map(_edit_mapping(ctx, "tag_folder_map", lambda m: remove_mapping(m, tag)))


if __name__ == "__main__":
    app()
