"""Test fixtures and utilities for NoteMove tests."""

import tempfile
from pathlib import Path
from typing import Any, Dict, Optional
import pytest
from unittest.mock import Mock

import yaml

# Import the classes we need to test
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from notemove import Config, SettingsStore, Vault, Notifier, MoveCoordinator


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir).resolve()


@pytest.fixture
def vault_dir(temp_dir):
    """Create a small vault with a few folders - NEVER uses a real vault."""
    root = temp_dir / "vault"
    create_test_directory_structure(root, {
        "Inbox": None,
        "Archive": {"2024": None},
        "Projects": {"Alpha": None},
        ".obsidian": {"plugins": None},
    })
    return root


@pytest.fixture
def vault(vault_dir):
    """Create a Vault over the temporary vault directory."""
    return Vault(vault_dir)


@pytest.fixture
def settings_store(vault_dir):
    """Create a SettingsStore inside the temporary vault."""
    return SettingsStore(vault_dir)


@pytest.fixture
def test_config():
    """Create a configuration with property and tag rules."""
    return Config(
        default_folder="Inbox",
        excluded_folders=["Archive"],
        metadata_key="moveto",
        property_folder_map={"archive": "Archive", "alpha": "Projects/Alpha"},
        tag_folder_map={"urgent": "Projects", "someday": "Archive/2024"},
    )


@pytest.fixture
def mock_notifier():
    """Mock notifier recording every notice shown."""
    return Mock(spec=Notifier)


@pytest.fixture
def coordinator(vault, test_config, mock_notifier):
    """Create a MoveCoordinator without a picker."""
    return MoveCoordinator(vault, test_config, mock_notifier)


def create_note(directory: Path, filename: str, metadata: Optional[Dict[str, Any]] = None, body: str = "Body\n") -> Path:
    """Utility function to create a Markdown note with optional front matter."""
    directory.mkdir(parents=True, exist_ok=True)
    file_path = directory / filename
    if metadata is None:
        file_path.write_text(body)
    else:
        front_matter = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True)
        file_path.write_text(f"---\n{front_matter}---\n{body}")
    return file_path


def create_test_directory_structure(base_path: Path, structure: Dict[str, Any]) -> None:
    """
    Create a directory structure from a nested dictionary.

    Args:
        base_path: Base directory to create structure in
        structure: Dict where keys are directory/file names and values are:
                  - Dict for subdirectories
                  - String for file content
                  - None for empty directories
    """
    base_path.mkdir(parents=True, exist_ok=True)
    for name, content in structure.items():
        path = base_path / name

        if isinstance(content, dict):
            path.mkdir(parents=True, exist_ok=True)
            create_test_directory_structure(path, content)
        elif isinstance(content, str):
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        else:
            path.mkdir(parents=True, exist_ok=True)


def notices(notifier: Mock) -> list:
    """Return the messages passed to a mocked Notifier.show."""
    return [call.args[0] for call in notifier.show.call_args_list]
