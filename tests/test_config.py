"""Test configuration, settings persistence and settings editing."""

import json
import pytest
from pathlib import Path
from pydantic import ValidationError

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from notemove import (
    Config,
    SettingsStore,
    add_excluded_folder,
    remove_excluded_folder,
    remove_mapping,
    rename_mapping_key,
    replace_excluded_folder,
    set_mapping,
)


class TestConfig:
    """Test the Config pydantic model."""

    def test_config_default_values(self):
        """Test that Config creates with default values."""
        config = Config()

        assert config.default_folder == ""
        assert config.excluded_folders == []
        assert config.metadata_key == "moveto"
        assert config.property_folder_map == {}
        assert config.tag_folder_map == {}

    def test_config_accepts_field_names_and_aliases(self):
        """Python field names and persisted camelCase keys are both accepted."""
        by_name = Config(default_folder="Inbox", tag_folder_map={"a": "A"})
        by_alias = Config.model_validate({"defaultFolder": "Inbox", "tagFolderMap": {"a": "A"}})

        assert by_name == by_alias

    def test_config_legacy_property_key(self):
        """Older records stored the metadata key as yamlProperty."""
        config = Config.model_validate({"yamlProperty": "destination"})

        assert config.metadata_key == "destination"

    def test_config_is_immutable(self):
        """Snapshots cannot be edited in place."""
        config = Config()

        with pytest.raises(ValidationError):
            config.default_folder = "Inbox"

    def test_config_json_uses_camel_case(self):
        """The persisted record uses the five camelCase fields."""
        config = Config(default_folder="Inbox", excluded_folders=["Archive"])

        data = json.loads(config.model_dump_json(by_alias=True))

        assert set(data) == {
            "defaultFolder",
            "excludedFolders",
            "metadataKey",
            "propertyFolderMap",
            "tagFolderMap",
        }
        assert data["excludedFolders"] == ["Archive"]

    def test_config_ignores_unknown_keys(self):
        config = Config.model_validate({"metadataKey": "x", "somethingNew": True})

        assert config.metadata_key == "x"

    def test_config_rejects_wrong_types(self):
        with pytest.raises(ValidationError):
            Config.model_validate({"excludedFolders": "Archive"})


class TestSettingsStore:
    """Test the SettingsStore class."""

    def test_settings_store_paths(self, vault_dir):
        store = SettingsStore(vault_dir)

        assert store.config_dir == vault_dir / ".notemove"
        assert store.config_file.name == "config.json"

    def test_ensure_config_dir(self, settings_store):
        """Test that config directory is created with a .gitignore."""
        settings_store.ensure_config_dir()

        assert settings_store.config_dir.is_dir()
        gitignore_content = (settings_store.config_dir / ".gitignore").read_text()
        assert "*" in gitignore_content
        assert "!.gitignore" in gitignore_content

    def test_load_defaults_on_first_run(self, settings_store):
        """A fresh vault yields all defaults without writing anything."""
        config = settings_store.load()

        assert config == Config()
        assert not settings_store.config_dir.exists()

    def test_save_and_load_roundtrip(self, settings_store, test_config):
        """load(save(config)) reproduces the config exactly."""
        settings_store.save(test_config)

        loaded = SettingsStore(settings_store.config_dir.parent).load()

        assert loaded == test_config
        assert list(loaded.property_folder_map) == list(test_config.property_folder_map)

    def test_roundtrip_keeps_odd_values(self, settings_store):
        """Nothing is validated on save: empty strings persist as-is."""
        config = Config(
            default_folder="",
            excluded_folders=["", "Archive/"],
            metadata_key="",
            property_folder_map={"": "", "new_property_0": ""},
            tag_folder_map={"#tag": "Folder With Spaces/Sub"},
        )

        settings_store.save(config)

        assert settings_store.load() == config

    def test_partial_record_keeps_newer_defaults(self, settings_store):
        """Fields missing from an older record fall back to defaults."""
        settings_store.ensure_config_dir()
        settings_store.config_file.write_text(json.dumps({"defaultFolder": "Inbox"}))

        config = settings_store.load()

        assert config.default_folder == "Inbox"
        assert config.metadata_key == "moveto"
        assert config.tag_folder_map == {}

    def test_null_record(self, settings_store):
        settings_store.ensure_config_dir()
        settings_store.config_file.write_text("null")

        assert settings_store.load() == Config()

    def test_load_invalid_json(self, settings_store):
        """Unreadable settings fall back to the defaults."""
        settings_store.ensure_config_dir()
        settings_store.config_file.write_text("invalid json content")

        assert settings_store.load() == Config()

    def test_load_validation_error(self, settings_store):
        settings_store.ensure_config_dir()
        settings_store.config_file.write_text(json.dumps({"tagFolderMap": ["not", "a", "map"]}))

        assert settings_store.load() == Config()

    def test_save_replaces_current_snapshot(self, settings_store, test_config):
        settings_store.load()

        returned = settings_store.save(test_config)

        assert returned is test_config
        assert settings_store.config is test_config

    def test_save_leaves_no_temp_files(self, settings_store, test_config):
        settings_store.save(test_config)
        settings_store.save(Config())

        assert sorted(p.name for p in settings_store.config_dir.iterdir()) == [".gitignore", "config.json"]

    def test_update_saves_new_snapshot(self, settings_store, test_config):
        """update() copies the current snapshot rather than editing it."""
        settings_store.save(test_config)

        updated = settings_store.update(default_folder="Projects")

        assert updated.default_folder == "Projects"
        assert test_config.default_folder == "Inbox"
        assert settings_store.load().default_folder == "Projects"

    def test_get_config_info(self, settings_store):
        info = settings_store.get_config_info()

        assert info["config_dir"] == settings_store.config_dir
        assert info["config_file"] == settings_store.config_file
        assert info["config_exists"] is False


class TestSettingsEditing:
    """Test the copy-on-write editing helpers."""

    def test_add_excluded_folder(self):
        folders = ["Archive"]

        assert add_excluded_folder(folders, "Templates") == ["Archive", "Templates"]
        assert folders == ["Archive"]

    def test_replace_excluded_folder(self):
        folders = ["Archive", "Templates"]

        assert replace_excluded_folder(folders, 1, "Attachments") == ["Archive", "Attachments"]
        assert folders == ["Archive", "Templates"]

    def test_remove_excluded_folder(self):
        assert remove_excluded_folder(["Archive", "Templates"], 0) == ["Templates"]

    @pytest.mark.parametrize("index", [-1, 2])
    def test_excluded_folder_index_out_of_range(self, index):
        with pytest.raises(IndexError):
            remove_excluded_folder(["Archive", "Templates"], index)
        with pytest.raises(IndexError):
            replace_excluded_folder(["Archive", "Templates"], index, "X")

    def test_set_mapping(self):
        mapping = {"a": "A"}

        assert set_mapping(mapping, "b", "B") == {"a": "A", "b": "B"}
        assert set_mapping(mapping, "a", "Z") == {"a": "Z"}
        assert mapping == {"a": "A"}

    def test_rename_mapping_key(self):
        mapping = {"a": "A", "b": "B"}

        assert rename_mapping_key(mapping, "a", "c") == {"b": "B", "c": "A"}
        assert mapping == {"a": "A", "b": "B"}

    def test_rename_overwrites_existing_key(self):
        """Renaming onto an existing key replaces that entry (last write wins)."""
        assert rename_mapping_key({"a": "A", "b": "B"}, "a", "b") == {"b": "A"}

    def test_rename_missing_key(self):
        with pytest.raises(KeyError):
            rename_mapping_key({"a": "A"}, "missing", "b")

    def test_remove_mapping(self):
        mapping = {"a": "A", "b": "B"}

        assert remove_mapping(mapping, "a") == {"b": "B"}
        assert mapping == {"a": "A", "b": "B"}

    def test_remove_missing_mapping(self):
        with pytest.raises(KeyError):
            remove_mapping({"a": "A"}, "b")
