"""Tests for Pydantic input models.

This test suite validates the input validation logic for the vault tools,
ensuring that:
- Valid inputs are accepted and normalized correctly
- Invalid inputs raise ValidationError with descriptive messages
- Field-level validation works as expected
- Schema generation produces correct JSON schemas for MCP
"""

import pytest
from pydantic import ValidationError

from obsidian_mcp.models import (
    AddTagsInput,
    CreateDirectoryInput,
    CreateNoteInput,
    DeleteNoteInput,
    EditNoteInput,
    EditOperation,
    MoveNoteInput,
    ReadNoteInput,
    RenameTagInput,
    SearchType,
    SearchVaultInput,
    normalize_tag,
)


class TestBaseNoteInput:
    """Test suite for filename/folder validation shared by note tools."""

    def test_valid_simple_filename(self):
        """Test that a bare filename gets the .md extension."""
        model = ReadNoteInput(vault="work", filename="My Note")
        assert model.filename == "My Note.md"
        assert model.folder is None
        assert model.relative_path == "My Note.md"

    def test_md_extension_is_kept(self):
        """Test that an existing .md extension is not doubled."""
        model = ReadNoteInput(vault="work", filename="My Note.md")
        assert model.filename == "My Note.md"

    def test_uppercase_extension_is_kept(self):
        model = ReadNoteInput(vault="work", filename="README.MD")
        assert model.filename == "README.MD"

    def test_dots_in_filename_are_preserved(self):
        """Test that dots within the filename are allowed."""
        model = ReadNoteInput(vault="work", filename="v1.4 Release Notes")
        assert model.filename == "v1.4 Release Notes.md"

    def test_folder_is_joined(self):
        """Test that folder and filename combine into a vault-relative path."""
        model = ReadNoteInput(vault="work", filename="Roadmap", folder="Projects/2025")
        assert model.relative_path == "Projects/2025/Roadmap.md"

    def test_folder_slashes_are_normalized(self):
        """Test that backslashes and surrounding slashes are cleaned up."""
        model = ReadNoteInput(vault="work", filename="Roadmap", folder="Projects\\Active\\")
        assert model.folder == "Projects/Active"

    @pytest.mark.parametrize("folder", ["", "   ", "/", "."])
    def test_root_folder_spellings_mean_vault_root(self, folder):
        model = ReadNoteInput(vault="work", filename="Roadmap", folder=folder)
        assert model.folder is None

    def test_vault_with_whitespace_is_stripped(self):
        """Test that vault names with leading/trailing whitespace are stripped."""
        model = ReadNoteInput(vault="  personal  ", filename="Note")
        assert model.vault == "personal"

    def test_unicode_filename(self):
        """Test that Unicode characters in filenames are accepted."""
        model = ReadNoteInput(vault="work", filename="日記 2025-10-27", folder="Notes")
        assert model.relative_path == "Notes/日記 2025-10-27.md"

    # Validation Error Tests

    def test_missing_vault_raises_error(self):
        """Test that the vault argument is required."""
        with pytest.raises(ValidationError) as exc_info:
            ReadNoteInput(filename="My Note")
        assert any(error["loc"] == ("vault",) for error in exc_info.value.errors())

    def test_whitespace_only_vault_raises_error(self):
        with pytest.raises(ValidationError) as exc_info:
            ReadNoteInput(vault="   ", filename="My Note")
        assert "vault" in str(exc_info.value).lower()

    def test_empty_filename_raises_error(self):
        """Test that empty filenames raise ValidationError."""
        with pytest.raises(ValidationError):
            ReadNoteInput(vault="work", filename="   ")

    def test_filename_with_separator_raises_error(self):
        """Test that folders must go through the folder argument."""
        with pytest.raises(ValidationError) as exc_info:
            ReadNoteInput(vault="work", filename="Projects/Roadmap")
        assert "path separators" in str(exc_info.value)

    def test_only_md_extension_raises_error(self):
        """Test that a filename of just '.md' raises ValidationError."""
        with pytest.raises(ValidationError):
            ReadNoteInput(vault="work", filename=".md")

    @pytest.mark.parametrize("folder", ["../outside", "Projects/../Secrets", "./Projects"])
    def test_traversal_in_folder_raises_error(self, folder):
        """Test that '.' and '..' segments are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            ReadNoteInput(vault="work", filename="Note", folder=folder)
        assert "'.' or '..'" in str(exc_info.value)

    def test_absolute_folder_raises_error(self):
        """Test that absolute paths (starting with /) raise ValidationError."""
        with pytest.raises(ValidationError) as exc_info:
            ReadNoteInput(vault="work", filename="passwd", folder="/etc")
        assert "relative" in str(exc_info.value).lower()

    def test_drive_letter_folder_raises_error(self):
        with pytest.raises(ValidationError):
            ReadNoteInput(vault="work", filename="Note", folder="C:/Users")

    def test_empty_segments_raise_error(self):
        with pytest.raises(ValidationError):
            ReadNoteInput(vault="work", filename="Note", folder="Projects//Active")

    def test_every_invalid_field_is_reported(self):
        """Test that one ValidationError lists all failing fields."""
        with pytest.raises(ValidationError) as exc_info:
            ReadNoteInput(vault="", filename="a/b", folder="../x")
        locations = {error["loc"] for error in exc_info.value.errors()}
        assert locations == {("vault",), ("filename",), ("folder",)}

    def test_model_json_schema_generation(self):
        """Test that JSON schema is generated correctly for MCP."""
        schema = ReadNoteInput.model_json_schema()

        assert set(schema["properties"]) == {"vault", "filename", "folder"}
        assert schema["required"] == ["vault", "filename"]
        assert "description" in schema["properties"]["filename"]
        assert "examples" in schema


class TestNoteInputs:
    def test_create_allows_empty_content(self):
        model = CreateNoteInput(vault="work", filename="Blank", content="")
        assert model.content == ""

    def test_create_requires_content(self):
        with pytest.raises(ValidationError):
            CreateNoteInput(vault="work", filename="Blank")

    def test_edit_operation_is_enum(self):
        model = EditNoteInput(vault="work", filename="Log", operation="append", content="- item")
        assert model.operation is EditOperation.APPEND

    def test_edit_rejects_unknown_operation(self):
        with pytest.raises(ValidationError):
            EditNoteInput(vault="work", filename="Log", operation="insert", content="x")

    def test_append_requires_content(self):
        """Test that append/prepend need something to add."""
        with pytest.raises(ValidationError) as exc_info:
            EditNoteInput(vault="work", filename="Log", operation="prepend", content="  \n")
        assert "Content cannot be empty when using 'prepend'" in str(exc_info.value)

    def test_replace_allows_empty_content(self):
        model = EditNoteInput(vault="work", filename="Log", operation="replace", content="")
        assert model.content == ""

    def test_delete_defaults(self):
        model = DeleteNoteInput(vault="work", path="Archive/Old Project")
        assert model.path == "Archive/Old Project.md"
        assert model.permanent is False
        assert model.reason is None

    def test_delete_rejects_traversal(self):
        with pytest.raises(ValidationError):
            DeleteNoteInput(vault="work", path="../Old.md")

    def test_move_normalizes_both_paths(self):
        model = MoveNoteInput(vault="work", source="Inbox/Idea", destination="Projects/Idea.md")
        assert model.source == "Inbox/Idea.md"
        assert model.destination == "Projects/Idea.md"

    def test_move_rejects_same_source_and_destination(self):
        """Test that a no-op move is rejected after normalization."""
        with pytest.raises(ValidationError) as exc_info:
            MoveNoteInput(vault="work", source="Inbox/Idea", destination="Inbox/Idea.md")
        assert "must be different" in str(exc_info.value)

    def test_create_directory(self):
        model = CreateDirectoryInput(vault="work", path="Projects/2025/")
        assert model.path == "Projects/2025"
        assert model.recursive is True


class TestSearchVaultInput:
    def test_defaults(self):
        model = SearchVaultInput(vault="work", query="  roadmap ")
        assert model.query == "roadmap"
        assert model.path is None
        assert model.case_sensitive is False
        assert model.search_type is SearchType.CONTENT

    def test_blank_query_raises_error(self):
        with pytest.raises(ValidationError):
            SearchVaultInput(vault="work", query="   ")

    def test_search_path_is_validated(self):
        with pytest.raises(ValidationError):
            SearchVaultInput(vault="work", query="x", path="../elsewhere")

    def test_search_type_values(self):
        model = SearchVaultInput(vault="work", query="x", search_type="both")
        assert model.search_type is SearchType.BOTH


class TestTagInputs:
    @pytest.mark.parametrize(
        "raw, expected",
        [("#project", "project"), ("  status/active ", "status/active"), ("to-do_2", "to-do_2")],
    )
    def test_normalize_tag(self, raw, expected):
        assert normalize_tag(raw) == expected

    @pytest.mark.parametrize("raw", ["", "#", "2024", "bad tag", "/lead", "trail/", "a//b"])
    def test_normalize_tag_rejects(self, raw):
        with pytest.raises(ValueError):
            normalize_tag(raw)

    def test_tags_are_deduplicated(self):
        model = AddTagsInput(vault="work", files=["Roadmap"], tags=["#plan", "plan", "draft"])
        assert model.tags == ["plan", "draft"]
        assert model.files == ["Roadmap.md"]

    def test_tag_files_must_not_be_empty(self):
        with pytest.raises(ValidationError):
            AddTagsInput(vault="work", files=[], tags=["plan"])

    def test_rename_requires_different_tags(self):
        with pytest.raises(ValidationError) as exc_info:
            RenameTagInput(vault="work", old_tag="#todo", new_tag="todo")
        assert "must differ" in str(exc_info.value)
