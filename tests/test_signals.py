"""Tests for local project signals."""

import os

import pytest

from ace_skills.signals import (
    ManifestError,
    list_central_skills,
    list_installed_skills,
    read_declared_dependencies,
    read_skill_metadata,
)


# -- Tests: read_declared_dependencies --------------------------------------

class TestReadDeclaredDependencies:
    """package.json parsing."""

    def test_missing_manifest(self, project_dir):
        assert read_declared_dependencies(project_dir) == []

    def test_union_in_first_seen_order(self, project_dir, write_manifest):
        write_manifest(
            {
                "dependencies": {"react": "^18", "lodash": "^4"},
                "devDependencies": {"vitest": "^1", "react": "^18"},
                "peerDependencies": {"react-dom": "^18"},
            }
        )
        assert read_declared_dependencies(project_dir) == ["react", "lodash", "vitest", "react-dom"]

    def test_manifest_without_dependencies(self, project_dir, write_manifest):
        write_manifest({"name": "app"})
        assert read_declared_dependencies(project_dir) == []

    def test_non_object_section_ignored(self, project_dir, write_manifest):
        write_manifest({"dependencies": ["react"], "devDependencies": {"jest": "^29"}})
        assert read_declared_dependencies(project_dir) == ["jest"]

    def test_invalid_json_raises(self, project_dir, write_manifest):
        write_manifest("{not json")
        with pytest.raises(ManifestError):
            read_declared_dependencies(project_dir)

    def test_non_object_top_level_raises(self, project_dir, write_manifest):
        write_manifest("[1, 2]")
        with pytest.raises(ManifestError):
            read_declared_dependencies(project_dir)

    def test_manifest_is_directory_raises(self, project_dir):
        (project_dir / "package.json").mkdir()
        with pytest.raises(ManifestError):
            read_declared_dependencies(project_dir)


# -- Tests: list_installed_skills -------------------------------------------

class TestListInstalledSkills:
    """Installed-skill enumeration across agents."""

    def test_project_scope(self, project_dir, home_dir):
        (project_dir / ".cursor" / "skills" / "zeta").mkdir(parents=True)
        (project_dir / ".claude" / "skills" / "alpha").mkdir(parents=True)
        (project_dir / ".claude" / "skills" / "zeta").mkdir(parents=True)
        result = list_installed_skills(
            project_dir, agent_ids=["cursor", "claude-code"], scope="project", home=home_dir
        )
        assert result == ["alpha", "zeta"]

    def test_files_and_hidden_entries_ignored(self, project_dir, home_dir):
        skills = project_dir / ".cursor" / "skills"
        (skills / "real").mkdir(parents=True)
        (skills / ".temp-real").mkdir()
        (skills / "README.md").write_text("notes")
        assert list_installed_skills(project_dir, ["cursor"], home=home_dir) == ["real"]

    def test_symlinks_count(self, project_dir, home_dir, tmp_path):
        target = tmp_path / "elsewhere"
        target.mkdir()
        skills = project_dir / ".cursor" / "skills"
        skills.mkdir(parents=True)
        os.symlink(target, skills / "linked")
        os.symlink(tmp_path / "missing", skills / "dangling")
        assert list_installed_skills(project_dir, ["cursor"], home=home_dir) == ["dangling", "linked"]

    def test_global_scope(self, project_dir, home_dir):
        (home_dir / ".cursor" / "skills" / "global-skill").mkdir(parents=True)
        (project_dir / ".cursor" / "skills" / "local-skill").mkdir(parents=True)
        assert list_installed_skills(project_dir, ["cursor"], "global", home_dir) == ["global-skill"]
        assert list_installed_skills(project_dir, ["cursor"], "both", home_dir) == [
            "global-skill",
            "local-skill",
        ]

    def test_falls_back_to_popular_agents(self, project_dir, home_dir):
        (project_dir / ".roo" / "skills" / "roo-skill").mkdir(parents=True)
        (project_dir / ".kode" / "skills" / "kode-skill").mkdir(parents=True)
        assert list_installed_skills(project_dir, home=home_dir) == ["roo-skill"]

    def test_detected_agents_used_when_not_given(self, project_dir, home_dir):
        (home_dir / ".kode").mkdir()
        (project_dir / ".kode" / "skills" / "kode-skill").mkdir(parents=True)
        (project_dir / ".roo" / "skills" / "roo-skill").mkdir(parents=True)
        assert list_installed_skills(project_dir, home=home_dir) == ["kode-skill"]

    def test_unknown_agent_contributes_nothing(self, project_dir, home_dir):
        (project_dir / ".cursor" / "skills" / "a").mkdir(parents=True)
        assert list_installed_skills(project_dir, ["nope", "cursor"], home=home_dir) == ["a"]

    def test_nothing_installed(self, project_dir, home_dir):
        assert list_installed_skills(project_dir, ["cursor"], home=home_dir) == []


class TestListCentralSkills:
    def test_missing_directory(self, tmp_path):
        assert list_central_skills(tmp_path / "missing") == []

    def test_lists_sorted(self, tmp_path):
        for name in ("b", "a", ".temp-c"):
            (tmp_path / name).mkdir()
        assert list_central_skills(tmp_path) == ["a", "b"]


# -- Tests: read_skill_metadata ---------------------------------------------

class TestReadSkillMetadata:
    """SKILL.md frontmatter."""

    def test_valid_frontmatter(self, tmp_path):
        (tmp_path / "SKILL.md").write_text(
            "---\nname: my-skill\ndescription: A skill\n---\n\n# Body\n", encoding="utf-8"
        )
        assert read_skill_metadata(tmp_path) == {"name": "my-skill", "description": "A skill"}

    def test_missing_file(self, tmp_path):
        assert read_skill_metadata(tmp_path) == {}

    def test_no_frontmatter(self, tmp_path):
        (tmp_path / "SKILL.md").write_text("# Just a body\n", encoding="utf-8")
        assert read_skill_metadata(tmp_path) == {}

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "SKILL.md").write_text("---\n: invalid: [yaml\n---\n\nbody\n", encoding="utf-8")
        assert read_skill_metadata(tmp_path) == {}
