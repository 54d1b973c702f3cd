from pathlib import Path

import pytest

from ehcgen.services.prompt_service import PromptService


def _write_registry(prompts_dir: Path, registry: str, **files: str) -> None:
    prompts_dir.mkdir(parents=True, exist_ok=True)
    (prompts_dir / "registry.yaml").write_text(registry, encoding="utf-8")
    for name, text in files.items():
        (prompts_dir / f"{name}.txt").write_text(text, encoding="utf-8")


def test_prompt_service_loads_registry(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    prompts_dir = tmp_path / "prompts"
    _write_registry(prompts_dir, "sample: sample.txt\n", sample="Sample prompt")
    monkeypatch.setenv("EHCGEN_PROMPTS_PATH", str(prompts_dir))

    service = PromptService()

    assert "sample" in service.registry
    assert service.get_prompt("sample") == "Sample prompt"
    assert service.get_template("sample").version == "1"


def test_prompt_service_resolves_prefixed_relative_paths(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    prompts_dir = tmp_path / "project" / "prompts"
    _write_registry(prompts_dir, "sample: prompts/sample.txt\n", sample="Sample prompt")
    other_dir = tmp_path / "elsewhere"
    other_dir.mkdir()
    monkeypatch.chdir(other_dir)

    service = PromptService(base_path=prompts_dir)

    assert service.get_prompt("sample") == "Sample prompt"


def test_prompt_service_reads_versioned_entries(tmp_path: Path) -> None:
    prompts_dir = tmp_path / "prompts"
    _write_registry(
        prompts_dir,
        "greeting:\n  file: greeting.txt\n  version: 3\n  requires: [childName]\n",
        greeting="Hello {childName}",
    )

    template = PromptService(base_path=prompts_dir).get_template("greeting")

    assert template.version == "3"
    assert template.requires == ("childName",)


def test_prompt_service_rejects_unused_required_placeholder(tmp_path: Path) -> None:
    prompts_dir = tmp_path / "prompts"
    _write_registry(
        prompts_dir,
        "greeting:\n  file: greeting.txt\n  requires: [childName, childAge]\n",
        greeting="Hello {childName}",
    )

    with pytest.raises(ValueError, match="childAge"):
        PromptService(base_path=prompts_dir)


def test_prompt_service_rejects_unknown_required_placeholder(tmp_path: Path) -> None:
    prompts_dir = tmp_path / "prompts"
    _write_registry(
        prompts_dir,
        "greeting:\n  file: greeting.txt\n  requires: [favouriteColour]\n",
        greeting="Hello {favouriteColour}",
    )

    with pytest.raises(ValueError, match="unknown placeholders"):
        PromptService(base_path=prompts_dir)


def test_prompt_service_rejects_malformed_template(tmp_path: Path) -> None:
    prompts_dir = tmp_path / "prompts"
    _write_registry(prompts_dir, "broken: broken.txt\n", broken="Hello { there")

    with pytest.raises(ValueError, match="malformed"):
        PromptService(base_path=prompts_dir)


def test_prompt_service_handles_empty_registry(tmp_path: Path) -> None:
    prompts_dir = tmp_path / "prompts"
    _write_registry(prompts_dir, "")

    service = PromptService(base_path=prompts_dir)

    assert service.registry == {}


def test_prompt_service_rejects_non_mapping_registry(tmp_path: Path) -> None:
    prompts_dir = tmp_path / "prompts"
    _write_registry(prompts_dir, "- sample.txt\n")

    with pytest.raises(ValueError):
        PromptService(base_path=prompts_dir)


def test_prompt_service_reports_missing_prompt_file(tmp_path: Path) -> None:
    prompts_dir = tmp_path / "prompts"
    _write_registry(prompts_dir, "missing: missing.txt\n")

    with pytest.raises(FileNotFoundError):
        PromptService(base_path=prompts_dir)


def test_require_lists_missing_names(tmp_path: Path) -> None:
    prompts_dir = tmp_path / "prompts"
    _write_registry(prompts_dir, "sample: sample.txt\n", sample="Sample")
    service = PromptService(base_path=prompts_dir)

    with pytest.raises(KeyError, match="alpha, beta"):
        service.require(["sample", "beta", "alpha"])


def test_packaged_registry_covers_every_stage() -> None:
    service = PromptService()

    service.require(
        [
            "section_system",
            "child_views",
            "parent_views",
            "educational_needs",
            "outcomes",
            "educational_provision",
            "health_provision",
            "outcome_system",
            "outcome_request",
            "provision_system",
            "provision_request",
            "compliance_system",
            "compliance_request",
        ]
    )
    assert "childAge" in service.get_template("child_views").requires
