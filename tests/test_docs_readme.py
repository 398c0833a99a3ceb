from pathlib import Path


def test_readme_has_explicit_honest_scope_statement() -> None:
    root = Path(__file__).resolve().parents[1]
    readme = (root / "README.md").read_text(encoding="utf-8")

    assert "Honest scope:" in readme
    assert "Good fit:" in readme
    assert "Not good alone:" in readme


def test_readme_common_gotchas_are_current() -> None:
    root = Path(__file__).resolve().parents[1]
    readme = (root / "README.md").read_text(encoding="utf-8")

    assert "### Common Gotchas" in readme
    assert "TypeScript annotations are not stripped" in readme
    assert "fails immediately as\n  stalled" in readme


def test_readme_policy_example_matches_bundled_defaults() -> None:
    root = Path(__file__).resolve().parents[1]
    readme = (root / "README.md").read_text(encoding="utf-8")
    defaults = (root / "src" / "challenge_runner" / "default_policy.toml").read_text(encoding="utf-8")

    assert defaults.strip() in readme
