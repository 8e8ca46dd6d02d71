"""Checks on the bundled eval suites and their fixtures."""

from pathlib import Path

import pytest

from skill_evals.eval.cases import load_suite

EVALS_DIR = Path(__file__).resolve().parent.parent / "evals"
FIXTURES_ROOT = EVALS_DIR / "fixtures"
SUITE_PATHS = sorted((EVALS_DIR / "suites").glob("*.json"))


def test_bundled_suites_present():
    assert [p.name for p in SUITE_PATHS] == ["create_rwx.json", "migrate_gha.json"]


@pytest.mark.parametrize("path", SUITE_PATHS, ids=lambda p: p.stem)
def test_suite_cases_build_and_have_fixtures(path):
    suite = load_suite(path)
    assert suite.name == path.stem
    assert suite.cases

    ids = [c.case_id for c in suite.cases]
    assert len(ids) == len(set(ids))

    for case in suite.cases:
        assert case.build_assertions(), case.case_id
        if case.kind == "workflow":
            assert (FIXTURES_ROOT / case.fixture).is_file(), case.fixture
        else:
            assert (FIXTURES_ROOT / "projects" / case.fixture).is_dir(), case.fixture


def test_create_suite_defaults():
    suite = load_suite(EVALS_DIR / "suites" / "create_rwx.json")
    assert {c.skill for c in suite.cases} == {"rwx:rwx"}
    assert {c.metadata["category"] for c in suite.cases} == {"create"}
    assert len(suite.cases) == 13


def test_migrate_suite_prompts_name_the_workflow():
    suite = load_suite(EVALS_DIR / "suites" / "migrate_gha.json")
    prompts = [c.render_prompt() for c in suite.cases]
    assert prompts == [
        "/rwx:migrate-from-gha .github/workflows/simple-ci.yml",
        "/rwx:migrate-from-gha .github/workflows/matrix-ci.yml",
        "/rwx:migrate-from-gha .github/workflows/multi-job-ci.yml",
    ]
