"""Tests for eval/runner.py - running cases against a fake agent."""

import pytest

from skill_evals.baseline import Baseline, BaselineStore
from skill_evals.errors import AgentTimeoutError
from skill_evals.eval.cases import EvalCase, EvalSuite
from skill_evals.eval.runner import EvalRunner
from skill_evals.settings import EvalSettings
from skill_evals.trace import ExecutionResult
from skill_evals.validate import ValidationFailure

from helpers import SAMPLE_CONFIG_YAML, assistant_event, dump, init_event, result_event, tool_use

pytestmark = pytest.mark.filterwarnings("ignore:no baseline found:UserWarning")


@pytest.fixture
def fixtures_root(tmp_path):
    root = tmp_path / "fixtures"
    proj = root / "projects" / "go-postgres"
    proj.mkdir(parents=True)
    (proj / "go.mod").write_text("module example.com/app\n")
    (root / "gha").mkdir()
    (root / "gha" / "ci.yml").write_text("on: push\n")
    return root


@pytest.fixture
def settings(tmp_path):
    return EvalSettings(baselines_dir=tmp_path / "baselines", output_dir=tmp_path / "out")


def _agent(config_yaml=SAMPLE_CONFIG_YAML, skill="rwx:rwx", complete=True, input_tokens=100, seen=None):
    """Fake agent: writes .rwx/ci.yml into the work dir and returns a canned trace."""

    def run(prompt, work_dir, settings):
        if seen is not None:
            seen.append((prompt, work_dir, sorted(p.name for p in work_dir.rglob("*"))))
        if config_yaml is not None:
            (work_dir / ".rwx").mkdir(exist_ok=True)
            (work_dir / ".rwx" / "ci.yml").write_text(config_yaml)
        events = [init_event([skill]), assistant_event(tool_use("Skill", {"skill": skill}), tool_use("Write"))]
        if complete:
            events.append(result_event(input_tokens=input_tokens, cost=0.5))
        return ExecutionResult.from_output(dump(events), prompt=prompt)

    return run


def _valid(work_dir, command):
    return []


def _case(**kwargs):
    base = dict(
        case_id="go_postgres",
        prompt="/rwx:rwx",
        fixture="go-postgres",
        skill="rwx:rwx",
        assertions=[
            {"check": "has_package", "args": ["git/clone"]},
            {"check": "has_service", "args": ["postgres"]},
        ],
    )
    base.update(kwargs)
    return EvalCase(**base)


def test_run_case_success(fixtures_root, settings, tmp_path):
    seen = []
    runner = EvalRunner(fixtures_root, settings=settings, run_agent=_agent(seen=seen), validate=_valid,
                        print_mode="quiet")
    r = runner.run_case(_case())

    assert r.success, r.failures
    assert r.error is None
    assert r.skills_used == ["rwx:rwx"]
    assert r.tools_used == ["Skill", "Write"]
    assert r.input_tokens == 100
    assert r.total_cost_usd == 0.5
    assert r.regression_status == "no_baseline"
    assert seen[0][0] == "/rwx:rwx"
    assert seen[0][2] == ["go.mod"]
    # sandbox removed, raw output kept
    assert not seen[0][1].exists()
    assert (tmp_path / "out" / "claude-output-go_postgres.json").exists()
    assert runner.results == [r]


def test_run_case_workflow_fixture(fixtures_root, settings):
    seen = []
    runner = EvalRunner(fixtures_root, settings=settings, run_agent=_agent(seen=seen), validate=_valid,
                        print_mode="quiet")
    case = _case(kind="workflow", fixture="gha/ci.yml", prompt="/rwx:migrate-from-gha .github/workflows/{fixture}",
                 skill="", assertions=[])
    r = runner.run_case(case)
    assert r.success
    assert seen[0][0] == "/rwx:migrate-from-gha .github/workflows/ci.yml"
    assert "ci.yml" in seen[0][2]


def test_run_case_collects_every_failure(fixtures_root, settings):
    runner = EvalRunner(fixtures_root, settings=settings, run_agent=_agent(skill="rwx:other"), validate=_valid,
                        print_mode="quiet")
    r = runner.run_case(_case(assertions=[
        {"check": "has_task", "args": ["lint"]},
        {"check": "has_task", "args": ["test"]},
        {"check": "has_service", "args": ["redis"]},
    ]))
    assert not r.success
    assert r.error is None
    assert len(r.failures) == 3
    assert "expected skill 'rwx:rwx' to be used" in r.failures[0]
    assert r.failures[1].startswith("has_task_lint: ")
    assert r.failures[2].startswith("has_service_redis: ")


def test_run_case_without_configs(fixtures_root, settings):
    runner = EvalRunner(fixtures_root, settings=settings, run_agent=_agent(config_yaml=None), validate=_valid,
                        print_mode="quiet")
    r = runner.run_case(_case())
    assert r.failures == ["expected .rwx/*.yml to exist, but no files found"]
    assert r.regression_status == "no_baseline"


def test_run_case_unparseable_config(fixtures_root, settings):
    runner = EvalRunner(fixtures_root, settings=settings, run_agent=_agent(config_yaml="tasks: [oops"),
                        validate=_valid, print_mode="quiet")
    r = runner.run_case(_case())
    assert len(r.failures) == 1
    assert r.failures[0].startswith("loading configs: ")


def test_run_case_validation_failures(fixtures_root, settings):
    calls = []

    def validate(work_dir, command):
        calls.append(list(command))
        return [ValidationFailure(work_dir / ".rwx" / "ci.yml", 1, "unknown key")]

    runner = EvalRunner(fixtures_root, settings=settings, run_agent=_agent(), validate=validate, print_mode="quiet")
    r = runner.run_case(_case())
    assert calls == [["rwx", "lint"]]
    assert r.failures == ["validation failed: ci.yml: exit 1\nunknown key"]


def test_run_case_agent_error(fixtures_root, settings):

    def run(prompt, work_dir, settings):
        raise AgentTimeoutError("agent timed out after 900s", timeout_s=900)

    runner = EvalRunner(fixtures_root, settings=settings, run_agent=run, validate=_valid, print_mode="quiet")
    r = runner.run_case(_case())
    assert not r.success
    assert r.error == "agent timed out after 900s"
    assert r.regression_status == ""


def test_run_case_missing_fixture(fixtures_root, settings):
    runner = EvalRunner(fixtures_root, settings=settings, run_agent=_agent(), validate=_valid, print_mode="quiet")
    r = runner.run_case(_case(fixture="rails-app"))
    assert r.error and "fixture project not found" in r.error


def test_run_case_incomplete_run_keeps_partial(fixtures_root, settings):
    runner = EvalRunner(fixtures_root, settings=settings, run_agent=_agent(complete=False), validate=_valid,
                        print_mode="quiet")
    r = runner.run_case(_case())
    assert r.error.startswith("no result event found")
    assert r.skills_used == ["rwx:rwx"]
    assert r.tools_used == ["Skill", "Write"]


def test_run_case_regression(fixtures_root, settings):
    BaselineStore(settings.baselines_dir).save(
        "go_postgres", Baseline(input_tokens=50, output_tokens=50, execution_time_ms=1000))
    runner = EvalRunner(fixtures_root, settings=settings, run_agent=_agent(input_tokens=100), validate=_valid,
                        print_mode="quiet")
    r = runner.run_case(_case())
    assert r.regression_status == "regressed"
    assert not r.success
    assert any(f.startswith("input_tokens regressed") for f in r.failures)


def test_run_case_update_mode_records_baseline(fixtures_root, settings, capsys):
    settings.update_baselines = True
    runner = EvalRunner(fixtures_root, settings=settings, run_agent=_agent(input_tokens=77), validate=_valid,
                        print_mode="quiet")
    r = runner.run_case(_case())
    assert r.regression_status == "recorded"
    assert BaselineStore(settings.baselines_dir).load("go_postgres").input_tokens == 77
    assert "[baseline] updated baseline for go_postgres" in capsys.readouterr().out


def test_run_case_writes_info_files(fixtures_root, settings, tmp_path):
    settings.info_dir = tmp_path / "info"
    settings.info_dir.mkdir()
    runner = EvalRunner(fixtures_root, settings=settings, run_agent=_agent(), validate=_valid, print_mode="quiet")
    runner.run_case(_case())
    assert (settings.info_dir / "go_postgres-input_tokens").read_text() == "input_tokens: 100"
    assert not (settings.info_dir / "go_postgres-total_cost_usd").exists()


def test_keep_sandbox(fixtures_root, settings):
    seen = []
    runner = EvalRunner(fixtures_root, settings=settings, run_agent=_agent(seen=seen), validate=_valid,
                        keep_sandbox=True, print_mode="quiet")
    runner.run_case(_case())
    work_dir = seen[0][1]
    assert (work_dir / ".rwx" / "ci.yml").exists()


@pytest.mark.parametrize("workers", [1, 3])
def test_run_suite_preserves_order(fixtures_root, settings, workers, capsys):
    suite = EvalSuite(name="s", cases=[_case(case_id=f"c{i}") for i in range(4)])
    runner = EvalRunner(fixtures_root, settings=settings, run_agent=_agent(), validate=_valid)
    results = runner.run_suite(suite, max_workers=workers)
    assert [r.case_id for r in results] == ["c0", "c1", "c2", "c3"]
    assert all(r.success for r in results)
    out = capsys.readouterr().out
    assert out.count("[eval] ") == 4
    assert ": PASS" in out


def test_case_result_metadata_is_a_copy(fixtures_root, settings):
    case = _case(metadata={"category": "create"})
    runner = EvalRunner(fixtures_root, settings=settings, run_agent=_agent(), validate=_valid, print_mode="quiet")
    r = runner.run_case(case)
    r.metadata["category"] = "changed"
    assert case.metadata == {"category": "create"}
