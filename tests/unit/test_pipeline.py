"""Unit tests for the build/run pipeline."""

import asyncio

import pytest

from coderunner.config import settings
from coderunner.models.errors import InfrastructureError
from coderunner.models.execution import OutcomeKind, PipelineState
from coderunner.services.pipeline import BuildRunPipeline
from coderunner.services.project import DotnetCommands
from coderunner.services.restore import RestoreStrategy
from coderunner.services.sandbox.executor import SandboxExecutor
from coderunner.services.sandbox.manager import SandboxManager

from tests.fakes import ExecBehavior, FakeEngine, dotnet_handler

VALID_PROGRAM = 'Console.WriteLine("hi");'


def _pipeline(engine, **kwargs):
    manager = SandboxManager(engine, name="test-runner", image="runner-image:test")
    kwargs.setdefault("ready_timeout", 1.0)
    return BuildRunPipeline(manager, **kwargs)


def _stage_of(command):
    joined = " ".join(command)
    if "dotnet restore" in joined:
        return "restore"
    if "dotnet build" in joined:
        return "build"
    if command[:1] == ["dotnet"]:
        return "run"
    if "kill -9" in joined:
        return "kill"
    return "other"


class TestScenarios:
    """End-to-end outcomes against the fake engine."""

    @pytest.mark.asyncio
    async def test_valid_program_runs(self):
        engine = FakeEngine(dotnet_handler())

        outcome = await _pipeline(engine).run(VALID_PROGRAM)

        assert outcome.kind == OutcomeKind.RUN_RESULT
        assert outcome.state == PipelineState.DONE
        assert outcome.exit_code == 0
        assert "hi" in outcome.output
        assert outcome.timed_out is False
        assert [_stage_of(c) for c in engine.commands] == ["restore", "build", "run"]

    @pytest.mark.asyncio
    async def test_syntax_error_fails_build_without_run(self):
        engine = FakeEngine(
            dotnet_handler(
                build=ExecBehavior(
                    b"Program.cs(1,27): error CS1002: ; expected\n", exit_code=1
                )
            )
        )

        outcome = await _pipeline(engine).run('Console.WriteLine("hi")')

        assert outcome.kind == OutcomeKind.BUILD_ERROR
        assert outcome.state == PipelineState.BUILD_FAILED
        assert "CS1002" in outcome.output
        assert "run" not in [_stage_of(c) for c in engine.commands]

    @pytest.mark.asyncio
    async def test_infinite_loop_times_out(self, monkeypatch):
        monkeypatch.setattr(settings, "run_timeout", 0.2)
        engine = FakeEngine(dotnet_handler(run=ExecBehavior(b"", hang=True)))

        outcome = await asyncio.wait_for(
            _pipeline(engine).run("while (true) { }"), timeout=5
        )

        assert outcome.kind == OutcomeKind.RUN_RESULT
        assert outcome.state == PipelineState.DONE
        assert outcome.timed_out is True
        assert outcome.exit_code is None

    @pytest.mark.asyncio
    async def test_timed_out_run_is_killed(self, monkeypatch):
        monkeypatch.setattr(settings, "run_timeout", 0.1)
        engine = FakeEngine(dotnet_handler(run=ExecBehavior(b"tick\n", hang=True)))

        outcome = await _pipeline(engine).run("while (true) { }")

        assert outcome.output == "tick\n"
        stages = [_stage_of(c) for c in engine.commands]
        assert stages == ["restore", "build", "run", "kill"]

    @pytest.mark.asyncio
    async def test_oversized_code_rejected_without_engine_calls(self):
        engine = FakeEngine(dotnet_handler())

        outcome = await _pipeline(engine, size_limit=100).run("x" * 101)

        assert outcome.kind == OutcomeKind.VALIDATION_ERROR
        assert outcome.state == PipelineState.VALIDATION_FAILED
        assert "100" in outcome.message
        assert engine.call_count == 0

    @pytest.mark.asyncio
    async def test_code_at_limit_accepted(self):
        engine = FakeEngine(dotnet_handler())
        outcome = await _pipeline(engine, size_limit=100).run("x" * 100)
        assert outcome.kind == OutcomeKind.RUN_RESULT


class TestValidation:
    """Submissions rejected before any engine contact."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["", "   ", "\n\t\n"])
    async def test_blank_code_rejected(self, code):
        engine = FakeEngine(dotnet_handler())

        outcome = await _pipeline(engine).run(code)

        assert outcome.kind == OutcomeKind.VALIDATION_ERROR
        assert outcome.message == "empty code"
        assert engine.call_count == 0

    @pytest.mark.asyncio
    async def test_per_call_size_limit(self):
        engine = FakeEngine(dotnet_handler())
        outcome = await _pipeline(engine).run("abcdef", size_limit=5)
        assert outcome.kind == OutcomeKind.VALIDATION_ERROR
        assert engine.call_count == 0


class TestFailures:
    """Infrastructure failures become structured outcomes."""

    @pytest.mark.asyncio
    async def test_unreachable_engine(self):
        engine = FakeEngine(dotnet_handler())
        engine.reachable = False

        outcome = await _pipeline(engine, ready_timeout=0.1).run(VALID_PROGRAM)

        assert outcome.kind == OutcomeKind.INFRA_ERROR
        assert outcome.state == PipelineState.INFRA_FAILED
        assert "not reachable" in outcome.message
        assert engine.count("create_instance") == 0

    @pytest.mark.asyncio
    async def test_provisioning_failure(self, monkeypatch):
        engine = FakeEngine(dotnet_handler())

        async def fail(name):
            raise InfrastructureError("conflict: name in use")

        monkeypatch.setattr(engine, "find_instance", fail)

        outcome = await _pipeline(engine).run(VALID_PROGRAM)

        assert outcome.kind == OutcomeKind.INFRA_ERROR
        assert outcome.message == "conflict: name in use"
        assert engine.commands == []

    @pytest.mark.asyncio
    async def test_unencodable_files_fail_before_upload(self, monkeypatch):
        engine = FakeEngine(dotnet_handler())
        monkeypatch.setattr(
            "coderunner.services.pipeline.project_files",
            lambda code: {"n" * 101: code},
        )

        outcome = await _pipeline(engine).run(VALID_PROGRAM)

        assert outcome.kind == OutcomeKind.INFRA_ERROR
        assert engine.count("put_archive") == 0
        assert engine.commands == []

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, monkeypatch):
        engine = FakeEngine(dotnet_handler())
        pipeline = _pipeline(engine)

        async def boom():
            raise RuntimeError("boom")

        monkeypatch.setattr(pipeline.sandbox_manager, "ensure_running", boom)

        outcome = await pipeline.run(VALID_PROGRAM)

        assert outcome.kind == OutcomeKind.INFRA_ERROR
        assert outcome.message == "An unexpected error occurred"

    @pytest.mark.asyncio
    async def test_restore_failure_is_build_error(self):
        engine = FakeEngine(
            dotnet_handler(restore=ExecBehavior(b"NU1301: unable to load\n", exit_code=1))
        )

        outcome = await _pipeline(engine).run(VALID_PROGRAM)

        assert outcome.kind == OutcomeKind.BUILD_ERROR
        assert "NU1301" in outcome.output
        assert [_stage_of(c) for c in engine.commands] == ["restore"]

    @pytest.mark.asyncio
    async def test_failed_online_fallback_reports_both_stages(self):
        engine = FakeEngine(
            dotnet_handler(
                restore=ExecBehavior(b"NU1101: package not in cache\n", exit_code=1),
                restore_online=ExecBehavior(b"NU1301: feed unreachable\n", exit_code=1),
            )
        )
        manager = SandboxManager(engine, name="test-runner", image="runner-image:test")
        executor = SandboxExecutor(engine)
        pipeline = BuildRunPipeline(
            manager,
            executor=executor,
            restore_strategy=RestoreStrategy(
                executor, DotnetCommands("/work", "/out"), allow_online=True
            ),
            ready_timeout=1.0,
        )

        outcome = await pipeline.run(VALID_PROGRAM)

        assert outcome.kind == OutcomeKind.BUILD_ERROR
        assert outcome.state == PipelineState.BUILD_FAILED
        assert "--- restore ---\nNU1101: package not in cache" in outcome.output
        assert "--- restore-online ---\nNU1301: feed unreachable" in outcome.output
        assert [_stage_of(c) for c in engine.commands] == ["restore", "restore"]

    @pytest.mark.asyncio
    async def test_build_timeout_is_build_error(self, monkeypatch):
        monkeypatch.setattr(settings, "build_timeout", 0.1)
        engine = FakeEngine(
            dotnet_handler(build=ExecBehavior(b"compiling\n", hang=True))
        )

        outcome = await asyncio.wait_for(_pipeline(engine).run(VALID_PROGRAM), timeout=5)

        assert outcome.kind == OutcomeKind.BUILD_ERROR
        assert outcome.state == PipelineState.BUILD_FAILED
        assert outcome.timed_out is True
        assert outcome.output == "compiling\n"
        assert "run" not in [_stage_of(c) for c in engine.commands]

    @pytest.mark.asyncio
    async def test_hanging_engine_ping_is_infra_error(self):
        engine = FakeEngine(dotnet_handler())
        engine.ping_hang = True

        outcome = await asyncio.wait_for(
            _pipeline(engine, ready_timeout=0.3).run(VALID_PROGRAM), timeout=5
        )

        assert outcome.kind == OutcomeKind.INFRA_ERROR
        assert outcome.state == PipelineState.INFRA_FAILED
        assert engine.count("create_instance") == 0


class TestRunResults:
    """Program exit status is reported, not treated as failure."""

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_done(self):
        engine = FakeEngine(
            dotnet_handler(run=ExecBehavior(b"Unhandled exception.\n", exit_code=134))
        )

        outcome = await _pipeline(engine).run("throw new Exception();")

        assert outcome.kind == OutcomeKind.RUN_RESULT
        assert outcome.state == PipelineState.DONE
        assert outcome.exit_code == 134

    @pytest.mark.asyncio
    async def test_stage_outputs_recorded(self):
        engine = FakeEngine(dotnet_handler())
        outcome = await _pipeline(engine).run(VALID_PROGRAM)
        assert outcome.stage_outputs == {
            "restore": "Restored.\n",
            "build": "Build succeeded.\n",
            "run": "hi\n",
        }

    @pytest.mark.asyncio
    async def test_source_injected_into_work_dir(self):
        engine = FakeEngine(dotnet_handler())
        await _pipeline(engine).run(VALID_PROGRAM)
        _, path, _ = engine.archives[0]
        assert path == "/work"


class TestConcurrency:
    """Submissions share one container and must not interleave."""

    @pytest.mark.asyncio
    async def test_concurrent_runs_are_serialized(self):
        engine = FakeEngine(dotnet_handler())
        pipeline = _pipeline(engine)

        outcomes = await asyncio.gather(
            *(pipeline.run(VALID_PROGRAM) for _ in range(3))
        )

        assert all(o.kind == OutcomeKind.RUN_RESULT for o in outcomes)
        sequence = [
            op for op, _ in engine.calls if op in ("put_archive", "exec_create")
        ]
        one_run = ["put_archive", "exec_create", "exec_create", "exec_create"]
        assert sequence == one_run * 3
        assert engine.count("create_instance") == 1

    @pytest.mark.asyncio
    async def test_list_workspace(self):
        engine = FakeEngine(lambda cmd: ExecBehavior(b"/work\n\nProgram.cs\n"))
        listing = await _pipeline(engine).list_workspace()
        assert "Program.cs" in listing
