import pytest

from advisor.step_runner import PipelineStep, StepRunner


class TestStepRunner:
    def test_runs_steps_in_order(self):
        calls = []
        runner = StepRunner(
            [
                PipelineStep("first", lambda ctx: calls.append("first")),
                PipelineStep("second", lambda ctx: calls.append("second")),
            ]
        )

        runner.run({})

        assert calls == ["first", "second"]
        assert runner.step_names == ["first", "second"]

    def test_skip_if(self):
        calls = []
        runner = StepRunner(
            [
                PipelineStep("skipped", lambda ctx: calls.append("skipped"), skip_if=lambda ctx: ctx["skip"]),
                PipelineStep("kept", lambda ctx: calls.append("kept")),
            ]
        )

        runner.run({"skip": True})

        assert calls == ["kept"]

    def test_duplicate_names_are_rejected(self):
        with pytest.raises(ValueError):
            StepRunner([PipelineStep("a", lambda ctx: None), PipelineStep("a", lambda ctx: None)])

    def test_errors_propagate(self):
        def _boom(ctx):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            StepRunner([PipelineStep("boom", _boom)]).run({})
