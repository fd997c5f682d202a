"""Tests for the staged generation pipeline."""

import pytest

from conftest import fill_ledger
from dps.errors import QuotaExceededError, StageFailedError
from dps.pipeline import FailurePolicy, Pipeline, Stage
from dps.usage import UsageLedger


@pytest.fixture
def ledger(store, month):
    return UsageLedger(store, month_provider=month)


def boom(ctx):
    raise RuntimeError("model not found")


class TestOrdering:
    def test_stages_run_in_order_and_see_previous_results(self, ledger):
        seen = []

        def first(ctx):
            seen.append("first")
            return 2

        def second(ctx):
            seen.append("second")
            return ctx["first"] * 10

        result = Pipeline([Stage("first", first, uses_ai=False), Stage("second", second, uses_ai=False)], ledger).run()

        assert seen == ["first", "second"]
        assert result["second"] == 20

    def test_initial_context_is_copied(self, ledger):
        context = {"seed": 1}
        Pipeline([Stage("x", lambda ctx: ctx["seed"], uses_ai=False)], ledger).run(context)
        assert context == {"seed": 1}


class TestFailurePolicy:
    def test_abort_stops_later_stages(self, ledger):
        ran = []
        stages = [
            Stage("bad", boom),
            Stage("after", lambda ctx: ran.append("after"), uses_ai=False),
        ]
        with pytest.raises(StageFailedError) as excinfo:
            Pipeline(stages, ledger).run()

        assert excinfo.value.stage == "bad"
        assert isinstance(excinfo.value.cause, RuntimeError)
        assert ran == []

    def test_fallback_substitutes_and_continues(self, ledger):
        stages = [
            Stage("caption", boom, FailurePolicy.FALLBACK, fallback=lambda ctx: "default"),
            Stage("upper", lambda ctx: ctx["caption"].upper(), uses_ai=False),
        ]
        result = Pipeline(stages, ledger).run()

        assert result["upper"] == "DEFAULT"
        assert result.fallbacks == ["caption"]
        assert result.outcomes[0].error == "model not found"

    def test_fallback_policy_without_fallback_aborts(self, ledger):
        with pytest.raises(StageFailedError):
            Pipeline([Stage("caption", boom, FailurePolicy.FALLBACK)], ledger).run()


class TestLedgerGating:
    def test_successful_ai_stage_recorded_once(self, ledger):
        Pipeline([Stage("a", lambda ctx: 1), Stage("b", lambda ctx: 2, uses_ai=False)], ledger).run()
        assert ledger.current_usage().ai_calls == 1

    def test_fallback_not_recorded(self, ledger):
        Pipeline([Stage("a", boom, FailurePolicy.FALLBACK, fallback=lambda ctx: 0)], ledger).run()
        assert ledger.current_usage().ai_calls == 0

    def test_exhausted_ledger_blocks_without_calling(self, studio, ledger):
        fill_ledger(studio, ai_calls=15)
        called = []

        with pytest.raises(QuotaExceededError) as excinfo:
            Pipeline([Stage("a", lambda ctx: called.append(1))], studio.ledger).run()

        assert excinfo.value.reason == "ai"
        assert called == []
        assert studio.ledger.current_usage().ai_calls == 15

    def test_non_ai_stage_runs_when_exhausted(self, studio):
        fill_ledger(studio, ai_calls=15)
        result = Pipeline([Stage("local", lambda ctx: "ok", uses_ai=False)], studio.ledger).run()
        assert result["local"] == "ok"

    def test_quota_error_inside_stage_is_not_swallowed_by_fallback(self, ledger):
        def over(ctx):
            raise QuotaExceededError("ai")

        with pytest.raises(QuotaExceededError):
            Pipeline([Stage("a", over, FailurePolicy.FALLBACK, fallback=lambda ctx: 0)], ledger).run()
