"""Tests for the hook execution core, dispatcher and hook registry."""

import asyncio
import logging
import time
from datetime import datetime, timezone

import pytest

from hookguard.config import HookConfig, HookConfigManager
from hookguard.exceptions import (
    DuplicateValidationError,
    HookTimeoutError,
    OverlapValidationError,
    PayloadError,
    ValidationError,
)
from hookguard.hooks import (
    HookContext,
    HookEvent,
    HookExecutor,
    HookKind,
    HookRegistry,
    LifecycleDispatcher,
    MetricsRecorder,
    OperationOutcome,
    OperationWarning,
    Severity,
    classify,
    lifecycle_hooks,
    run_with_deadline,
)
from hookguard.hooks.errors import (
    DUPLICATE_VALIDATION,
    HOOK_TIMEOUT,
    OVERLAP_VALIDATION,
    UNKNOWN_ERROR,
    VALIDATION_ERROR,
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def metrics():
    return MetricsRecorder()


@pytest.fixture
def event():
    return HookEvent(params={"data": {"name": "Eagles", "founded": 1990}})


@pytest.fixture
def context(event):
    return HookContext(
        content_category="team",
        hook_kind=HookKind.BEFORE_CREATE,
        event=event,
        operation_id="team-beforeCreate-1",
    )


def make_executor(metrics, **config):
    return HookExecutor("team", config=HookConfig(**config), metrics=metrics)


class FullHooks:
    """A LifecycleHooks implementation recording its calls."""

    def __init__(self):
        self.calls = []

    async def before_create(self, event):
        self.calls.append("before_create")
        return {**event.data, "slug": event.data["name"].lower()}

    async def before_update(self, event):
        self.calls.append("before_update")
        raise ValidationError("name is required", field="name")

    async def after_create(self, event):
        self.calls.append("after_create")

    async def after_update(self, event):
        self.calls.append("after_update")


# =============================================================================
# HookKind / HookEvent
# =============================================================================


class TestHookKind:
    def test_operation_mapping(self):
        assert HookKind.BEFORE_CREATE.operation.value == "create"
        assert HookKind.AFTER_UPDATE.operation.value == "update"
        assert HookKind.BEFORE_DELETE.operation.value == "delete"

    def test_is_before(self):
        assert HookKind.BEFORE_UPDATE.is_before
        assert not HookKind.AFTER_CREATE.is_before

    def test_method_name(self):
        assert HookKind.AFTER_DELETE.method_name == "after_delete"


class TestHookEvent:
    def test_from_dict(self):
        event = HookEvent.from_dict({"params": {"data": {"a": 1}, "where": {"id": 3}}, "result": {"id": 3}})
        assert event.data == {"a": 1}
        assert event.where == {"id": 3}
        assert event.result == {"id": 3}

    def test_from_dict_rejects_non_mapping(self):
        with pytest.raises(PayloadError):
            HookEvent.from_dict(["not", "a", "dict"])

    def test_missing_data_is_empty(self):
        assert HookEvent().data == {}

    def test_get_field_with_type(self, event):
        assert event.get_field("founded", int) == 1990

    def test_get_field_wrong_type(self, event):
        with pytest.raises(PayloadError) as exc:
            event.get_field("name", int)
        assert exc.value.field == "name"

    def test_get_field_default(self, event):
        assert event.get_field("league", default=None) is None

    def test_require_field_missing(self, event):
        with pytest.raises(PayloadError, match="missing"):
            event.require_field("league")

    def test_require_field_empty_string(self):
        event = HookEvent(params={"data": {"name": "  "}})
        with pytest.raises(PayloadError, match="empty"):
            event.require_field("name", str)

    def test_malformed_data(self):
        with pytest.raises(PayloadError):
            HookEvent(params={"data": "oops"}).data


# =============================================================================
# Error classification
# =============================================================================


class TestClassify:
    def test_timeout(self, context):
        record = classify(HookTimeoutError(100), context)
        assert record.code == HOOK_TIMEOUT
        assert record.severity == Severity.WARNING
        assert "100ms" in record.message

    def test_builtin_timeout(self, context):
        assert classify(TimeoutError("slow"), context).code == HOOK_TIMEOUT

    def test_overlap(self, context):
        assert classify(OverlapValidationError("overlaps"), context).code == OVERLAP_VALIDATION

    def test_duplicate(self, context):
        assert classify(DuplicateValidationError("exists"), context).code == DUPLICATE_VALIDATION

    def test_validation(self, context):
        assert classify(ValidationError("bad"), context).code == VALIDATION_ERROR

    def test_unknown(self, context):
        record = classify(RuntimeError("boom"), context)
        assert record.code == UNKNOWN_ERROR
        assert record.message == "boom"

    def test_empty_message_gets_default(self, context):
        assert classify(RuntimeError(), context).message == "An unknown error occurred"

    def test_strict_validation_is_critical(self, context):
        record = classify(ValidationError("bad"), context, strict=True)
        assert record.severity == Severity.CRITICAL

    def test_strict_does_not_escalate_non_validation(self, context):
        assert classify(RuntimeError("boom"), context, strict=True).severity == Severity.WARNING
        assert classify(HookTimeoutError(10), context, strict=True).severity == Severity.WARNING

    def test_is_deterministic_with_fixed_timestamp(self, context):
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        first = classify(ValidationError("bad"), context, timestamp=ts)
        second = classify(ValidationError("bad"), context, timestamp=ts)
        assert first == second
        assert first.context is context


# =============================================================================
# Timeout guard
# =============================================================================


class TestRunWithDeadline:
    @pytest.mark.asyncio
    async def test_returns_async_result(self):
        async def op():
            return 42

        assert await run_with_deadline(op, 100) == 42

    @pytest.mark.asyncio
    async def test_returns_sync_result(self):
        assert await run_with_deadline(lambda: "done", 100) == "done"

    @pytest.mark.asyncio
    async def test_late_sync_result_times_out(self):
        def op():
            time.sleep(0.03)
            return "late"

        with pytest.raises(HookTimeoutError):
            await run_with_deadline(op, 10)

    @pytest.mark.asyncio
    async def test_accepts_awaitable(self):
        async def op():
            return 1

        assert await run_with_deadline(op(), 100) == 1

    @pytest.mark.asyncio
    async def test_propagates_failure(self):
        async def op():
            raise ValueError("bad input")

        with pytest.raises(ValueError, match="bad input"):
            await run_with_deadline(op, 100)

    @pytest.mark.asyncio
    async def test_times_out_without_cancelling(self):
        release = asyncio.Event()
        finished = []

        async def op():
            await release.wait()
            finished.append(True)

        with pytest.raises(HookTimeoutError) as exc:
            await run_with_deadline(op, 20)
        assert isinstance(exc.value, TimeoutError)
        assert exc.value.deadline_ms == 20

        # The abandoned operation keeps running to completion
        release.set()
        await asyncio.sleep(0.01)
        assert finished == [True]

    @pytest.mark.asyncio
    async def test_abandoned_failure_is_consumed(self, caplog):
        release = asyncio.Event()

        async def op():
            await release.wait()
            raise RuntimeError("late failure")

        with pytest.raises(HookTimeoutError):
            await run_with_deadline(op, 10)
        with caplog.at_level(logging.DEBUG, logger="hookguard.hooks.timeout"):
            release.set()
            await asyncio.sleep(0.01)
        assert "late failure" in caplog.text


# =============================================================================
# HookExecutor
# =============================================================================


class TestHookExecutorSuccess:
    @pytest.mark.asyncio
    async def test_success_result(self, metrics, event):
        executor = make_executor(metrics)

        async def op():
            return {"name": "Eagles"}

        result = await executor.execute(HookKind.BEFORE_CREATE, event, op)
        assert result.success
        assert result.can_proceed
        assert result.errors == []
        assert result.warnings == []
        assert result.modified_data == {"name": "Eagles"}
        assert result.execution_time_ms >= 0

    @pytest.mark.asyncio
    async def test_sync_operation(self, metrics, event):
        result = await make_executor(metrics).execute(HookKind.AFTER_CREATE, event, lambda: "ok")
        assert result.success
        assert result.modified_data == "ok"

    @pytest.mark.asyncio
    async def test_records_metrics(self, metrics, event):
        executor = make_executor(metrics)
        await executor.execute(HookKind.BEFORE_CREATE, event, lambda: None)
        snapshot = metrics.get_metrics("team.beforeCreate")
        assert snapshot.execution_count == 1
        assert snapshot.total_errors == 0
        assert snapshot.last_execution is not None

    @pytest.mark.asyncio
    async def test_outcome_warnings(self, metrics, event):
        executor = make_executor(metrics)

        def op():
            return OperationOutcome(
                data={"name": "Eagles"},
                warnings=[OperationWarning("NAME_STYLE", "name should be capitalized")],
            )

        result = await executor.execute(HookKind.BEFORE_CREATE, event, op)
        assert result.success
        assert result.modified_data == {"name": "Eagles"}
        assert [w.code for w in result.warnings] == ["NAME_STYLE"]
        assert result.warnings[0].severity == Severity.WARNING
        assert result.warnings[0].context.content_category == "team"

    def test_operation_warning_rejects_critical(self):
        with pytest.raises(ValueError):
            OperationWarning("X", "y", severity=Severity.CRITICAL)


class TestHookExecutorFailure:
    @pytest.mark.asyncio
    async def test_failure_is_never_raised(self, metrics, event):
        async def op():
            raise RuntimeError("database unavailable")

        result = await make_executor(metrics).execute(HookKind.BEFORE_CREATE, event, op)
        assert not result.success
        assert result.can_proceed  # graceful degradation on by default
        assert result.degraded
        assert len(result.errors) == 1
        assert result.errors[0].code == UNKNOWN_ERROR
        assert result.errors[0].message == "database unavailable"

    @pytest.mark.asyncio
    async def test_failure_without_graceful_degradation(self, metrics, event):
        async def op():
            raise RuntimeError("boom")

        executor = make_executor(metrics, enable_graceful_degradation=False)
        result = await executor.execute(HookKind.BEFORE_CREATE, event, op)
        assert not result.success
        assert not result.can_proceed

    @pytest.mark.asyncio
    async def test_failure_records_error_metrics(self, metrics, event):
        def op():
            raise RuntimeError("boom")

        executor = make_executor(metrics)
        await executor.execute(HookKind.BEFORE_UPDATE, event, op)
        await executor.execute(HookKind.BEFORE_UPDATE, event, lambda: None)
        snapshot = metrics.get_metrics("team.beforeUpdate")
        assert snapshot.execution_count == 2
        assert snapshot.total_errors == 1
        assert snapshot.error_rate == 0.5

    @pytest.mark.asyncio
    async def test_strict_validation_failure_is_critical(self, metrics, event):
        def op():
            raise ValidationError("name is required")

        executor = make_executor(metrics, enable_strict_validation=True)
        result = await executor.execute(HookKind.BEFORE_CREATE, event, op)
        assert result.errors[0].severity == Severity.CRITICAL
        assert result.errors[0].code == VALIDATION_ERROR
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_non_strict_validation_failure_is_warning(self, metrics, event):
        def op():
            raise ValidationError("name is required")

        result = await make_executor(metrics).execute(HookKind.BEFORE_CREATE, event, op)
        assert result.errors[0].severity == Severity.WARNING

    @pytest.mark.asyncio
    async def test_timeout_resolves_near_deadline(self, metrics, event):
        release = asyncio.Event()

        async def op():
            await release.wait()

        executor = make_executor(metrics, max_hook_execution_time_ms=50)
        result = await executor.execute(HookKind.BEFORE_CREATE, event, op)
        release.set()

        assert not result.success
        assert result.errors[0].code == HOOK_TIMEOUT
        assert 45 <= result.execution_time_ms < 500
        assert metrics.get_metrics("team.beforeCreate").total_errors == 1

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, metrics, event):
        async def op():
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await make_executor(metrics).execute(HookKind.BEFORE_CREATE, event, op)

    @pytest.mark.asyncio
    async def test_failure_is_logged_with_operation_id(self, metrics, event, caplog):
        def op():
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="hookguard.hooks.executor"):
            await make_executor(metrics).execute(HookKind.BEFORE_CREATE, event, op)
        records = [r for r in caplog.records if "Hook execution failed" in r.getMessage()]
        assert records
        assert records[0].operation_id.startswith("team-beforeCreate-")

    @pytest.mark.asyncio
    async def test_log_level_gates_info_records(self, metrics, event, caplog):
        executor = make_executor(metrics, log_level="warn")
        with caplog.at_level(logging.DEBUG, logger="hookguard.hooks.executor"):
            await executor.execute(HookKind.BEFORE_CREATE, event, lambda: None)
        assert "Hook execution completed" not in caplog.text

        executor.update_config({"logLevel": "info"})
        with caplog.at_level(logging.DEBUG, logger="hookguard.hooks.executor"):
            await executor.execute(HookKind.BEFORE_CREATE, event, lambda: None)
        assert "Hook execution completed" in caplog.text


class TestHookExecutorConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_invocations_are_all_counted(self, metrics, event):
        executor = make_executor(metrics)

        async def op():
            await asyncio.sleep(0.001)
            return True

        results = await asyncio.gather(
            *[executor.execute(HookKind.BEFORE_CREATE, event, op) for _ in range(50)]
        )
        assert all(r.success for r in results)
        assert len({id(r) for r in results}) == 50
        assert metrics.get_metrics("team.beforeCreate").execution_count == 50

    @pytest.mark.asyncio
    async def test_get_metrics_has_no_side_effects(self, metrics, event):
        executor = make_executor(metrics)
        await executor.execute(HookKind.BEFORE_CREATE, event, lambda: None)
        assert metrics.get_metrics("team.beforeCreate") == metrics.get_metrics("team.beforeCreate")


class TestHookExecutorConfig:
    @pytest.mark.asyncio
    async def test_update_config_applies_to_next_call(self, metrics, event):
        executor = make_executor(metrics)

        def op():
            raise RuntimeError("boom")

        assert (await executor.execute(HookKind.BEFORE_CREATE, event, op)).can_proceed
        executor.update_config({"enableGracefulDegradation": False})
        assert not (await executor.execute(HookKind.BEFORE_CREATE, event, op)).can_proceed

    @pytest.mark.asyncio
    async def test_reads_category_config_from_manager(self, metrics, event):
        manager = HookConfigManager(
            environment="",
            category_overrides={"team": {"enableGracefulDegradation": False}},
        )
        executor = HookExecutor("team", metrics=metrics, config_manager=manager)

        def op():
            raise RuntimeError("boom")

        assert not (await executor.execute(HookKind.BEFORE_CREATE, event, op)).can_proceed

    @pytest.mark.asyncio
    async def test_metrics_flag_off_skips_recording(self, metrics, event):
        manager = HookConfigManager(environment="", feature_flags={"enableHookMetrics": False})
        executor = HookExecutor("team", metrics=metrics, config_manager=manager)

        result = await executor.execute(HookKind.BEFORE_CREATE, event, lambda: {"ok": True})

        assert result.success
        assert metrics.get_metrics("team.beforeCreate").execution_count == 0


# =============================================================================
# HookRegistry / LifecycleDispatcher
# =============================================================================


class TestHookRegistry:
    def test_register_and_get(self):
        registry = HookRegistry()
        hooks = FullHooks()
        registry.register("team", hooks)
        assert registry.get("team") is hooks
        assert registry.is_registered("team")
        assert registry.list_registered() == ["team"]

    def test_register_rejects_incomplete(self):
        class Partial:
            async def before_create(self, event):
                return None

        with pytest.raises(TypeError, match="before_update"):
            HookRegistry().register("team", Partial())

    def test_get_unregistered_raises(self):
        with pytest.raises(ValueError, match="explicitly registered"):
            HookRegistry().get("league")

    def test_resolve_optional_methods(self):
        registry = HookRegistry()
        registry.register("team", FullHooks())
        assert registry.resolve("team", HookKind.BEFORE_CREATE) is not None
        assert registry.resolve("team", HookKind.BEFORE_DELETE) is None
        assert registry.resolve("league", HookKind.BEFORE_CREATE) is None

    def test_decorator_registers_instance(self):
        registry = HookRegistry()

        @lifecycle_hooks(registry, "season")
        class SeasonHooks(FullHooks):
            pass

        assert isinstance(registry.get("season"), SeasonHooks)

    def test_clear(self):
        registry = HookRegistry()
        registry.register("team", FullHooks())
        registry.clear()
        assert registry.list_registered() == []


class TestLifecycleDispatcher:
    @pytest.fixture
    def dispatcher(self, metrics):
        registry = HookRegistry()
        registry.register("team", FullHooks())
        return LifecycleDispatcher(registry, HookConfigManager(environment=""), metrics)

    @pytest.mark.asyncio
    async def test_dispatch_runs_hook(self, dispatcher, event):
        result = await dispatcher.dispatch("team", HookKind.BEFORE_CREATE, event)
        assert result.success
        assert result.modified_data["slug"] == "eagles"

    @pytest.mark.asyncio
    async def test_dispatch_failure_becomes_result(self, dispatcher, event):
        result = await dispatcher.dispatch("team", HookKind.BEFORE_UPDATE, event)
        assert not result.success
        assert result.errors[0].code == VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_missing_category_succeeds_immediately(self, dispatcher, metrics, event):
        result = await dispatcher.dispatch("league", HookKind.BEFORE_CREATE, event)
        assert result.success
        assert result.can_proceed
        assert metrics.get_all_metrics() == {}

    @pytest.mark.asyncio
    async def test_missing_optional_hook_succeeds(self, dispatcher, event):
        result = await dispatcher.dispatch("team", HookKind.BEFORE_DELETE, event)
        assert result.success

    @pytest.mark.asyncio
    async def test_executor_shared_per_category(self, dispatcher, event):
        assert dispatcher.executor_for("team") is dispatcher.executor_for("team")
        await dispatcher.dispatch("team", HookKind.BEFORE_CREATE, event)
        await dispatcher.dispatch("team", HookKind.BEFORE_CREATE, event)
        assert dispatcher.get_metrics("team")["beforeCreate"].execution_count == 2
