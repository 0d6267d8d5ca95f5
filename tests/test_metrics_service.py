"""Tests for recording AI tool metrics and reading usage statistics."""
import time
import uuid
from datetime import datetime, timedelta, UTC
from decimal import Decimal

import pytest

from edify.schemas.content_flags import ContentFlags
from edify.services.ai.metrics_service import (
    AIToolsMetricsParams,
    AIToolsMetricsService,
    round_price,
)


def _user_id():
    return f"user_{uuid.uuid4().hex[:12]}"


@pytest.mark.asyncio
async def test_record_rounds_counters_and_price(db_session):
    service = AIToolsMetricsService(db_session)
    metric = await service.record_tool_metrics(AIToolsMetricsParams(
        user_id=_user_id(),
        model="gpt-4o",
        prompt_type="quiz_generator",
        start_time=time.monotonic(),
        input_length=10.5,
        response_length=2.4,
        input_tokens=99.5,
        output_tokens=0.49,
        total_tokens=100,
        price_gbp=0.0123455,
    ))

    assert metric.input_length == 11
    assert metric.response_length == 2
    assert metric.input_tokens == 100
    assert metric.output_tokens == 0
    assert metric.total_tokens == 100
    assert metric.price_gbp == Decimal("0.012346")
    assert metric.duration_ms >= 0
    assert metric.moderator_approval == "not_requested"


@pytest.mark.asyncio
async def test_flagged_is_derived_from_flags(db_session):
    service = AIToolsMetricsService(db_session)
    metric = await service.record_tool_metrics(AIToolsMetricsParams(
        user_id=_user_id(),
        model="gpt-4o",
        prompt_type="rubric_generator",
        start_time=time.monotonic(),
        content_flags=ContentFlags(fraudulent_intent_detected=True),
        flagged=False,
        error_type="content_violation",
        status_code=400,
    ))

    assert metric.flagged is True
    assert metric.content_flags["fraudulent_intent_detected"] is True
    assert metric.content_flags["automation_misuse_detected"] is True
    assert metric.error_type == "content_violation"
    assert metric.status_code == 400


@pytest.mark.asyncio
async def test_missing_prompt_id_gets_a_fresh_uuid(db_session):
    service = AIToolsMetricsService(db_session)
    params = dict(user_id=_user_id(), model="gpt-4o", prompt_type="peel_generator", start_time=time.monotonic())
    first = await service.record_tool_metrics(AIToolsMetricsParams(**params))
    second = await service.record_tool_metrics(AIToolsMetricsParams(**params))

    assert isinstance(first.prompt_id, uuid.UUID)
    assert first.prompt_id != second.prompt_id
    assert first.flagged is False


def test_round_price_handles_missing_values():
    assert round_price(None) == Decimal("0.000000")
    assert round_price(Decimal("1.0000005")) == Decimal("1.000001")


@pytest.mark.asyncio
async def test_usage_stats_for_selected_users(db_session):
    service = AIToolsMetricsService(db_session)
    user_a, user_b, outsider = _user_id(), _user_id(), _user_id()

    for user_id, prompt_type, flags, error_type in [
        (user_a, "quiz_generator", ContentFlags(), None),
        (user_a, "quiz_generator", ContentFlags(pii_detected=True), "content_violation"),
        (user_b, "sow_generator", ContentFlags(), None),
        (outsider, "sow_generator", ContentFlags(), None),
    ]:
        await service.record_tool_metrics(AIToolsMetricsParams(
            user_id=user_id,
            model="gpt-4o",
            prompt_type=prompt_type,
            start_time=time.monotonic(),
            total_tokens=100,
            price_gbp=Decimal("0.5"),
            content_flags=flags,
            error_type=error_type,
        ))

    stats = await service.get_usage_stats(user_ids=[user_a, user_b])

    assert stats.total_calls == 3
    assert stats.total_tokens == 300
    assert stats.total_cost_gbp == Decimal("1.500000")
    assert stats.flagged_calls == 1
    assert stats.blocked_calls == 1
    assert stats.calls_by_tool == {"quiz_generator": 2, "sow_generator": 1}


@pytest.mark.asyncio
async def test_usage_stats_window_excludes_future_since(db_session):
    service = AIToolsMetricsService(db_session)
    user_id = _user_id()
    await service.record_tool_metrics(AIToolsMetricsParams(
        user_id=user_id, model="gpt-4o", prompt_type="quiz_generator", start_time=time.monotonic(),
    ))

    stats = await service.get_usage_stats(user_ids=[user_id], since=datetime.now(UTC) + timedelta(days=1))
    assert stats.total_calls == 0
    assert stats.calls_by_tool == {}
