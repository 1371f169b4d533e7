"""Tests for worker process wiring."""

from unittest.mock import MagicMock

import pytest

from medsync.config import settings
from medsync.workers.completion_reconciler import CompletionReconciler
from medsync.workers.country_worker import CountryAppointmentWorker
from medsync.workers.runner import WORKER_KINDS, build_consumer


def test_worker_kinds():
    assert WORKER_KINDS == ("pe", "cl", "completion")


@pytest.mark.parametrize(
    ("kind", "queue", "group"),
    [
        ("pe", settings.appointment_pe_queue, "processAppointmentPE"),
        ("cl", settings.appointment_cl_queue, "processAppointmentCL"),
        ("completion", settings.completion_queue, "processCompletion"),
    ],
)
def test_build_consumer_binds_queue(kind, queue, group):
    """Each worker consumes its own queue with its own group."""
    consumer = build_consumer(kind, settings, MagicMock())

    assert consumer.config.queue == queue
    assert consumer.config.group_name == group
    assert consumer.config.dlq_queue == f"{queue}:dlq"
    assert consumer.config.max_receive_count == settings.max_receive_count


def test_build_consumer_handlers():
    """Country consumers run the enrichment worker; completion runs the reconciler."""
    pe = build_consumer("pe", settings, MagicMock())
    completion = build_consumer("completion", settings, MagicMock())

    assert isinstance(pe.handler.__self__, CountryAppointmentWorker)
    assert pe.handler.__self__.country == "PE"
    assert isinstance(completion.handler.__self__, CompletionReconciler)


def test_build_consumer_unknown_kind():
    with pytest.raises(ValueError, match="Unknown worker"):
        build_consumer("ar", settings, MagicMock())
