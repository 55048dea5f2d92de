#!/usr/bin/env python3

import pytest

from rackspace_cpi.utils.steps import describe_call, run_step


class DummyLogger:
    """Simple logger spy for step tests."""

    def __init__(self) -> None:
        """Initialize call stores."""
        self.info_calls: list[str] = []
        self.exception_calls: list[str] = []

    def info(self, message: str, *args) -> None:
        """Store info log message."""
        self.info_calls.append(message % args)

    def exception(self, message: str, *args) -> None:
        """Store exception log message."""
        self.exception_calls.append(message % args)


def test_run_step_success() -> None:
    """`run_step` should return function result and log success."""
    logger = DummyLogger()
    result = run_step(logger, "sum", lambda left, right: left + right, 1, 2)

    assert result == 3
    assert logger.info_calls[0] == "[sum] -> started"
    assert logger.info_calls[1].startswith("[sum] <- ok cost=")


def test_run_step_failure_reraises_original_exception() -> None:
    """`run_step` should log failure and re-raise original error."""
    logger = DummyLogger()

    def _raise_error() -> None:
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        run_step(logger, "explode", _raise_error)

    assert len(logger.exception_calls) == 1
    assert "failed cost=" in logger.exception_calls[0]
    assert logger.exception_calls[0].endswith("error=ValueError")


def test_describe_call_elides_structured_arguments() -> None:
    """Only leading scalar arguments are rendered."""
    assert describe_call("attach_disk", "srv-1", "vol-1") == "attach_disk(srv-1, vol-1)"
    assert describe_call("create_vm", "agent-1", "img-1", {"public_key": "x"}, {}) == "create_vm(agent-1, img-1, ...)"
    assert describe_call("validate_deployment") == "validate_deployment()"
