"""External CPI command: one JSON request on stdin, one JSON response on stdout."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict
import uuid

import click

from rackspace_cpi.cloud import Cloud
from rackspace_cpi.errors import CloudError, CpiError, NotSupported, VMCreationFailed
from rackspace_cpi.log.logger import RequestLog
from rackspace_cpi.utils.load_config import load_config_by_file


METHODS: Dict[str, str] = {
    "create_stemcell": "create_stemcell",
    "delete_stemcell": "delete_stemcell",
    "create_vm": "create_vm",
    "delete_vm": "delete_vm",
    "reboot_vm": "reboot_vm",
    "has_vm": "has_vm",
    "has_vm?": "has_vm",
    "set_vm_metadata": "set_vm_metadata",
    "configure_networks": "configure_networks",
    "create_disk": "create_disk",
    "delete_disk": "delete_disk",
    "attach_disk": "attach_disk",
    "detach_disk": "detach_disk",
    "get_disks": "get_disks",
    "snapshot_disk": "snapshot_disk",
    "delete_snapshot": "delete_snapshot",
    "validate_deployment": "validate_deployment",
}

# Error type names understood by the orchestrator.
CLOUD_ERROR = "Bosh::Clouds::CloudError"
VM_CREATION_FAILED = "Bosh::Clouds::VMCreationFailed"
NOT_IMPLEMENTED = "Bosh::Clouds::NotImplemented"
INVALID_CALL = "InvalidCall"


class InvalidCall(CpiError):
    """Request cannot be dispatched."""


def _error_payload(exc: Exception) -> Dict[str, Any]:
    """Convert an exception into the response ``error`` object.

    Args:
        exc: Raised exception.

    Returns:
        dict[str, Any]: ``type``, ``message`` and ``ok_to_retry``.
    """
    if isinstance(exc, VMCreationFailed):
        return {"type": VM_CREATION_FAILED, "message": str(exc), "ok_to_retry": exc.ok_to_retry}
    if isinstance(exc, NotSupported):
        return {"type": NOT_IMPLEMENTED, "message": str(exc), "ok_to_retry": False}
    if isinstance(exc, InvalidCall):
        return {"type": INVALID_CALL, "message": str(exc), "ok_to_retry": False}
    if isinstance(exc, CloudError):
        return {"type": CLOUD_ERROR, "message": str(exc), "ok_to_retry": False}
    return {"type": CLOUD_ERROR, "message": f"{exc.__class__.__name__}: {exc}", "ok_to_retry": False}


def parse_request(raw: str) -> Dict[str, Any]:
    """Parse and check the request envelope.

    Raises:
        InvalidCall: If the payload is not a request object.
    """
    try:
        request = json.loads(raw)
    except ValueError as exc:
        raise InvalidCall("Request is not valid JSON") from exc
    if not isinstance(request, dict) or not isinstance(request.get("method"), str):
        raise InvalidCall("Request must be an object with a 'method'")
    arguments = request.get("arguments", [])
    if not isinstance(arguments, list):
        raise InvalidCall("Request 'arguments' must be an array")
    return request


def dispatch(cloud: Cloud, method: str, arguments: list) -> Any:
    """Invoke ``method`` on the cloud with positional ``arguments``.

    Raises:
        InvalidCall: For unknown methods or wrong arity.
    """
    attr = METHODS.get(method)
    if attr is None:
        raise InvalidCall(f"Method '{method}' is not known")
    fn: Callable[..., Any] = getattr(cloud, attr)
    try:
        return fn(*arguments)
    except TypeError as exc:
        if exc.__traceback__ is not None and exc.__traceback__.tb_next is None:
            raise InvalidCall(f"Arguments are not correct for '{method}': {exc}") from exc
        raise


def handle(
    raw_request: str,
    options: Dict[str, Any],
    cloud_factory: Callable[..., Cloud] | None = None,
) -> Dict[str, Any]:
    """Run one request and build the response.

    Args:
        raw_request: JSON request text.
        options: CPI options.
        cloud_factory: Builds the Cloud from options, ``Cloud`` by default.

    Returns:
        dict[str, Any]: Response with ``result``, ``error`` and ``log``.
    """
    try:
        request = parse_request(raw_request)
    except InvalidCall as exc:
        return {"result": None, "error": _error_payload(exc), "log": ""}

    context = request.get("context") or {}
    request_id = str(context.get("request_id") or uuid.uuid4().hex[:8])
    result: Any = None
    error: Dict[str, Any] | None = None

    with RequestLog(request_id) as request_log:
        try:
            cloud = (cloud_factory or Cloud)(options)
            result = dispatch(cloud, request["method"], request.get("arguments", []))
        except Exception as exc:  # noqa: BLE001
            logging.getLogger(__name__).exception("Request '%s' failed", request["method"])
            error = _error_payload(exc)

    return {"result": result, "error": error, "log": request_log.text()}


@click.command()
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="CPI options file (toml/json)",
)
@click.option(
    "--jsonfile",
    "jsonfile_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="JSON secrets file for 'jsonfile,<key>' placeholders",
)
def main(config_path: str, jsonfile_path: str | None) -> None:
    """Execute one CPI request read from stdin.

    Args:
        config_path: CPI options file.
        jsonfile_path: Optional JSON secrets file.
    """
    raw_request = click.get_text_stream("stdin").read()
    try:
        options = load_config_by_file(config_path, jsonfile=jsonfile_path)
    except CpiError as exc:
        response = {"result": None, "error": _error_payload(exc), "log": ""}
    else:
        response = handle(raw_request, options)
    click.echo(json.dumps(response))


if __name__ == "__main__":
    main()
