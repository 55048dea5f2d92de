"""Resource state polling with exponential backoff."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import time
from typing import Callable, Iterable, Protocol

from rackspace_cpi.errors import ResourceNotFoundError, StateError, TimeoutError
from rackspace_cpi.retry import RetryingCaller

DEFAULT_MAX_TRIES = 50
MAX_SLEEP_EXPONENT = 5
ERROR_STATES = frozenset({"error", "error_deleting"})


class Waitable(Protocol):
    """Capability the wait loop depends on."""

    kind: str

    @property
    def identity(self) -> str: ...

    def refresh(self, state_attr: str = "state") -> tuple[str | None, bool]: ...


def no_checkpoint() -> None:
    return None


@dataclass(frozen=True)
class WaitSpec:
    """Options for a single wait.

    Attributes:
        target_states: States that end the wait successfully.
        state_attr: Resource attribute holding the state.
        allow_notfound: Treat a vanished resource as success.
        max_tries: Total poll attempts before timing out.
        description: Override for the resource description in errors.
    """

    target_states: tuple[str, ...]
    state_attr: str = "state"
    allow_notfound: bool = False
    max_tries: int = DEFAULT_MAX_TRIES
    description: str | None = None

    @classmethod
    def build(cls, target_states: str | Iterable[str], **kwargs) -> "WaitSpec":
        if isinstance(target_states, str):
            target_states = (target_states,)
        states = tuple(str(state).lower() for state in target_states)
        return cls(target_states=states, **kwargs)


def backoff_seconds(num_tries: int) -> int:
    """Return the sleep before poll ``num_tries + 1``: 2, 4, 8, 16, 32, 32..."""
    return 2 ** min(num_tries, MAX_SLEEP_EXPONENT)


@dataclass
class ResourceWaitManager:
    """Poll resources until they reach a target state.

    Attributes:
        caller: Caller used for every refresh.
        checkpoint: Cooperative cancellation hook, invoked on every poll.
        max_tries: Default attempt budget for waits that do not set one.
    """

    caller: RetryingCaller
    checkpoint: Callable[[], None] = no_checkpoint
    max_tries: int = DEFAULT_MAX_TRIES
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    @staticmethod
    def describe(resource: Waitable) -> str:
        return f"{resource.kind} '{resource.identity}'"

    def wait_for(
        self,
        resource: Waitable,
        target_states: str | Iterable[str],
        *,
        allow_notfound: bool = False,
        max_tries: int | None = None,
        state_attr: str = "state",
        description: str | None = None,
    ) -> bool:
        """Wait until ``resource`` reaches one of ``target_states``.

        Args:
            resource: Resource to poll.
            target_states: One state or several acceptable states.
            allow_notfound: Succeed when the resource is gone.
            max_tries: Attempt budget, defaults to the manager's.
            state_attr: Resource attribute holding the state.
            description: Override for the resource description.

        Returns:
            bool: True once a target state (or allowed not-found) is observed.

        Raises:
            ResourceNotFoundError: Resource vanished and not-found is not allowed.
            StateError: Resource reported ``error`` or ``error_deleting``.
            TimeoutError: Attempt budget exhausted.
        """
        spec = WaitSpec.build(
            target_states,
            state_attr=state_attr,
            allow_notfound=allow_notfound,
            max_tries=int(max_tries if max_tries is not None else self.max_tries),
            description=description,
        )
        return self.run(resource, spec)

    def run(self, resource: Waitable, spec: WaitSpec) -> bool:
        """Run the polling loop for ``spec``."""
        desc = spec.description or self.describe(resource)
        targets = ", ".join(spec.target_states)
        started_at = time.monotonic()

        def elapsed() -> float:
            return round(time.monotonic() - started_at, 3)

        for num_tries in range(1, spec.max_tries + 1):
            self.checkpoint()

            state, found = self.caller.call(
                f"{resource.kind}_refresh",
                lambda: resource.refresh(spec.state_attr),
            )
            if not found:
                if spec.allow_notfound:
                    self.logger.info("%s is now %s (not found), took %ss", desc, targets, elapsed())
                    return True
                self.logger.error("%s not found", desc)
                raise ResourceNotFoundError(
                    f"{desc} not found",
                    description=desc,
                    target_states=spec.target_states,
                    elapsed_s=elapsed(),
                )

            state = (state or "").lower()
            if state in ERROR_STATES:
                message = f"{desc} state is {state}, expected {targets}, took {elapsed()}s"
                self.logger.error(message)
                raise StateError(message, description=desc, target_states=spec.target_states, elapsed_s=elapsed())

            if state in spec.target_states:
                self.logger.info("%s is now %s, took %ss", desc, targets, elapsed())
                return True

            if num_tries < spec.max_tries:
                sleep_s = backoff_seconds(num_tries)
                self.logger.debug(
                    "Waiting for %s to be %s, retrying in %s seconds (%s/%s)",
                    desc,
                    targets,
                    sleep_s,
                    num_tries,
                    spec.max_tries,
                )
                time.sleep(sleep_s)

        message = f"Timed out waiting for {desc} to be {targets}, took {elapsed()}s"
        self.logger.error(message)
        raise TimeoutError(message, description=desc, target_states=spec.target_states, elapsed_s=elapsed())
