"""In-process implementation of the middleware node.

Parameters, publishers and subscriptions live in one Python process. Each
subscription owns a bounded queue; when it is full the oldest message is
dropped, matching a keep-last QoS of the requested depth.
"""

from __future__ import annotations

import copy
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from utils.logger import Logger, LoggerType

from .base import (
    Node,
    Parameter,
    ParameterCallback,
    ParameterType,
    Publisher,
    Result,
)
from .messages import Time


@dataclass(frozen=True)
class ParameterDescriptor:
    name: str
    type: ParameterType
    read_only: bool = False
    description: str = ""


class LocalSubscription:
    """Keep-last message queue attached to one topic."""

    def __init__(
        self,
        msg_type: type,
        topic: str,
        callback: Callable[[Any], None] | None,
        depth: int,
    ) -> None:
        self.msg_type = msg_type
        self.topic = topic
        self.callback = callback
        self.queue: deque = deque(maxlen=depth)
        self.dropped = 0
        self._lock = threading.Lock()

    def _enqueue(self, msg: Any) -> None:
        with self._lock:
            if len(self.queue) == self.queue.maxlen:
                self.dropped += 1
            self.queue.append(msg)

    def take(self) -> Any | None:
        """Pop the oldest pending message, or ``None``."""
        with self._lock:
            return self.queue.popleft() if self.queue else None

    def _drain(self) -> int:
        handled = 0
        while True:
            msg = self.take()
            if msg is None:
                return handled
            if self.callback is not None:
                self.callback(msg)
            handled += 1


class LocalPublisher(Publisher):
    def __init__(self, node: "LocalNode", msg_type: type, topic: str, depth: int) -> None:
        super().__init__(msg_type, topic, depth)
        self._node = node
        self.published = 0

    def publish(self, msg: Any, owned: bool = False) -> None:
        if not isinstance(msg, self.msg_type):
            raise TypeError(
                f"{self.topic} expects {self.msg_type.__name__}, "
                f"got {type(msg).__name__}"
            )
        subs = self._node._subscriptions_for(self.topic)
        for i, sub in enumerate(subs):
            # an owned message goes to the first subscriber as is
            sub._enqueue(msg if owned and i == 0 else copy.deepcopy(msg))
        self.published += 1

    def get_subscription_count(self) -> int:
        return len(self._node._subscriptions_for(self.topic))


class LocalNode(Node):
    """Single-process node with a parameter store and topic fan-out."""

    def __init__(
        self,
        name: str,
        parameter_overrides: dict[str, Any] | None = None,
        use_intra_process_comms: bool = False,
        clock: Callable[[], int] | None = None,
        logger: LoggerType | None = None,
    ) -> None:
        self._name = name
        self._overrides = dict(parameter_overrides or {})
        self._intra_process = use_intra_process_comms
        self._clock = clock or time.time_ns
        self._logger = logger or Logger.get_logger(f"middleware.{name}")
        self._params: dict[str, Any] = {}
        self._descriptors: dict[str, ParameterDescriptor] = {}
        self._callbacks: list[ParameterCallback] = []
        self._publishers: dict[str, list[LocalPublisher]] = {}
        self._subscriptions: dict[str, list[LocalSubscription]] = {}
        self._lock = threading.RLock()
        self._param_lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def use_intra_process_comms(self) -> bool:
        return self._intra_process

    def declare_parameter(
        self, name: str, default: Any, read_only: bool = False, description: str = ""
    ) -> Any:
        with self._lock:
            if name in self._params:
                raise ValueError(f"Parameter {name} is already declared")
            value = self._overrides.get(name, default)
            if isinstance(value, tuple):
                value = list(value)
            self._params[name] = value
            self._descriptors[name] = ParameterDescriptor(
                name, ParameterType.from_value(default), read_only, description
            )
            return value

    def describe_parameter(self, name: str) -> ParameterDescriptor:
        return self._descriptors[name]

    def get_parameter(self, name: str) -> Any:
        with self._lock:
            return self._params[name]

    def set_parameters(self, params: Sequence[Parameter]) -> list[Result]:
        """Apply each parameter independently, like ROS 2 ``set_parameters``.

        Read-only and undeclared parameters are rejected before any
        callback runs; the first failing callback vetoes the change.
        """
        results = []
        # parameter events are serialized but must not hold the topic lock:
        # callbacks may stop the pipeline while a frame callback publishes
        with self._param_lock:
            for param in params:
                with self._lock:
                    descriptor = self._descriptors.get(param.name)
                if descriptor is None:
                    results.append(
                        Result(False, f"Parameter {param.name} is not declared.")
                    )
                    continue
                if descriptor.read_only:
                    results.append(
                        Result(
                            False, f"Trying to set a read-only parameter: {param.name}."
                        )
                    )
                    continue
                result = Result()
                for callback in self._callbacks:
                    result = callback([param])
                    if not result.successful:
                        break
                if result.successful:
                    with self._lock:
                        self._params[param.name] = param.value
                else:
                    self._logger.warning(
                        f"Rejected {param.name}={param.value!r}: {result.reason}"
                    )
                results.append(result)
        return results

    def add_on_set_parameters_callback(self, callback: ParameterCallback) -> None:
        self._callbacks.append(callback)

    def create_publisher(self, msg_type: type, topic: str, depth: int) -> LocalPublisher:
        pub = LocalPublisher(self, msg_type, topic, depth)
        with self._lock:
            self._publishers.setdefault(topic, []).append(pub)
        return pub

    def create_subscription(
        self,
        msg_type: type,
        topic: str,
        callback: Callable[[Any], None] | None = None,
        depth: int = 1,
    ) -> LocalSubscription:
        sub = LocalSubscription(msg_type, topic, callback, depth)
        with self._lock:
            self._subscriptions.setdefault(topic, []).append(sub)
        return sub

    def publishers(self, topic: str) -> list[LocalPublisher]:
        with self._lock:
            return list(self._publishers.get(topic, []))

    def topic_names(self) -> list[str]:
        with self._lock:
            return sorted(self._publishers)

    def _subscriptions_for(self, topic: str) -> list[LocalSubscription]:
        with self._lock:
            return list(self._subscriptions.get(topic, []))

    def now(self) -> Time:
        return Time.from_nanoseconds(self._clock())

    def get_logger(self) -> LoggerType:
        return self._logger

    def spin_once(self, timeout_sec: float = 0.0) -> None:
        """Run subscription callbacks for every pending message."""
        with self._lock:
            subs = [s for topic_subs in self._subscriptions.values() for s in topic_subs]
        handled = sum(sub._drain() for sub in subs)
        if not handled and timeout_sec > 0:
            time.sleep(timeout_sec)

    def destroy(self) -> None:
        with self._lock:
            self._publishers.clear()
            self._subscriptions.clear()
            self._callbacks.clear()
