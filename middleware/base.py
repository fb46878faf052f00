"""Abstract publish/subscribe node used by the camera bridge."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Sequence

from .messages import Time


class ParameterType(Enum):
    NOT_SET = 0
    BOOL = 1
    INTEGER = 2
    DOUBLE = 3
    STRING = 4
    BOOL_ARRAY = 6
    INTEGER_ARRAY = 7
    DOUBLE_ARRAY = 8
    STRING_ARRAY = 9

    @classmethod
    def from_value(cls, value: Any) -> "ParameterType":
        """Infer the parameter type the way ROS 2 does for Python values.

        Empty or mixed arrays and other values map to ``NOT_SET`` so that
        parameter callbacks can reject them with a reason.
        """
        if value is None:
            return cls.NOT_SET
        # bool first: it is a subclass of int
        if isinstance(value, bool):
            return cls.BOOL
        if isinstance(value, int):
            return cls.INTEGER
        if isinstance(value, float):
            return cls.DOUBLE
        if isinstance(value, str):
            return cls.STRING
        if isinstance(value, (list, tuple)) and value:
            if all(isinstance(v, bool) for v in value):
                return cls.BOOL_ARRAY
            if all(isinstance(v, int) and not isinstance(v, bool) for v in value):
                return cls.INTEGER_ARRAY
            if all(isinstance(v, float) for v in value):
                return cls.DOUBLE_ARRAY
            if all(isinstance(v, str) for v in value):
                return cls.STRING_ARRAY
        return cls.NOT_SET


@dataclass(frozen=True)
class Parameter:
    name: str
    value: Any

    @property
    def type(self) -> ParameterType:
        return ParameterType.from_value(self.value)


@dataclass
class Result:
    """Outcome of a parameter change request."""

    successful: bool = True
    reason: str = ""


ParameterCallback = Callable[[Sequence[Parameter]], Result]


class Publisher(ABC):
    """Typed publisher bound to one topic."""

    def __init__(self, msg_type: type, topic: str, depth: int) -> None:
        self.msg_type = msg_type
        self.topic = topic
        self.depth = depth

    @abstractmethod
    def publish(self, msg: Any, owned: bool = False) -> None:
        """Publish ``msg``.

        ``owned=True`` hands the message over: the caller must not touch it
        afterwards and in-process subscribers may receive the same object.
        """


class Node(ABC):
    """Minimal middleware node API the bridge is written against."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def use_intra_process_comms(self) -> bool: ...

    @abstractmethod
    def declare_parameter(
        self, name: str, default: Any, read_only: bool = False, description: str = ""
    ) -> Any:
        """Declare ``name`` and return its effective value."""

    @abstractmethod
    def get_parameter(self, name: str) -> Any: ...

    @abstractmethod
    def set_parameters(self, params: Sequence[Parameter]) -> list[Result]: ...

    @abstractmethod
    def add_on_set_parameters_callback(self, callback: ParameterCallback) -> None: ...

    @abstractmethod
    def create_publisher(self, msg_type: type, topic: str, depth: int) -> Publisher: ...

    @abstractmethod
    def now(self) -> Time: ...

    @abstractmethod
    def get_logger(self) -> Any: ...

    @abstractmethod
    def spin_once(self, timeout_sec: float = 0.0) -> None: ...

    @abstractmethod
    def destroy(self) -> None: ...
