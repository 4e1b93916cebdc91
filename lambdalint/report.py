"""
Diagnostics and the sinks that receive them.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from enum import Enum, IntEnum
from typing import Iterable, Optional


class BugType(str, Enum):
    FII_USE_METHOD_HANDLE = "FII_USE_METHOD_HANDLE"


class Priority(IntEnum):
    HIGH = 1
    NORMAL = 2
    LOW = 3


BUG_MESSAGES = {
    BugType.FII_USE_METHOD_HANDLE:
        "lambda {target} only calls a zero-argument method; use a method reference",
}


@dataclass(frozen=True)
class BugInstance:
    """One diagnostic, anchored at an invokedynamic instruction."""
    bug_type: BugType
    priority: Priority
    class_name: str  # internal name, e.g. "com/example/Foo"
    method_name: str
    method_descriptor: str
    pc: int
    line: Optional[int] = None
    source_file: Optional[str] = None
    target: Optional[str] = None  # synthetic lambda method name

    @property
    def dotted_class_name(self) -> str:
        return self.class_name.replace("/", ".")

    @property
    def message(self) -> str:
        return BUG_MESSAGES[self.bug_type].format(target=self.target)

    def location(self) -> str:
        source = self.source_file or f"{self.class_name}.class"
        if self.line is not None:
            return f"{source}:{self.line}"
        return f"{source}:pc {self.pc}"

    def format(self) -> str:
        return (f"{self.location()}: {self.bug_type.value} "
                f"{self.dotted_class_name}.{self.method_name}{self.method_descriptor}: "
                f"{self.message}")

    def to_dict(self) -> dict:
        result = asdict(self)
        result["bug_type"] = self.bug_type.value
        result["priority"] = self.priority.name
        result["class_name"] = self.dotted_class_name
        return result


class BugReporter(ABC):
    """Sink for diagnostics."""

    @abstractmethod
    def report_bug(self, bug: BugInstance):
        ...


class CollectingBugReporter(BugReporter):
    """Keeps diagnostics in arrival order."""

    def __init__(self):
        self.bugs: list[BugInstance] = []

    def report_bug(self, bug: BugInstance):
        self.bugs.append(bug)


def format_text(bugs: Iterable[BugInstance]) -> str:
    return "\n".join(bug.format() for bug in bugs)


def format_json(bugs: Iterable[BugInstance], indent: int = 2) -> str:
    return json.dumps([bug.to_dict() for bug in bugs], indent=indent)
