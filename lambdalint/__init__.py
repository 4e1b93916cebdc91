"""lambdalint - find lambdas in compiled Java classes that could be method references."""

from .classreader import ClassReader, ClassInfo, read_class_file
from .detector import FunctionalInterfaceIssues
from .report import BugInstance, BugType, CollectingBugReporter

__version__ = "0.1.0"
__all__ = [
    "BugInstance",
    "BugType",
    "ClassInfo",
    "ClassReader",
    "CollectingBugReporter",
    "FunctionalInterfaceIssues",
    "read_class_file",
]
