"""
Runs the detector over every class on a classpath.

Classes are independent units of work; with more than one worker they are
analyzed in a process pool and the results are put back in classpath order.
"""

import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field

from .bytereader import DecodeError
from .classreader import ClassPath, ClassReader
from .config import AnalysisConfig
from .detector import FunctionalInterfaceIssues
from .report import BugInstance, CollectingBugReporter


logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Outcome of a run."""
    classes: int = 0
    skipped: int = 0
    bugs: list[BugInstance] = field(default_factory=list)


def analyze_class_bytes(origin: str, data: bytes, min_major_version: int) -> tuple[bool, list[BugInstance]]:
    """Analyze one class file; returns (parsed, bugs)."""
    try:
        info = ClassReader(data).read()
    except DecodeError as e:
        logger.warning("Skipping %s: %s", origin, e)
        return False, []
    reporter = CollectingBugReporter()
    FunctionalInterfaceIssues(reporter, min_major_version).visit_class(info)
    return True, reporter.bugs


def analyze_paths(config: AnalysisConfig) -> AnalysisResult:
    """Analyze every class reachable from config.paths."""
    with ClassPath() as classpath:
        for path in config.paths:
            classpath.add_path(path)
        sources = list(classpath.iter_classes())

    outcomes: list[tuple[bool, list[BugInstance]]] = [None] * len(sources)
    workers = config.worker_count
    if workers == 1 or len(sources) <= 1:
        for i, (origin, data) in enumerate(sources):
            outcomes[i] = analyze_class_bytes(origin, data, config.min_major_version)
    else:
        logger.debug("Analyzing %d classes with %d workers", len(sources), workers)
        with ProcessPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(analyze_class_bytes, origin, data, config.min_major_version): i
                for i, (origin, data) in enumerate(sources)
            }
            for future in as_completed(futures):
                outcomes[futures[future]] = future.result()

    result = AnalysisResult()
    for parsed, bugs in outcomes:
        if parsed:
            result.classes += 1
        else:
            result.skipped += 1
        result.bugs.extend(bugs)
    return result
