"""
Analysis settings assembled from command-line arguments.
"""

import os
from dataclasses import dataclass

from .classfile import ClassFileVersion


OUTPUT_FORMATS = ("text", "json")


@dataclass(frozen=True)
class AnalysisConfig:
    """Settings for one analyzer run."""
    paths: tuple[str, ...]
    jobs: int = 1
    output_format: str = "text"
    min_major_version: int = ClassFileVersion.JAVA_8[0]
    fail_on_findings: bool = False
    debug: bool = False

    def __post_init__(self):
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(f"Unknown output format: {self.output_format}")
        if self.jobs < 0:
            raise ValueError(f"Number of jobs must not be negative: {self.jobs}")

    @property
    def worker_count(self) -> int:
        """Worker processes to use; 0 means one per CPU."""
        return self.jobs or os.cpu_count() or 4

    @classmethod
    def from_args(cls, args) -> "AnalysisConfig":
        return cls(
            paths=tuple(args.paths),
            jobs=args.jobs,
            output_format=args.format,
            min_major_version=args.min_major,
            fail_on_findings=args.fail_on_findings,
            debug=args.debug,
        )
