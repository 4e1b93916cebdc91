"""
Looks for lambdas that could be written as method references.

A non-capturing lambda such as ``s -> s.length()`` is compiled to a private
static synthetic method plus an invokedynamic call site bootstrapped through
LambdaMetafactory. When the synthetic body only loads its first argument,
calls a zero-argument method on it and returns the result, a method
reference (``String::length``) says the same thing without the extra hop.

The analysis of one class runs as three phases:

1. classify: collect invokedynamic sites whose bootstrap handle targets a
   same-class, non-void, invokestatic method;
2. verify: re-scan each referenced synthetic method and keep the keys whose
   body matches the trivial forwarding shape;
3. report: emit one diagnostic per call site whose key was confirmed.
"""

import logging

from .bootstrap import BootstrapMethods, MalformedAttributeError
from .bytereader import DecodeError
from .classfile import ClassFileVersion
from .classifier import CallSite, LambdaKey, classify_call_sites
from .classreader import ClassInfo
from .report import BugInstance, BugReporter, BugType, Priority
from .verifier import confirm_candidates


logger = logging.getLogger(__name__)


class FunctionalInterfaceIssues:
    """Detector reporting FII_USE_METHOD_HANDLE."""

    BUG_TYPE = BugType.FII_USE_METHOD_HANDLE

    def __init__(self, reporter: BugReporter,
                 min_major_version: int = ClassFileVersion.JAVA_8[0]):
        self.reporter = reporter
        self.min_major_version = min_major_version

    def visit_class(self, info: ClassInfo) -> int:
        """Analyze one class and return the number of diagnostics reported."""
        if info.major_version < self.min_major_version:
            logger.debug("Skipping %s: class file version %d", info.dotted_name, info.major_version)
            return 0
        data = info.get_attribute(BootstrapMethods.ATTRIBUTE_NAME)
        if data is None:
            return 0

        try:
            call_sites = classify_call_sites(info, BootstrapMethods(data))
        except MalformedAttributeError as e:
            logger.warning("Skipping %s: malformed %s attribute: %s",
                           info.dotted_name, BootstrapMethods.ATTRIBUTE_NAME, e)
            return 0
        except DecodeError as e:
            logger.warning("Skipping %s: undecodable bytecode: %s", info.dotted_name, e)
            return 0

        if not call_sites:
            return 0
        confirmed = confirm_candidates(info, call_sites)
        return self._report(info, call_sites, confirmed)

    def _report(self, info: ClassInfo, call_sites: tuple[CallSite, ...],
                confirmed: frozenset[LambdaKey]) -> int:
        # Grouped by target in first-seen order, then by call site order
        by_target: dict[LambdaKey, list[CallSite]] = {}
        for site in call_sites:
            if site.target in confirmed:
                by_target.setdefault(site.target, []).append(site)

        count = 0
        for sites in by_target.values():
            for site in sites:
                self.reporter.report_bug(BugInstance(
                    bug_type=self.BUG_TYPE,
                    priority=Priority.NORMAL,
                    class_name=info.name,
                    method_name=site.method.name,
                    method_descriptor=site.method.descriptor,
                    pc=site.pc,
                    line=site.line,
                    source_file=info.source_file,
                    target=site.target.name,
                ))
                count += 1
        return count
