"""
Method descriptor parsing using Lark.
"""

from dataclasses import dataclass
from functools import lru_cache

from lark import Lark, Transformer
from lark.exceptions import LarkError

from .constants import ResolutionError


DESCRIPTOR_GRAMMAR = r"""
    method_descriptor: "(" _field_type* ")" _return_type

    _return_type: _field_type | void
    void: "V"

    _field_type: base_type | object_type | array_type
    base_type: BASE_TYPE
    object_type: "L" CLASS_NAME ";"
    array_type: "[" _field_type

    BASE_TYPE: "B" | "C" | "D" | "F" | "I" | "J" | "S" | "Z"
    CLASS_NAME: /[^;\[.]+/
"""


class DescriptorError(ResolutionError):
    """A descriptor string does not follow the JVM descriptor grammar."""
    pass


@dataclass(frozen=True)
class MethodDescriptor:
    """A parsed method descriptor; types are kept in descriptor form."""
    parameters: tuple[str, ...]
    return_type: str

    @property
    def arity(self) -> int:
        return len(self.parameters)

    @property
    def is_void(self) -> bool:
        return self.return_type == "V"

    def __str__(self) -> str:
        return f"({''.join(self.parameters)}){self.return_type}"


class DescriptorTransformer(Transformer):
    """Turns the parse tree back into descriptor strings per type."""

    def method_descriptor(self, items):
        *params, ret = items
        return MethodDescriptor(tuple(params), ret)

    def void(self, items):
        return "V"

    def base_type(self, items):
        return str(items[0])

    def object_type(self, items):
        return f"L{items[0]};"

    def array_type(self, items):
        return "[" + items[0]


_parser = Lark(
    DESCRIPTOR_GRAMMAR,
    start="method_descriptor",
    parser="lalr",
    transformer=DescriptorTransformer(),
)


@lru_cache(maxsize=4096)
def parse_method_descriptor(descriptor: str) -> MethodDescriptor:
    """Parse e.g. '(ILjava/lang/String;)[J'."""
    try:
        return _parser.parse(descriptor)
    except LarkError as e:
        raise DescriptorError(f"Invalid method descriptor {descriptor!r}: {e}") from None
