"""Template compilers - turn ``${...}`` template text into renderers."""

from interpolant.template.compiler import (
    CompiledTemplate,
    TemplateCallable,
    TemplateCompiler,
    assert_valid_identifier,
)
from interpolant.template.expressions import TrustedTemplateCompiler
from interpolant.template.restricted import RestrictedTemplateCompiler
from interpolant.template.scanner import Segment, split_template

__all__ = [
    "CompiledTemplate",
    "TemplateCallable",
    "TemplateCompiler",
    "TrustedTemplateCompiler",
    "RestrictedTemplateCompiler",
    "Segment",
    "split_template",
    "assert_valid_identifier",
]
