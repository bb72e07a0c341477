"""Interpolant - execution-time ``${...}`` text interpolation.

Templates are compiled once per (template, locals signature, context name) and
rendered with per-call locals. Named partials can be invoked from templates,
validated against a locals schema and injected around matching artifacts.
"""

from interpolant._version import __version__
from interpolant.capture import (
    CaptureFactory,
    Captured,
    MemoryCapture,
    RelFsPathCapture,
    SyncCaptureFactory,
    capture_factory,
    capture_factory_sync,
    gitignorable_on_capture,
    parse_capture_spec,
    typical_on_capture,
)
from interpolant.config import EngineConfig, load_config
from interpolant.engine import (
    InterpolationEngine,
    InterpolationResult,
    Interpolator,
    RecursionFrame,
    RestrictedInterpolationEngine,
)
from interpolant.exceptions import (
    CaptureIOError,
    CompileError,
    ConfigError,
    ExpressionError,
    InterpolantError,
    PartialAlreadyExistsError,
    PartialDefinitionError,
    SchemaSpecError,
)
from interpolant.partials import (
    PartialCollection,
    PartialFragment,
    RenderResult,
    define_partial,
    load_partials,
    partial_from_directive,
)
from interpolant.template import (
    RestrictedTemplateCompiler,
    TemplateCallable,
    TrustedTemplateCompiler,
)
from interpolant.text import ensure_trailing_newline, safe_json_stringify

__all__ = [
    "__version__",
    # engines
    "InterpolationEngine",
    "InterpolationResult",
    "Interpolator",
    "RecursionFrame",
    "RestrictedInterpolationEngine",
    "TrustedTemplateCompiler",
    "RestrictedTemplateCompiler",
    "TemplateCallable",
    # partials
    "PartialCollection",
    "PartialFragment",
    "RenderResult",
    "define_partial",
    "load_partials",
    "partial_from_directive",
    # capture
    "CaptureFactory",
    "Captured",
    "MemoryCapture",
    "RelFsPathCapture",
    "SyncCaptureFactory",
    "capture_factory",
    "capture_factory_sync",
    "gitignorable_on_capture",
    "parse_capture_spec",
    "typical_on_capture",
    # config
    "EngineConfig",
    "load_config",
    # errors
    "InterpolantError",
    "CompileError",
    "ExpressionError",
    "PartialDefinitionError",
    "PartialAlreadyExistsError",
    "SchemaSpecError",
    "CaptureIOError",
    "ConfigError",
    # text
    "ensure_trailing_newline",
    "safe_json_stringify",
]
