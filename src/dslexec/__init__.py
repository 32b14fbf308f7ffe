from .arity import (
    BOUND_METHOD,
    LENIENT_CLOSURE,
    STRICT_CLOSURE,
    CallableDescriptor,
    LenientCallable,
    accepts_call,
    check_arity,
    describe_callable,
    is_compatible,
    lenient,
)
from .code import Script
from .common import NOT_FOUND, UNBOUNDED
from .core import Engine, RunResult, default_engine, eval_file, evaluate, execute, load_file
from .errors import (
    ArityMismatchError,
    ConfigurationError,
    DSLError,
    EvaluationFailure,
    UnresolvedIdentifierError,
    UnresolvedMethodError,
)
from .helpers import reopen
from .registry import LOAD_REGISTRY, LoadRegistry, is_loaded, loaded_paths
from .resolvers import AttributeResolver, MappingResolver, Resolver, as_resolver
from .scopes import ForwardedCall, active_namespaces, current_scope, enter, scoped_namespaces

__all__ = [
    "ArityMismatchError",
    "AttributeResolver",
    "BOUND_METHOD",
    "CallableDescriptor",
    "ConfigurationError",
    "DSLError",
    "Engine",
    "EvaluationFailure",
    "ForwardedCall",
    "LENIENT_CLOSURE",
    "LOAD_REGISTRY",
    "LenientCallable",
    "LoadRegistry",
    "MappingResolver",
    "NOT_FOUND",
    "Resolver",
    "RunResult",
    "STRICT_CLOSURE",
    "Script",
    "UNBOUNDED",
    "UnresolvedIdentifierError",
    "UnresolvedMethodError",
    "accepts_call",
    "active_namespaces",
    "as_resolver",
    "check_arity",
    "current_scope",
    "default_engine",
    "describe_callable",
    "enter",
    "eval_file",
    "evaluate",
    "execute",
    "is_compatible",
    "is_loaded",
    "lenient",
    "load_file",
    "loaded_paths",
    "reopen",
    "scoped_namespaces",
]
