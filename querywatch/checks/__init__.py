"""Checks subsystem: evaluation, fanout, routing, storage, runner."""

from .coordinator import CheckEvaluator, EvaluationOutcome
from .evaluator import evaluate, resolve_semantics
from .models import CheckKind, CheckRecord, QueryRef, QueryResult, Semantics, State
from .runner import CheckRunner
from .store import CheckStore, PersistenceError
from .validation import CheckValidationError, normalize_emails, prepare_check
