# SPDX-License-Identifier: LGPL-3.0-or-later
# vc2vc/core/exceptions.py
"""
Error types.

Every project error carries an exit code, a one-line message, the underlying
cause and a context dict. Context is what makes a failure debuggable
("which host, which step"), and it is also where credentials tend to leak, so
anything rendered for humans or serialized goes through redact_context().

  Vc2VcError
    Fatal                user-facing stop (bad config, missing backup)
    VMwareError          a vSphere call failed
    PreconditionError    a gate said no before anything was changed
    PhaseError           a required migration/restore step failed
    CaptureError         the host could not be captured at all
    SnapshotFormatError  a snapshot file is unreadable or malformed
    StateTransitionError the migration state machine refused a move
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

REDACTED = "***REDACTED***"

# substrings of context keys whose values are never shown
_SECRET_MARKERS = ("pass", "secret", "token", "apikey", "api_key", "cookie", "session", "bearer", "private", "thumbprint")


def _one_line(s: Any, limit: int = 600) -> str:
    text = " ".join(str(s or "").split())
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _exit_code(raw: Any) -> int:
    try:
        code = int(raw)
    except (TypeError, ValueError):
        return 1
    if code < 0:
        return 1
    return min(code, 255)


def _is_secret(key: str) -> bool:
    k = key.lower()
    return any(m in k for m in _SECRET_MARKERS)


def redact_context(ctx: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {k: (REDACTED if _is_secret(str(k)) else v) for k, v in (ctx or {}).items()}


def _compact(ctx: Dict[str, Any]) -> str:
    safe = redact_context(ctx)
    return ", ".join(f"{k}=<redacted>" if safe[k] == REDACTED else f"{k}={safe[k]!r}" for k in sorted(safe))


@dataclass(eq=False)
class Vc2VcError(Exception):
    code: int = 1
    msg: str = "error"
    cause: Optional[BaseException] = None
    context: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        self.code = _exit_code(self.code)
        self.msg = _one_line(self.msg) or type(self).__name__
        self.context = dict(self.context or {})
        super().__init__(self.msg)
        self.args = (self.msg,)

    def with_context(self, **ctx: Any) -> "Vc2VcError":
        """Add context in place (e.g. the migration state at failure time); returns self."""
        if self.context is None:
            self.context = {}
        self.context.update(ctx)
        return self

    def user_message(self, *, include_context: bool = False, include_cause: bool = False) -> str:
        out = self.msg
        if include_context and self.context:
            out += f" [{_one_line(_compact(self.context))}]"
        if include_cause and self.cause is not None:
            out += f" (cause: {type(self.cause).__name__}: {_one_line(self.cause)})"
        return out

    def __str__(self) -> str:
        return self.msg

    def to_dict(self, *, include_cause: bool = False) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "type": type(self).__name__,
            "code": self.code,
            "message": self.msg,
            "context": redact_context(self.context),
        }
        if include_cause and self.cause is not None:
            d["cause"] = {"type": type(self.cause).__name__, "message": _one_line(self.cause)}
        return d


class Fatal(Vc2VcError):
    """Stop the run; main() exits with .code."""


class VMwareError(Vc2VcError):
    """A pyVmomi call, task or session against vCenter/ESXi failed."""


class PreconditionError(Vc2VcError):
    """
    A gate refused to proceed (maintenance mode, lockdown unreadable, backup
    path unwritable). Raised before any mutation; never needs rollback.
    """


class PhaseError(Vc2VcError):
    """A required step (connect, disconnect, register, restore) failed."""


class CaptureError(Vc2VcError):
    pass


class SnapshotFormatError(Vc2VcError):
    pass


class StateTransitionError(Vc2VcError):
    pass


def wrap_vmware(msg: str, exc: Optional[BaseException] = None, code: int = 50, **context: Any) -> VMwareError:
    return VMwareError(code=code, msg=msg, cause=exc, context=context or None)


def format_exception_for_cli(e: BaseException, *, verbose: int = 0) -> str:
    """
    One line for the terminal: the message, plus redacted context from -v and
    the cause from -vv.
    """
    if isinstance(e, Vc2VcError):
        return e.user_message(include_context=verbose >= 1, include_cause=verbose >= 2)
    if verbose >= 2:
        return f"{type(e).__name__}: {_one_line(e)}"
    return _one_line(e) or type(e).__name__
