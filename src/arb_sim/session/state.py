"""Tagged session state and its transition rules."""

from __future__ import annotations

from dataclasses import dataclass

from arb_sim.types import SessionMode


class InvalidTransitionError(Exception):
    """Raised when a command is not allowed in the current mode."""


@dataclass(frozen=True, slots=True)
class SessionState:
    """Which activity owns the schedule.

    ``resume_mode`` is set only while a backtest runs and records the mode to
    return to, so the autonomous flag survives a replay unchanged.
    """

    mode: SessionMode = SessionMode.PASSIVE
    resume_mode: SessionMode | None = None

    def __post_init__(self) -> None:
        if self.mode is SessionMode.BACKTEST:
            if self.resume_mode not in (SessionMode.PASSIVE, SessionMode.AUTONOMOUS):
                raise InvalidTransitionError("backtest_requires_resume_mode")
        elif self.resume_mode is not None:
            raise InvalidTransitionError("resume_mode_only_valid_during_backtest")

    @property
    def autonomous_enabled(self) -> bool:
        return SessionMode.AUTONOMOUS in (self.mode, self.resume_mode)

    @property
    def backtest_running(self) -> bool:
        return self.mode is SessionMode.BACKTEST

    @property
    def allows_manual_execution(self) -> bool:
        return self.mode is SessionMode.PASSIVE

    def with_autonomous(self, enabled: bool) -> SessionState:
        target = SessionMode.AUTONOMOUS if enabled else SessionMode.PASSIVE
        if self.backtest_running:
            return SessionState(mode=SessionMode.BACKTEST, resume_mode=target)
        return SessionState(mode=target)

    def begin_backtest(self) -> SessionState:
        if self.backtest_running:
            raise InvalidTransitionError("backtest_already_running")
        return SessionState(mode=SessionMode.BACKTEST, resume_mode=self.mode)

    def end_backtest(self) -> SessionState:
        if not self.backtest_running or self.resume_mode is None:
            raise InvalidTransitionError("no_backtest_running")
        return SessionState(mode=self.resume_mode)
