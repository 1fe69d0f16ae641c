from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol, Sequence

import click

from ..errors import Cancelled
from .diff import FileDiff, format_diff


class Decision(Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    AI_REWRITE = "update"


@dataclass(frozen=True)
class FileReview:
    block: str
    from_label: str
    to_label: str
    diff: FileDiff
    local_exists: bool
    candidate: str


class DecisionProvider(Protocol):
    def decide(self, review: FileReview) -> Decision: ...

    def confirm_install(
        self, dependencies: Sequence[str], dev_dependencies: Sequence[str]
    ) -> bool: ...

    def notify(self, message: str) -> None: ...


_CHOICES = {
    "accept": Decision.ACCEPT,
    "a": Decision.ACCEPT,
    "reject": Decision.REJECT,
    "r": Decision.REJECT,
    "update": Decision.AI_REWRITE,
    "ai": Decision.AI_REWRITE,
    "u": Decision.AI_REWRITE,
}


class TerminalDecisionProvider:
    """Show each diff in the terminal and ask what to do with it."""

    def __init__(
        self,
        *,
        expand: bool = False,
        max_unchanged: int = 3,
        allow_ai: bool = True,
        echo: Callable[..., None] = click.echo,
    ):
        self.expand = expand
        self.max_unchanged = max_unchanged
        self.allow_ai = allow_ai
        self.echo = echo

    def decide(self, review: FileReview) -> Decision:
        self.echo(
            format_diff(
                review.diff,
                from_label=review.from_label,
                to_label=review.to_label,
                max_unchanged=self.max_unchanged,
                expand=self.expand,
            )
        )
        choices = ["accept", "reject"] + (["update"] if self.allow_ai else [])
        try:
            answer = click.prompt(
                "Accept changes? (update = rewrite with AI)"
                if self.allow_ai
                else "Accept changes?",
                type=click.Choice(choices, case_sensitive=False),
                default="accept",
            )
        except click.Abort as exc:
            raise Cancelled() from exc
        return _CHOICES[answer.lower()]

    def confirm_install(
        self, dependencies: Sequence[str], dev_dependencies: Sequence[str]
    ) -> bool:
        packages = ", ".join([*dependencies, *dev_dependencies])
        try:
            return click.confirm(
                f"Would you like to install dependencies? ({packages})", default=True
            )
        except click.Abort as exc:
            raise Cancelled() from exc

    def notify(self, message: str) -> None:
        self.echo(message, err=True)


class AutoDecisionProvider:
    """Fixed answers for non-interactive runs (``--yes`` and ``--no``)."""

    def __init__(
        self,
        decision: Decision,
        *,
        install: bool = False,
        show_diff: bool = False,
        expand: bool = False,
        max_unchanged: int = 3,
        echo: Callable[..., None] = click.echo,
    ):
        if decision is Decision.AI_REWRITE:
            raise ValueError("AutoDecisionProvider cannot request AI rewrites")
        self.decision = decision
        self.install = install
        self.show_diff = show_diff
        self.expand = expand
        self.max_unchanged = max_unchanged
        self.echo = echo

    def decide(self, review: FileReview) -> Decision:
        if self.show_diff:
            self.echo(
                format_diff(
                    review.diff,
                    from_label=review.from_label,
                    to_label=review.to_label,
                    max_unchanged=self.max_unchanged,
                    expand=self.expand,
                )
            )
        return self.decision

    def confirm_install(
        self, dependencies: Sequence[str], dev_dependencies: Sequence[str]
    ) -> bool:
        return self.install

    def notify(self, message: str) -> None:
        self.echo(message, err=True)
