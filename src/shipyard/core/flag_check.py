"""Detection of flags written after positional arguments.

Flag parsing stops at the first positional argument, so
``shipyard status myproj -label x=y`` silently treats ``-label`` as a
positional value.  The check below only looks for *recognized* flag
names to avoid false positives on hyphen-prefixed positional values.
It cannot fix the ordering automatically because intent is ambiguous.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from shipyard.exceptions import FlagOrderError

ARGS_SEPARATOR: str = "--"

FLAG_ORDER_MESSAGE: str = (
    "Flags must be specified before positional arguments in the CLI command."
)
FLAG_ORDER_HINT: str = (
    'For example "shipyard status -label a=b project" not '
    '"shipyard status project -label a=b".\n'
    "Reorder your arguments and try again, or place intentional "
    'hyphen-prefixed values after "--".'
)


def flag_candidates(args: Sequence[str]) -> set[str]:
    """Return bare flag names that appear in *args* before ``--``."""
    names: set[str] = set()
    for arg in args:
        if arg == ARGS_SEPARATOR:
            break
        if len(arg) < 2 or not arg.startswith("-"):
            continue

        token = arg[2:] if arg.startswith("--") else arg[1:]
        # Three or more hyphens is never a flag.
        if not token or token.startswith("-"):
            continue

        names.add(token.split("=", 1)[0])
    return names


def check_flags_after_args(args: Sequence[str], known_flags: Iterable[str]) -> None:
    """Raise :class:`FlagOrderError` if a known flag follows a positional arg."""
    if not args:
        return

    misplaced = flag_candidates(args) & set(known_flags)
    if misplaced:
        raise FlagOrderError(
            f"{FLAG_ORDER_MESSAGE} Misplaced: "
            + ", ".join(f"-{name}" for name in sorted(misplaced)),
            hint=FLAG_ORDER_HINT,
        )


def positional_args(args: Sequence[str], known_flags: Iterable[str]) -> tuple[str, ...]:
    """Return the positional arguments of a command after the placement check.

    A leading ``--`` is dropped and everything after it is taken as a
    value, so ``shipyard context show -- -label`` passes ``-label`` through
    unchecked.  Otherwise :func:`check_flags_after_args` runs on *args*.
    """
    if args and args[0] == ARGS_SEPARATOR:
        return tuple(args[1:])
    check_flags_after_args(args, known_flags)
    return tuple(args)
