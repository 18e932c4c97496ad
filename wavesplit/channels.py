"""
wavesplit.channels - Channel label parsing and stereo pair detection.

Turns the raw per-channel label list into a ChannelPlan: one entry per
output file, either a confirmed stereo pair or a single mono channel.

Pairs are inferred from naming: a label ending in "l"/"r" (after
normalization) is a side of the pair named by the rest of the label with
trailing separators trimmed. "OH (L)" and "OH (R)" become "oh-stereo.wav";
an orphaned "Tom L" becomes "tom-l.wav".
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from wavesplit.exceptions import ConfigError

logger = logging.getLogger(__name__)

UNUSED_MARKER = "(unused)"
STEREO_SEPARATORS = "-_. "
UNSAFE_NAME_CHARS = ("/", "\\", "\x00")


class ChannelDescriptor(BaseModel):
    """A labelled source channel."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    name: str


class StereoEntry(BaseModel):
    """Confirmed stereo pair written as one 2-channel file."""

    model_config = ConfigDict(frozen=True)

    name: str
    left: int = Field(ge=0)
    right: int = Field(ge=0)

    @property
    def channels(self) -> int:
        return 2

    @property
    def indices(self) -> tuple[int, ...]:
        return (self.left, self.right)

    @property
    def filename(self) -> str:
        return f"{self.name}-stereo.wav"


class MonoEntry(BaseModel):
    """Single source channel written as one 1-channel file."""

    model_config = ConfigDict(frozen=True)

    name: str
    index: int = Field(ge=0)

    @property
    def channels(self) -> int:
        return 1

    @property
    def indices(self) -> tuple[int, ...]:
        return (self.index,)

    @property
    def filename(self) -> str:
        return f"{self.name}.wav"


PlanEntry = StereoEntry | MonoEntry


class ChannelPlan(BaseModel):
    """Final partition of the labelled channels into output files."""

    model_config = ConfigDict(frozen=True)

    entries: tuple[PlanEntry, ...] = ()
    overwritten: tuple[int, ...] = ()

    @property
    def stereo(self) -> list[StereoEntry]:
        return [e for e in self.entries if isinstance(e, StereoEntry)]

    @property
    def mono(self) -> list[MonoEntry]:
        return [e for e in self.entries if isinstance(e, MonoEntry)]

    @property
    def channel_indices(self) -> list[int]:
        """All source channel indices referenced by the plan."""
        return sorted(i for entry in self.entries for i in entry.indices)

    def output_files(self, output_dir: Path) -> list[Path]:
        return [output_dir / entry.filename for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)


class StereoGroup:
    """Accumulator for the two sides of a prospective stereo pair."""

    def __init__(self, base_name: str) -> None:
        self.base_name = base_name
        self.left: int | None = None
        self.right: int | None = None

    @property
    def confirmed(self) -> bool:
        return self.left is not None and self.right is not None


def is_unused_label(raw: str) -> bool:
    return UNUSED_MARKER in raw.lower()


def normalize_label(raw: str) -> str:
    """Lower-case a label, drop parentheses and turn spaces into hyphens."""
    return raw.lower().replace("(", "").replace(")", "").replace(" ", "-")


def stereo_base_name(name: str) -> str:
    """Strip the trailing side letter and any separators before it."""
    if len(name) < 2:
        return name
    return name[:-1].rstrip(STEREO_SEPARATORS)


def build_channel_descriptors(
    labels: Sequence[str],
    channel_count: int | None = None,
) -> list[ChannelDescriptor]:
    """Build indexed descriptors from raw labels, dropping "(unused)" channels.

    Label position is the source channel index. When ``channel_count`` is
    given, labels past the last source channel are rejected, while source
    channels past the last label are ignored with a warning.

    Args:
        labels: Raw label strings in source channel order
        channel_count: Number of channels in the source stream, if known

    Returns:
        Descriptors in index order

    Raises:
        ConfigError: If labels is empty or names channels the source lacks
    """
    if not labels:
        raise ConfigError("Channel label list is empty")

    if channel_count is not None:
        if len(labels) > channel_count:
            raise ConfigError(
                f"{len(labels)} labels given but the source has only "
                f"{channel_count} channel(s); first unmatched label: "
                f"{labels[channel_count]!r}"
            )
        if len(labels) < channel_count:
            ignored = list(range(len(labels), channel_count))
            logger.warning(
                "Source has %d channels but only %d labels; ignoring channel(s) %s",
                channel_count,
                len(labels),
                ignored,
            )

    descriptors = []
    for index, raw in enumerate(labels):
        if is_unused_label(raw):
            logger.debug("Channel %d marked unused: %r", index, raw)
            continue
        descriptors.append(ChannelDescriptor(index=index, name=normalize_label(raw)))
    return descriptors


def _collect_groups(
    descriptors: Sequence[ChannelDescriptor],
) -> tuple[dict[str, StereoGroup], list[ChannelDescriptor], list[int]]:
    """First pass: sort descriptors into side groups and plain mono channels."""
    groups: dict[str, StereoGroup] = {}
    mono: list[ChannelDescriptor] = []
    overwritten: list[int] = []

    for ch in descriptors:
        name = ch.name
        side = name[-1].lower() if name else ""
        if side not in ("l", "r"):
            mono.append(ch)
            continue

        base = stereo_base_name(name)
        group = groups.setdefault(base.lower(), StereoGroup(base))
        previous = group.left if side == "l" else group.right
        if previous is not None:
            logger.warning(
                "Channels %d and %d both map to %s side of %r; keeping channel %d",
                previous,
                ch.index,
                "left" if side == "l" else "right",
                group.base_name,
                ch.index,
            )
            overwritten.append(previous)
        if side == "l":
            group.left = ch.index
        else:
            group.right = ch.index

    return groups, mono, overwritten


def detect_channel_groups(descriptors: Sequence[ChannelDescriptor]) -> ChannelPlan:
    """Group descriptors into confirmed stereo pairs and mono channels.

    Stereo entries come first in first-seen order, then mono entries in
    source index order. Unconfirmed groups fall back to mono entries named
    ``<base>-l`` / ``<base>-r``.

    Raises:
        ConfigError: If two entries would write the same output file,
            or a name contains a path separator or NUL
    """
    groups, mono, overwritten = _collect_groups(descriptors)

    stereo_entries: list[StereoEntry] = []
    mono_entries: list[MonoEntry] = [MonoEntry(name=ch.name, index=ch.index) for ch in mono]

    for group in groups.values():
        if group.confirmed:
            stereo_entries.append(
                StereoEntry(name=group.base_name, left=group.left, right=group.right)
            )
            logger.debug(
                "Stereo pair %r: left=%d right=%d", group.base_name, group.left, group.right
            )
            continue
        if group.left is not None:
            mono_entries.append(MonoEntry(name=f"{group.base_name}-l", index=group.left))
        if group.right is not None:
            mono_entries.append(MonoEntry(name=f"{group.base_name}-r", index=group.right))
        logger.debug("No partner for %r; writing as mono", group.base_name)

    mono_entries.sort(key=lambda e: e.index)
    entries: tuple[PlanEntry, ...] = (*stereo_entries, *mono_entries)

    seen: dict[str, PlanEntry] = {}
    for entry in entries:
        if any(c in entry.name for c in UNSAFE_NAME_CHARS):
            raise ConfigError(
                f"Channels {list(entry.indices)} would be written to {entry.filename!r}, "
                "which is not a plain file name"
            )
        key = entry.filename.lower()
        if key in seen:
            raise ConfigError(
                f"Channels {list(seen[key].indices)} and {list(entry.indices)} "
                f"would both be written to {entry.filename}"
            )
        seen[key] = entry

    return ChannelPlan(entries=entries, overwritten=tuple(overwritten))


def build_channel_plan(labels: Sequence[str], channel_count: int | None = None) -> ChannelPlan:
    """Build the channel plan for a label list."""
    descriptors = build_channel_descriptors(labels, channel_count)
    plan = detect_channel_groups(descriptors)
    if not plan.entries:
        raise ConfigError("Every channel is marked (unused); nothing to extract")
    logger.info(
        "Channel plan: %d stereo pair(s), %d mono channel(s)",
        len(plan.stereo),
        len(plan.mono),
    )
    return plan
