"""Crossfade filter graph for FFmpeg.

The graph is held as typed steps and only rendered to a ``-filter_complex``
string at the end. For N clips there are N-1 xfade steps chained together:

    [0:v][1:v]xfade=transition=fade:duration=0.5:offset=4.5[v1];
    [v1][2:v]xfade=transition=fade:duration=0.5:offset=9.5[v2]; ...

Each clip is assumed to span ``clip_duration`` seconds, so the offset of
step i (1-based) is ``(i - 1) * D + (D - transition_duration)``.
"""

from dataclasses import dataclass, field
from typing import Optional

DEFAULT_CLIP_DURATION = 5.0
DEFAULT_TRANSITION_DURATION = 0.5
DEFAULT_TRANSITION = "fade"


def _fmt(value: float) -> str:
    """Render a number without trailing zeros (4.5 -> "4.5", 5.0 -> "5")."""
    return f"{value:g}"


@dataclass(frozen=True)
class NormalizeStep:
    """Scale/pad one raw input to the common frame before cross-fading."""

    input_index: int
    output_label: str
    width: int
    height: int
    fps: int

    def render(self) -> str:
        return (
            f"[{self.input_index}:v]"
            f"scale={self.width}:{self.height}:force_original_aspect_ratio=decrease,"
            f"pad={self.width}:{self.height}:(ow-iw)/2:(oh-ih)/2:black,"
            f"setsar=1,fps={self.fps},format=yuv420p"
            f"[{self.output_label}]"
        )


@dataclass(frozen=True)
class XfadeStep:
    """One pairwise transition from the running stream into the next clip."""

    index: int  # 1-based: transition from clip index-1 into clip index
    input_label: str
    clip_label: str
    output_label: str
    offset: float
    duration: float = DEFAULT_TRANSITION_DURATION
    transition: str = DEFAULT_TRANSITION

    def render(self) -> str:
        return (
            f"[{self.input_label}][{self.clip_label}]"
            f"xfade=transition={self.transition}:"
            f"duration={_fmt(self.duration)}:offset={_fmt(self.offset)}"
            f"[{self.output_label}]"
        )


@dataclass(frozen=True)
class CrossfadeGraph:
    """Ordered xfade chain over ``clip_count`` inputs."""

    clip_count: int
    steps: tuple[XfadeStep, ...]
    normalize: tuple[NormalizeStep, ...] = field(default_factory=tuple)
    clip_duration: float = DEFAULT_CLIP_DURATION
    transition_duration: float = DEFAULT_TRANSITION_DURATION

    @classmethod
    def build(
        cls,
        clip_count: int,
        clip_duration: float = DEFAULT_CLIP_DURATION,
        transition_duration: float = DEFAULT_TRANSITION_DURATION,
        transition: str = DEFAULT_TRANSITION,
        frame: Optional[tuple[int, int, int]] = None,
    ) -> "CrossfadeGraph":
        """Build the chain for ``clip_count`` clips.

        Args:
            clip_count: Number of inputs (at least 2)
            clip_duration: Nominal duration of each clip in seconds
            transition_duration: Length of each crossfade in seconds
            transition: FFmpeg xfade transition name
            frame: Optional (width, height, fps); when set every input is
                normalized first and the steps consume ``c{i}`` labels

        Raises:
            ValueError: If fewer than two clips are given
        """
        if clip_count < 2:
            raise ValueError("A crossfade graph needs at least two clips")

        normalize: list[NormalizeStep] = []
        if frame is not None:
            width, height, fps = frame
            normalize = [
                NormalizeStep(i, f"c{i}", width, height, fps) for i in range(clip_count)
            ]
            clip_labels = [step.output_label for step in normalize]
        else:
            clip_labels = [f"{i}:v" for i in range(clip_count)]

        steps: list[XfadeStep] = []
        current = clip_labels[0]
        for i in range(1, clip_count):
            output = f"v{i}"
            steps.append(
                XfadeStep(
                    index=i,
                    input_label=current,
                    clip_label=clip_labels[i],
                    output_label=output,
                    offset=(i - 1) * clip_duration + (clip_duration - transition_duration),
                    duration=transition_duration,
                    transition=transition,
                )
            )
            current = output

        return cls(
            clip_count=clip_count,
            steps=tuple(steps),
            normalize=tuple(normalize),
            clip_duration=clip_duration,
            transition_duration=transition_duration,
        )

    @property
    def output_label(self) -> str:
        return self.steps[-1].output_label

    @property
    def offsets(self) -> list[float]:
        return [step.offset for step in self.steps]

    @property
    def nominal_duration(self) -> float:
        """Expected output length when every clip lasts exactly ``clip_duration``."""
        return self.clip_count * self.clip_duration - len(self.steps) * self.transition_duration

    def render(self) -> str:
        """Render the graph as an FFmpeg ``-filter_complex`` argument."""
        parts = [step.render() for step in self.normalize]
        parts.extend(step.render() for step in self.steps)
        return ";".join(parts)
