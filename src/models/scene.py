"""Scene plan data models."""

from dataclasses import dataclass

DEFAULT_SCENE_DURATION = 5.0


@dataclass(frozen=True)
class Scene:
    """One shot of the output video."""

    description: str
    search_keywords: str
    duration: float = DEFAULT_SCENE_DURATION  # in seconds

    def to_dict(self) -> dict:
        """Convert to the camelCase shape the text service is asked for."""
        return {
            "description": self.description,
            "searchKeywords": self.search_keywords,
            "duration": self.duration,
        }


@dataclass(frozen=True)
class ScenePlan:
    """Ordered shot list produced once per run.

    Scenes are stored as a tuple so a plan cannot change after parsing.
    """

    scenes: tuple[Scene, ...]
    total_duration: float

    def __post_init__(self):
        if not self.scenes:
            raise ValueError("Scene plan must contain at least one scene")
        for i, scene in enumerate(self.scenes, start=1):
            if scene.duration <= 0:
                raise ValueError(f"Scene {i} has a non-positive duration")

    @property
    def script(self) -> str:
        """Narration text: scene descriptions joined in order."""
        return " ".join(scene.description for scene in self.scenes)

    def to_dict(self) -> dict:
        return {
            "scenes": [scene.to_dict() for scene in self.scenes],
            "totalDuration": self.total_duration,
        }
