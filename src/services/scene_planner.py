"""Scene planner: turns a free-text prompt into a fixed-shape shot list.

Uses Gemini through the key rotation executor and parses the JSON object
embedded in the reply into a ScenePlan.
"""

import json
import logging
from typing import Optional

from models.scene import DEFAULT_SCENE_DURATION, Scene, ScenePlan
from services.ai_service import AIService
from services.prompts import AI_DIRECTOR_V1, extract_json_object, strip_markdown_code_blocks
from utils.errors import PlanEmptyError, PlanFormatError
from utils.key_rotation import KeyRotationExecutor

logger = logging.getLogger(__name__)

SCENE_COUNT = 6
SCENE_DURATION = 5


class ScenePlanner:
    """Generates a ScenePlan for a prompt using an AIService."""

    def __init__(
        self,
        ai_service: AIService,
        executor: KeyRotationExecutor,
        scene_count: int = SCENE_COUNT,
        scene_duration: int = SCENE_DURATION,
    ):
        self.ai = ai_service
        self.executor = executor
        self.scene_count = scene_count
        self.scene_duration = scene_duration

    def build_prompt(self, prompt: str) -> str:
        return AI_DIRECTOR_V1.format(
            prompt=prompt,
            scene_count=self.scene_count,
            scene_duration=self.scene_duration,
            total_duration=self.scene_count * self.scene_duration,
        )

    async def plan(
        self, prompt: str, credentials: str, model: Optional[str] = None
    ) -> ScenePlan:
        """Plan the scenes for a video about ``prompt``.

        Args:
            prompt: Free-text topic from the user
            credentials: Comma-separated Google API keys
            model: Optional text model override

        Returns:
            Parsed, immutable ScenePlan

        Raises:
            PlanEmptyError: If the service returned no text
            PlanFormatError: If the reply holds no usable JSON plan
        """
        director_prompt = self.build_prompt(prompt)
        logger.info(f"Planning {self.scene_count} scenes for: '{prompt[:60]}'")

        async def operation(api_key: str) -> Optional[str]:
            return await self.ai.generate_text(director_prompt, api_key, model=model)

        reply = await self.executor.execute(
            operation, credentials, "AI Director plan generation"
        )
        if not reply or not reply.strip():
            raise PlanEmptyError()

        plan = self.parse_plan(reply)
        logger.info(
            f"Scene plan ready: {len(plan.scenes)} scenes, {plan.total_duration:g}s total"
        )
        return plan

    @staticmethod
    def parse_plan(reply: str) -> ScenePlan:
        """Parse the first JSON object in ``reply`` into a ScenePlan.

        Raises:
            PlanFormatError: If no object is found or it has the wrong shape
        """
        json_text = extract_json_object(strip_markdown_code_blocks(reply))
        if json_text is None:
            logger.debug(f"Raw plan response: {reply[:500]}")
            raise PlanFormatError()

        try:
            data = json.loads(json_text)
        except json.JSONDecodeError as e:
            logger.debug(f"Raw plan response: {reply[:500]}")
            raise PlanFormatError(f"Invalid plan format: {e}") from e

        scenes_data = data.get("scenes")
        if not isinstance(scenes_data, list) or not scenes_data:
            raise PlanFormatError("Scene plan response missing 'scenes' list")

        scenes = []
        for i, item in enumerate(scenes_data, start=1):
            if not isinstance(item, dict):
                raise PlanFormatError(f"Scene {i} is not an object")
            try:
                duration = float(item.get("duration", DEFAULT_SCENE_DURATION))
            except (TypeError, ValueError) as e:
                raise PlanFormatError(f"Scene {i} has an invalid duration") from e
            if duration <= 0:
                raise PlanFormatError(f"Scene {i} has a non-positive duration")

            scenes.append(
                Scene(
                    description=str(item.get("description", "")).strip(),
                    search_keywords=str(
                        item.get("searchKeywords") or item.get("search_keywords") or ""
                    ).strip(),
                    duration=duration,
                )
            )

        try:
            total_duration = float(
                data.get("totalDuration") or sum(scene.duration for scene in scenes)
            )
        except (TypeError, ValueError) as e:
            raise PlanFormatError("Scene plan has an invalid totalDuration") from e

        return ScenePlan(scenes=tuple(scenes), total_duration=total_duration)
