"""Scene planning prompt templates.

Contains prompts for:
- AI_DIRECTOR_V1: Turn a free-text prompt into a fixed-shape shot list
"""

# AI Director v1 prompt
# Template placeholders: {prompt}, {scene_count}, {scene_duration}, {total_duration}
AI_DIRECTOR_V1 = """As an AI Director, create a detailed scene-by-scene plan for a video about: "{prompt}"

Return ONLY a JSON object with this exact structure:
{{
  "scenes": [
    {{
      "description": "A detailed description of what happens in this scene",
      "searchKeywords": "keywords for finding stock footage",
      "duration": {scene_duration}
    }}
  ],
  "totalDuration": {total_duration}
}}

Create {scene_count} scenes, each {scene_duration} seconds long. Focus on visual, cinematic storytelling."""
