"""Translation prompt templates."""

# Template placeholders: {language}, {script}
SCRIPT_TRANSLATOR_V1 = """Translate the following script to {language}. Return ONLY the translated text, nothing else:

{script}"""
