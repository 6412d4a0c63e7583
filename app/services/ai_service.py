import logging
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.schemas.ai import RoutineGenerationRequest

logger = logging.getLogger(__name__)


class AIServiceError(Exception):
    pass


ROUTINE_PROMPT = """You are an expert fitness trainer AI. Your ONLY purpose is to generate workout routines.

You MUST follow these rules strictly:
1.  ONLY respond to requests for workout routines. If the user asks about anything else, respond with an empty message.
2.  Respond in the EXACT same language as the user's 'Goals'.
3.  Format the output in Markdown using the following strict hierarchy and format. Do NOT add any extra text, introduction, or conclusion.

**Block Name (e.g., Warm-up, Upper Body, Cool-down)**
*Exercise Name*
- Sets: Number of sets (e.g., 3)
- Reps: Repetition range (e.g., 8-12) or "As many as possible"
- Duration: Duration in minutes or seconds (e.g., 3 minutes, 30 seconds)
- Weight: Recommended weight (e.g., 50kg, Bodyweight, Light)

Here is a clear example of the required format:

**Warm-up**
*Jumping Jacks*
- Sets: 1
- Duration: 3 minutes

**Main Workout: Block A**
*Bench Press*
- Sets: 3
- Reps: 8-12
- Weight: 60kg

*Squats*
- Sets: 3
- Reps: 10
- Weight: Bodyweight

**Cool-down**
*Quad Stretch*
- Sets: 1
- Duration: 30 seconds per side

Now, generate a workout routine based on the user's information.

User Information:
- Age: {age}
- Fitness Level: {fitness_level}
- Goals: {goals}
- Available Equipment: {available_equipment}

Workout Routine:"""


class AIService:
    TIMEOUT = 30.0

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.GROQ_API_KEY
        self.base_url = settings.GROQ_BASE_URL
        self.model = settings.GROQ_MODEL
        logger.info("AI service initialized, API key %s", "present" if self.api_key else "missing")

    async def _make_groq_request(self, prompt: str, max_tokens: int = 1200) -> str:
        if not self.api_key:
            raise AIServiceError("AI service is not configured: set GROQ_API_KEY")

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0.7,
            "max_tokens": max_tokens,
            "stream": False,
        }
        try:
            async with httpx.AsyncClient(timeout=self.TIMEOUT) as client:
                response = await client.post(
                    self.base_url,
                    headers={
                        "Content-Type": "application/json",
                        "Authorization": f"Bearer {self.api_key}",
                    },
                    json=payload,
                )
        except httpx.TimeoutException as e:
            raise AIServiceError("Timed out waiting for the AI backend") from e
        except httpx.HTTPError as e:
            raise AIServiceError(f"Could not reach the AI backend: {e}") from e

        if response.status_code != 200:
            error_msg = f"AI backend error: {response.status_code}"
            try:
                error_msg += f" - {response.json()['error']['message']}"
            except (ValueError, KeyError, TypeError):
                error_msg += f" - {response.text[:200]}"
            raise AIServiceError(error_msg)

        try:
            return response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AIServiceError("Unexpected response format from the AI backend") from e

    async def generate_workout_routine(self, request: RoutineGenerationRequest) -> str:
        """Markdown routine, empty string when the request is not about training."""
        prompt = ROUTINE_PROMPT.format(
            age=request.age,
            fitness_level=request.fitness_level.value,
            goals=request.goals,
            available_equipment=request.available_equipment,
        )
        logger.info("Generating routine: level=%s age=%s", request.fitness_level.value, request.age)
        text = await self._make_groq_request(prompt)
        return text.strip()


ai_service = AIService()
